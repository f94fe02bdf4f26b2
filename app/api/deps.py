from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from typing import List

from ..core.security import (
    security, verify_token, AuthenticationError,
    AuthorizationError, UserRole, TokenPayload
)
from ..services.container import ClinicServices

async def get_current_user_token(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    token = credentials.credentials
    
    # Verify token
    token_payload = verify_token(token)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")
    
    # Check if token is access token
    if token_payload.token_type != "access":
        raise AuthenticationError("Invalid token type")
    
    if not token_payload.sub or not token_payload.role:
        raise AuthenticationError("Invalid token payload")
    
    return token_payload

# Role-based access control dependencies
def require_role(allowed_roles: List[UserRole]):
    """Create a dependency that requires specific caller roles."""
    async def role_checker(
        caller: TokenPayload = Depends(get_current_user_token)
    ) -> TokenPayload:
        if caller.role not in allowed_roles:
            raise AuthorizationError(
                f"Access denied. Required roles: {[role.value for role in allowed_roles]}"
            )
        return caller
    
    return role_checker

def ensure_self_or_admin(caller: TokenPayload, owner_id: str) -> None:
    """Non-admin callers may only act on their own records."""
    if caller.role != UserRole.ADMIN and caller.sub != owner_id:
        raise AuthorizationError("You can only access your own records")

def get_services(request: Request) -> ClinicServices:
    """Get the process-wide service container."""
    return request.app.state.services
