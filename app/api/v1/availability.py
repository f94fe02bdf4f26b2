from datetime import date, time

from fastapi import APIRouter, Depends

from ...api.deps import (
    ensure_self_or_admin, get_current_user_token, get_services, require_role,
)
from ...core.security import TokenPayload, UserRole
from ...schemas.availability import (
    DayAvailability, MonthlyAvailability, MonthlyAvailabilityRequest, SlotCheck,
)
from ...services.container import ClinicServices

router = APIRouter(prefix="/doctors/{doctor_id}/availability", tags=["Availability"])

@router.put("", response_model=MonthlyAvailability)
def set_monthly_availability(
    doctor_id: str,
    request: MonthlyAvailabilityRequest,
    caller: TokenPayload = Depends(require_role([UserRole.DOCTOR, UserRole.ADMIN])),
    services: ClinicServices = Depends(get_services)
):
    """Publish a doctor's slots from start_date to the end of that month."""
    ensure_self_or_admin(caller, doctor_id)
    days = services.scheduling.set_monthly_availability(
        doctor_id,
        request.start_date,
        request.start_time,
        request.end_time,
        request.interval_minutes
    )
    return MonthlyAvailability(doctor_id=doctor_id, days=days)

@router.get("", response_model=MonthlyAvailability)
def view_monthly_availability(
    doctor_id: str,
    _: TokenPayload = Depends(get_current_user_token),
    services: ClinicServices = Depends(get_services)
):
    """View every published day of a doctor's calendar."""
    days = services.scheduling.view_monthly_availability(doctor_id)
    return MonthlyAvailability(doctor_id=doctor_id, days=days)

@router.get("/{day}", response_model=DayAvailability)
def view_availability(
    doctor_id: str,
    day: date,
    _: TokenPayload = Depends(get_current_user_token),
    services: ClinicServices = Depends(get_services)
):
    """View a doctor's free slots on one day."""
    slots = services.scheduling.view_availability(doctor_id, day)
    return DayAvailability(doctor_id=doctor_id, date=day, slots=slots)

@router.get("/{day}/{slot}", response_model=SlotCheck)
def check_slot(
    doctor_id: str,
    day: date,
    slot: time,
    _: TokenPayload = Depends(get_current_user_token),
    services: ClinicServices = Depends(get_services)
):
    """Check whether a single slot is still free."""
    available = services.scheduling.is_slot_available(doctor_id, day, slot)
    return SlotCheck(doctor_id=doctor_id, date=day, slot=slot, available=available)
