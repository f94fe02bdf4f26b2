from sqlalchemy import Column, String, DateTime, Boolean
from sqlalchemy.sql import func

from ..core.database import Base

class Doctor(Base):
    __tablename__ = "doctors"
    
    # Staff id assigned by the identity service, e.g. "D001"
    id = Column(String(50), primary_key=True, index=True)
    
    # Personal information
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    specialization = Column(String(100), nullable=True)
    
    # Contact information
    phone_number = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    
    is_active = Column(Boolean, default=True)
    
    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    
    def __repr__(self):
        return f"<Doctor(id='{self.id}', name='{self.first_name} {self.last_name}', specialization='{self.specialization}')>"
