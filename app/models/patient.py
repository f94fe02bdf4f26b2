from sqlalchemy import Column, String, DateTime, Date
from sqlalchemy.sql import func

from ..core.database import Base

class Patient(Base):
    __tablename__ = "patients"
    
    # Hospital id assigned at registration, e.g. "P1001"
    id = Column(String(50), primary_key=True, index=True)
    
    # Personal information
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)
    
    # Contact information
    phone_number = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    
    # Medical information
    blood_type = Column(String(10), nullable=True)
    
    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    
    def __repr__(self):
        return f"<Patient(id='{self.id}', name='{self.first_name} {self.last_name}')>"
