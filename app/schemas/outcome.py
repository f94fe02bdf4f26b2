from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .appointment import Appointment


class PrescriptionStatus(str, Enum):
    PENDING = "PENDING"
    DISPENSED = "DISPENSED"


class BillingStatus(str, Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"


class AppointmentOutcome(BaseModel):
    appointment_id: int
    service_type: str
    medication_ids: List[str] = Field(default_factory=list)
    consultation_notes: str = ""
    prescription_status: PrescriptionStatus = PrescriptionStatus.PENDING
    billing_status: BillingStatus = BillingStatus.UNPAID
    consultation_fee: float
    # Parallel to medication_ids
    medication_fees: List[float] = Field(default_factory=list)
    total_amount: float


class AppointmentRecord(BaseModel):
    """An appointment together with its outcome once it is completed."""
    appointment: Appointment
    outcome: Optional[AppointmentOutcome] = None


# Request bodies

class OutcomeCreate(BaseModel):
    service_type: str = Field(..., min_length=1)
    medication_ids: List[str] = Field(default_factory=list)
    consultation_notes: str = ""


class PrescriptionStatusUpdate(BaseModel):
    status: PrescriptionStatus


class BillingStatusUpdate(BaseModel):
    status: BillingStatus
