from datetime import datetime
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, Field


class AppointmentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    DECLINED = "DECLINED"
    CANCELED = "CANCELED"
    COMPLETED = "COMPLETED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        """Active appointments hold their slot on the doctor's calendar."""
        return self in (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)


TERMINAL_STATUSES = frozenset({
    AppointmentStatus.DECLINED,
    AppointmentStatus.CANCELED,
    AppointmentStatus.COMPLETED,
})

# PENDING --accept--> CONFIRMED --record outcome--> COMPLETED
# PENDING --decline--> DECLINED
# PENDING|CONFIRMED --cancel--> CANCELED
ALLOWED_TRANSITIONS: Dict[AppointmentStatus, frozenset] = {
    AppointmentStatus.PENDING: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.DECLINED,
        AppointmentStatus.CANCELED,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELED,
    }),
    AppointmentStatus.DECLINED: frozenset(),
    AppointmentStatus.CANCELED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
}


class AppointmentView(str, Enum):
    ALL = "all"
    SCHEDULED = "scheduled"
    PAST = "past"
    UPCOMING = "upcoming"


class Appointment(BaseModel):
    id: int
    doctor_id: str
    patient_id: str
    date_time: datetime
    status: AppointmentStatus = AppointmentStatus.PENDING


# Request bodies

class AppointmentCreate(BaseModel):
    doctor_id: str
    patient_id: str
    date_time: datetime


class AppointmentReschedule(BaseModel):
    date_time: datetime


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus


# Responses

class BulkStatusResult(BaseModel):
    """Per-item report of a best-effort bulk status update.

    Items listed in ``updated`` stay applied even when others failed;
    ``unchanged`` holds those already in the target status.
    """
    requested_status: AppointmentStatus
    updated: List[int] = Field(default_factory=list)
    unchanged: List[int] = Field(default_factory=list)
    failed: Dict[int, str] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return not self.failed
