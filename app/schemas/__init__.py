from .appointment import (
    ALLOWED_TRANSITIONS, TERMINAL_STATUSES, Appointment, AppointmentCreate,
    AppointmentReschedule, AppointmentStatus, AppointmentStatusUpdate,
    AppointmentView, BulkStatusResult,
)
from .availability import (
    DayAvailability, MonthlyAvailability, MonthlyAvailabilityRequest, SlotCheck,
)
from .outcome import (
    AppointmentOutcome, AppointmentRecord, BillingStatus, BillingStatusUpdate,
    OutcomeCreate, PrescriptionStatus, PrescriptionStatusUpdate,
)
