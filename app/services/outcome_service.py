import logging
import threading
from typing import Iterable, List, Optional

from ..core.config import settings
from ..core.exceptions import (
    AlreadyPaidError, OutcomeAlreadyRecordedError, OutcomeNotFoundError,
    UnknownMedicationError,
)
from ..repositories.directory import MedicationCatalog
from ..repositories.outcome import OutcomeRepository
from ..repositories.persistence import (
    APPOINTMENTS_COLLECTION, OUTCOMES_COLLECTION, SnapshotWriter,
)
from ..schemas.appointment import Appointment, AppointmentStatus
from ..schemas.outcome import (
    AppointmentOutcome, AppointmentRecord, BillingStatus, PrescriptionStatus,
)
from .scheduling_service import SchedulingService

logger = logging.getLogger(__name__)


class OutcomeService:
    """Records what happened at a completed appointment and what it costs."""

    def __init__(
        self,
        scheduling: SchedulingService,
        outcomes: OutcomeRepository,
        catalog: MedicationCatalog,
        writer: Optional[SnapshotWriter] = None,
        consultation_fee: Optional[float] = None,
    ):
        self.scheduling = scheduling
        self.outcomes = outcomes
        self.catalog = catalog
        self.writer = writer
        self.consultation_fee = (
            settings.CONSULTATION_FEE if consultation_fee is None else consultation_fee
        )
        self._lock = threading.Lock()

    def record_outcome(
        self,
        appointment_id: int,
        service_type: str,
        medication_ids: Iterable[str] = (),
        consultation_notes: str = "",
    ) -> AppointmentOutcome:
        """Record the outcome of a confirmed appointment and complete it.

        The outcome is stored and the appointment marked COMPLETED under the
        doctor's lock; if storing the outcome fails the appointment keeps its
        status, so neither side is left half-written.
        """
        self.scheduling.get_appointment(appointment_id)
        if self.outcomes.exists(appointment_id):
            raise OutcomeAlreadyRecordedError(appointment_id)

        medication_ids = list(medication_ids)
        for medication_id in medication_ids:
            if not self.catalog.exists(medication_id):
                raise UnknownMedicationError(medication_id)
        medication_fees = [float(self.catalog.price_of(medication_id)) for medication_id in medication_ids]

        outcome = AppointmentOutcome(
            appointment_id=appointment_id,
            service_type=service_type,
            medication_ids=medication_ids,
            consultation_notes=consultation_notes,
            prescription_status=PrescriptionStatus.PENDING,
            billing_status=BillingStatus.UNPAID,
            consultation_fee=self.consultation_fee,
            medication_fees=medication_fees,
            total_amount=round(self.consultation_fee + sum(medication_fees), 2),
        )

        with self.scheduling.completing(appointment_id):
            if self.outcomes.exists(appointment_id):
                raise OutcomeAlreadyRecordedError(appointment_id)
            self.outcomes.add(outcome)

        logger.info(
            f"Outcome recorded for appointment {appointment_id}: {service_type}, "
            f"{len(medication_ids)} medications, total {outcome.total_amount:.2f}"
        )
        self._flush(APPOINTMENTS_COLLECTION, OUTCOMES_COLLECTION)
        return outcome

    def view_outcome(self, appointment_id: int) -> Optional[AppointmentOutcome]:
        return self.outcomes.get(appointment_id)

    def get_outcome(self, appointment_id: int) -> AppointmentOutcome:
        outcome = self.outcomes.get(appointment_id)
        if outcome is None:
            raise OutcomeNotFoundError(appointment_id)
        return outcome

    def view_all_outcomes(self) -> List[AppointmentOutcome]:
        return self.outcomes.all()

    def view_outcomes_by_status(
        self,
        prescription_status: Optional[PrescriptionStatus] = None,
        billing_status: Optional[BillingStatus] = None,
    ) -> List[AppointmentOutcome]:
        return self.outcomes.by_status(prescription_status, billing_status)

    def update_prescription_status(
        self, appointment_id: int, status: PrescriptionStatus
    ) -> AppointmentOutcome:
        """Mark a prescription as dispensed (or back to pending)."""
        with self._lock:
            outcome = self.get_outcome(appointment_id)
            outcome.prescription_status = status
            self.outcomes.save(outcome)
        logger.info(f"Prescription for appointment {appointment_id} set to {status.value}")
        self._flush(OUTCOMES_COLLECTION)
        return outcome

    def update_billing_status(self, appointment_id: int, status: BillingStatus) -> AppointmentOutcome:
        """Set the billing status; paying an already paid bill is refused."""
        with self._lock:
            outcome = self.get_outcome(appointment_id)
            if status == BillingStatus.PAID and outcome.billing_status == BillingStatus.PAID:
                raise AlreadyPaidError(appointment_id)
            outcome.billing_status = status
            self.outcomes.save(outcome)
        logger.info(f"Billing for appointment {appointment_id} set to {status.value}")
        self._flush(OUTCOMES_COLLECTION)
        return outcome

    def pay_bill(self, appointment_id: int) -> AppointmentOutcome:
        return self.update_billing_status(appointment_id, BillingStatus.PAID)

    def history_for_patient(self, patient_id: str) -> List[AppointmentRecord]:
        return self._with_outcomes(self.scheduling.appointments_for_patient(patient_id))

    def history_for_doctor(self, doctor_id: str) -> List[AppointmentRecord]:
        return self._with_outcomes(self.scheduling.appointments_for_doctor(doctor_id))

    def _with_outcomes(self, appointments: List[Appointment]) -> List[AppointmentRecord]:
        records = []
        for appointment in appointments:
            outcome = None
            if appointment.status == AppointmentStatus.COMPLETED:
                outcome = self.outcomes.get(appointment.id)
            records.append(AppointmentRecord(appointment=appointment, outcome=outcome))
        return records

    def _flush(self, *collections: str) -> None:
        if self.writer is not None:
            self.writer.flush(*collections)
