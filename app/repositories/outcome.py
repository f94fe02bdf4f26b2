import threading
from typing import Dict, Iterable, List, Optional

from ..schemas.outcome import AppointmentOutcome, BillingStatus, PrescriptionStatus


class OutcomeRepository:
    """Appointment outcomes keyed by appointment id (one per appointment)."""

    def __init__(self):
        self._lock = threading.RLock()
        self._outcomes: Dict[int, AppointmentOutcome] = {}

    def add(self, outcome: AppointmentOutcome) -> AppointmentOutcome:
        with self._lock:
            if outcome.appointment_id in self._outcomes:
                raise ValueError(f"Outcome for appointment {outcome.appointment_id} already exists")
            self._outcomes[outcome.appointment_id] = outcome.model_copy(deep=True)
        return outcome

    def save(self, outcome: AppointmentOutcome) -> AppointmentOutcome:
        with self._lock:
            if outcome.appointment_id not in self._outcomes:
                raise KeyError(outcome.appointment_id)
            self._outcomes[outcome.appointment_id] = outcome.model_copy(deep=True)
        return outcome

    def get(self, appointment_id: int) -> Optional[AppointmentOutcome]:
        with self._lock:
            outcome = self._outcomes.get(appointment_id)
            return outcome.model_copy(deep=True) if outcome else None

    def exists(self, appointment_id: int) -> bool:
        with self._lock:
            return appointment_id in self._outcomes

    def all(self) -> List[AppointmentOutcome]:
        with self._lock:
            return [self._outcomes[key].model_copy(deep=True) for key in sorted(self._outcomes)]

    def by_status(
        self,
        prescription_status: Optional[PrescriptionStatus] = None,
        billing_status: Optional[BillingStatus] = None,
    ) -> List[AppointmentOutcome]:
        return [
            outcome for outcome in self.all()
            if (prescription_status is None or outcome.prescription_status == prescription_status)
            and (billing_status is None or outcome.billing_status == billing_status)
        ]

    # Persistence

    def to_records(self) -> List[dict]:
        return [outcome.model_dump(mode="json") for outcome in self.all()]

    def load_records(self, records: Iterable[dict]) -> None:
        outcomes = {}
        for record in records:
            outcome = AppointmentOutcome.model_validate(record)
            outcomes[outcome.appointment_id] = outcome
        with self._lock:
            self._outcomes = outcomes

    @staticmethod
    def record_key(record: dict) -> str:
        return str(record["appointment_id"])
