import threading
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from ..schemas.appointment import Appointment, AppointmentStatus


class AppointmentRepository:
    """Identity-keyed store of appointments.

    Appointments are never deleted; cancellation is a status change. Reads
    hand out copies so callers cannot mutate stored state behind the
    scheduling service's back.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._appointments: Dict[int, Appointment] = {}
        self._next_id = 1

    def next_id(self) -> int:
        with self._lock:
            appointment_id = self._next_id
            self._next_id += 1
            return appointment_id

    def add(self, appointment: Appointment) -> Appointment:
        with self._lock:
            if appointment.id in self._appointments:
                raise ValueError(f"Appointment {appointment.id} already exists")
            self._appointments[appointment.id] = appointment.model_copy()
            self._next_id = max(self._next_id, appointment.id + 1)
        return appointment

    def save(self, appointment: Appointment) -> Appointment:
        with self._lock:
            if appointment.id not in self._appointments:
                raise KeyError(appointment.id)
            self._appointments[appointment.id] = appointment.model_copy()
        return appointment

    def get(self, appointment_id: int) -> Optional[Appointment]:
        with self._lock:
            appointment = self._appointments.get(appointment_id)
            return appointment.model_copy() if appointment else None

    def find(self, predicate: Callable[[Appointment], bool]) -> List[Appointment]:
        with self._lock:
            matches = [a.model_copy() for a in self._appointments.values() if predicate(a)]
        return sorted(matches, key=lambda a: (a.date_time, a.id))

    def all(self) -> List[Appointment]:
        return self.find(lambda appointment: True)

    def by_patient(self, patient_id: str) -> List[Appointment]:
        return self.find(lambda appointment: appointment.patient_id == patient_id)

    def by_doctor(self, doctor_id: str) -> List[Appointment]:
        return self.find(lambda appointment: appointment.doctor_id == doctor_id)

    def active_for_doctor(self, doctor_id: str) -> List[Appointment]:
        """PENDING or CONFIRMED appointments; these hold calendar slots."""
        return self.find(
            lambda appointment: appointment.doctor_id == doctor_id and appointment.status.is_active
        )

    def active_at(self, doctor_id: str, when: datetime) -> Optional[Appointment]:
        matches = self.find(
            lambda appointment: (
                appointment.doctor_id == doctor_id
                and appointment.date_time == when
                and appointment.status.is_active
            )
        )
        return matches[0] if matches else None

    def by_status(self, *statuses: AppointmentStatus) -> List[Appointment]:
        return self.find(lambda appointment: appointment.status in statuses)

    # Persistence

    def to_records(self) -> List[dict]:
        return [appointment.model_dump(mode="json") for appointment in self.all()]

    def load_records(self, records: Iterable[dict]) -> None:
        appointments = {}
        for record in records:
            appointment = Appointment.model_validate(record)
            appointments[appointment.id] = appointment
        with self._lock:
            self._appointments = appointments
            self._next_id = max(appointments, default=0) + 1

    @staticmethod
    def record_key(record: dict) -> str:
        return str(record["id"])
