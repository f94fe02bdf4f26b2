"""Read-only adapters over the identity service's doctor/patient tables and
the pharmacy's medication catalog."""
from typing import Any, Optional, Protocol

from sqlalchemy.orm import Session, sessionmaker

from ..models import Doctor, Medication, Patient


class UserDirectory(Protocol):
    def find_doctor_by_id(self, doctor_id: str) -> Optional[Any]: ...

    def find_patient_by_id(self, patient_id: str) -> Optional[Any]: ...


class MedicationCatalog(Protocol):
    def exists(self, medication_id: str) -> bool: ...

    def price_of(self, medication_id: str) -> float: ...


class SqlUserDirectory:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def find_doctor_by_id(self, doctor_id: str) -> Optional[Doctor]:
        with self.session_factory() as db:
            return self._active(db.get(Doctor, doctor_id))

    def find_patient_by_id(self, patient_id: str) -> Optional[Patient]:
        with self.session_factory() as db:
            return db.get(Patient, patient_id)

    @staticmethod
    def _active(doctor: Optional[Doctor]) -> Optional[Doctor]:
        if doctor is None or doctor.is_active is False:
            return None
        return doctor


class SqlMedicationCatalog:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def exists(self, medication_id: str) -> bool:
        with self.session_factory() as db:
            return self._get(db, medication_id) is not None

    def price_of(self, medication_id: str) -> float:
        with self.session_factory() as db:
            medication = self._get(db, medication_id)
            if medication is None:
                raise KeyError(medication_id)
            return float(medication.price)

    @staticmethod
    def _get(db: Session, medication_id: str) -> Optional[Medication]:
        return db.get(Medication, medication_id)
