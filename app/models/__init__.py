from .doctor import Doctor
from .medication import Medication
from .patient import Patient
from .record import StoredRecord

__all__ = ["Doctor", "Medication", "Patient", "StoredRecord"]
