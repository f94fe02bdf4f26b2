from .appointment import AppointmentRepository
from .availability import AvailabilityStore
from .directory import MedicationCatalog, SqlMedicationCatalog, SqlUserDirectory, UserDirectory
from .outcome import OutcomeRepository
from .persistence import (
    APPOINTMENTS_COLLECTION, AVAILABILITY_COLLECTION, OUTCOMES_COLLECTION,
    PersistenceSink, SnapshotWriter, SqlPersistenceSink,
)
