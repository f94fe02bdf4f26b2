import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import sessionmaker

from ..core.config import settings
from ..core.locking import DoctorLocks
from ..repositories import (
    APPOINTMENTS_COLLECTION, AVAILABILITY_COLLECTION, OUTCOMES_COLLECTION,
    AppointmentRepository, AvailabilityStore, MedicationCatalog, OutcomeRepository,
    PersistenceSink, SnapshotWriter, SqlMedicationCatalog, SqlPersistenceSink,
    SqlUserDirectory, UserDirectory,
)
from .outcome_service import OutcomeService
from .scheduling_service import SchedulingService

logger = logging.getLogger(__name__)


class ClinicServices:
    """Repositories and services wired together once per process."""

    def __init__(
        self,
        directory: UserDirectory,
        catalog: MedicationCatalog,
        sink: Optional[PersistenceSink] = None,
        clock: Callable[[], datetime] = datetime.now,
        consultation_fee: Optional[float] = None,
    ):
        self.availability = AvailabilityStore()
        self.appointments = AppointmentRepository()
        self.outcomes = OutcomeRepository()
        self.writer = None
        if sink is not None:
            self.writer = SnapshotWriter(sink, {
                AVAILABILITY_COLLECTION: self.availability.to_records,
                APPOINTMENTS_COLLECTION: self.appointments.to_records,
                OUTCOMES_COLLECTION: self.outcomes.to_records,
            })
        self.scheduling = SchedulingService(
            self.availability,
            self.appointments,
            directory,
            writer=self.writer,
            locks=DoctorLocks(),
            clock=clock,
        )
        self.outcome_service = OutcomeService(
            self.scheduling,
            self.outcomes,
            catalog,
            writer=self.writer,
            consultation_fee=consultation_fee,
        )

    def load(self) -> None:
        """Hydrate the repositories from the persistence sink."""
        if self.writer is None:
            return
        self.writer.load_into({
            AVAILABILITY_COLLECTION: self.availability.load_records,
            APPOINTMENTS_COLLECTION: self.appointments.load_records,
            OUTCOMES_COLLECTION: self.outcomes.load_records,
        })


def build_services(session_factory: sessionmaker, clock: Callable[[], datetime] = datetime.now) -> ClinicServices:
    """Wire the services against the SQL-backed directory, catalog and store."""
    sink = SqlPersistenceSink(session_factory, record_keys={
        AVAILABILITY_COLLECTION: AvailabilityStore.record_key,
        APPOINTMENTS_COLLECTION: AppointmentRepository.record_key,
        OUTCOMES_COLLECTION: OutcomeRepository.record_key,
    })
    services = ClinicServices(
        SqlUserDirectory(session_factory),
        SqlMedicationCatalog(session_factory),
        sink=sink,
        clock=clock,
        consultation_fee=settings.CONSULTATION_FEE,
    )
    services.load()
    logger.info("Scheduling services ready")
    return services
