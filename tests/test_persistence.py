from datetime import time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app import models
from app.core.database import Base, engine_options
from app.core.exceptions import DoctorNotFoundError, PersistenceError
from app.repositories import SqlMedicationCatalog, SqlPersistenceSink, SqlUserDirectory
from app.repositories.persistence import (
    APPOINTMENTS_COLLECTION, AVAILABILITY_COLLECTION, OUTCOMES_COLLECTION,
)
from app.schemas.appointment import AppointmentStatus
from app.schemas.outcome import BillingStatus
from app.services.container import build_services

from .conftest import MARCH_1, MARCH_5, NINE, FIVE_PM, NOW, at

@pytest.fixture
def session_factory():
    """A fresh in-memory database seeded with two doctors, a patient and medications."""
    engine = create_engine("sqlite://", **engine_options("sqlite://"))
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    with factory() as db:
        db.add_all([
            models.Doctor(id="D001", first_name="Grace", last_name="Okafor", specialization="General Practice"),
            models.Doctor(id="D002", first_name="Tomas", last_name="Lind", is_active=False),
            models.Patient(id="P1001", first_name="Amina", last_name="Yusuf"),
            models.Medication(id="M001", name="Paracetamol 500mg", price=5.0),
            models.Medication(id="M002", name="Amoxicillin 250mg", price=2.5),
        ])
        db.commit()

    yield factory
    engine.dispose()

class TestSqlPersistenceSink:

    def test_save_then_load(self, session_factory):
        sink = SqlPersistenceSink(session_factory)
        sink.save(APPOINTMENTS_COLLECTION, [{"id": 1, "status": "PENDING"}, {"id": 2, "status": "CONFIRMED"}])

        assert sink.load(APPOINTMENTS_COLLECTION) == [
            {"id": 1, "status": "PENDING"},
            {"id": 2, "status": "CONFIRMED"},
        ]

    def test_save_replaces_collection(self, session_factory):
        """Each save is a full snapshot of its collection."""
        sink = SqlPersistenceSink(session_factory)
        sink.save(APPOINTMENTS_COLLECTION, [{"id": 1}, {"id": 2}])
        sink.save(APPOINTMENTS_COLLECTION, [{"id": 3}])

        assert sink.load(APPOINTMENTS_COLLECTION) == [{"id": 3}]

    def test_collections_are_independent(self, session_factory):
        sink = SqlPersistenceSink(session_factory, record_keys={
            OUTCOMES_COLLECTION: lambda record: str(record["appointment_id"]),
        })
        sink.save(APPOINTMENTS_COLLECTION, [{"id": 1}])
        sink.save(OUTCOMES_COLLECTION, [{"appointment_id": 1}])
        sink.save(APPOINTMENTS_COLLECTION, [])

        assert sink.load(APPOINTMENTS_COLLECTION) == []
        assert sink.load(OUTCOMES_COLLECTION) == [{"appointment_id": 1}]

    def test_unknown_collection_is_empty(self, session_factory):
        assert SqlPersistenceSink(session_factory).load(AVAILABILITY_COLLECTION) == []

    def test_duplicate_keys_fail(self, session_factory):
        sink = SqlPersistenceSink(session_factory)
        with pytest.raises(PersistenceError):
            sink.save(APPOINTMENTS_COLLECTION, [{"id": 1}, {"id": 1}])

class TestSqlDirectory:

    def test_active_doctor_found(self, session_factory):
        assert SqlUserDirectory(session_factory).find_doctor_by_id("D001") is not None

    def test_inactive_doctor_is_missing(self, session_factory):
        assert SqlUserDirectory(session_factory).find_doctor_by_id("D002") is None

    def test_patient_lookup(self, session_factory):
        directory = SqlUserDirectory(session_factory)
        assert directory.find_patient_by_id("P1001") is not None
        assert directory.find_patient_by_id("P9999") is None

    def test_medication_catalog(self, session_factory):
        catalog = SqlMedicationCatalog(session_factory)
        assert catalog.exists("M002")
        assert not catalog.exists("X100")
        assert catalog.price_of("M002") == 2.5
        with pytest.raises(KeyError):
            catalog.price_of("X100")

class TestReload:

    def test_state_survives_restart(self, session_factory):
        """A second container over the same database sees everything the first saved."""
        first = build_services(session_factory, clock=lambda: NOW)
        first.scheduling.set_monthly_availability("D001", MARCH_1, NINE, FIVE_PM, 60)
        done = first.scheduling.schedule_appointment("D001", "P1001", at(MARCH_5, 10))
        first.scheduling.update_appointment_status(done, AppointmentStatus.CONFIRMED)
        first.outcome_service.record_outcome(done, "Consultation", ["M001", "M002"])
        first.outcome_service.pay_bill(done)
        pending = first.scheduling.schedule_appointment("D001", "P1001", at(MARCH_5, 14))

        second = build_services(session_factory, clock=lambda: NOW)

        assert second.scheduling.get_appointment(done).status == AppointmentStatus.COMPLETED
        assert second.scheduling.get_appointment(pending).status == AppointmentStatus.PENDING
        outcome = second.outcome_service.get_outcome(done)
        assert outcome.billing_status == BillingStatus.PAID
        assert outcome.total_amount == 17.5
        assert second.scheduling.view_monthly_availability("D001") == \
            first.scheduling.view_monthly_availability("D001")
        assert not second.scheduling.is_slot_available("D001", MARCH_5, time(14))

    def test_ids_continue_after_restart(self, session_factory):
        first = build_services(session_factory, clock=lambda: NOW)
        first.scheduling.set_monthly_availability("D001", MARCH_1, NINE, FIVE_PM, 60)
        first.scheduling.schedule_appointment("D001", "P1001", at(MARCH_5, 10))
        first.scheduling.schedule_appointment("D001", "P1001", at(MARCH_5, 11))

        second = build_services(session_factory, clock=lambda: NOW)
        assert second.scheduling.schedule_appointment("D001", "P1001", at(MARCH_5, 12)) == 3

    def test_inactive_doctor_cannot_publish(self, session_factory):
        services = build_services(session_factory, clock=lambda: NOW)
        with pytest.raises(DoctorNotFoundError):
            services.scheduling.set_monthly_availability("D002", MARCH_1, NINE, FIVE_PM, 60)
