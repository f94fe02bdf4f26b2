import os
from datetime import date, datetime, time

import pytest

os.environ["TESTING"] = "1"
os.environ.setdefault("TEST_DATABASE_URL", "sqlite://")

from app.services.container import ClinicServices

# All service tests run with the clock frozen just before March 2024
NOW = datetime(2024, 3, 1, 8, 0)
MARCH_1 = date(2024, 3, 1)
MARCH_5 = date(2024, 3, 5)
NINE = time(9, 0)
FIVE_PM = time(17, 0)

class FakeDirectory:
    def __init__(self, doctors=("D001", "D002"), patients=None):
        self.doctors = set(doctors)
        self.patients = set(patients or [f"P{1000 + n}" for n in range(1, 21)])
    
    def find_doctor_by_id(self, doctor_id):
        return {"id": doctor_id} if doctor_id in self.doctors else None
    
    def find_patient_by_id(self, patient_id):
        return {"id": patient_id} if patient_id in self.patients else None

class FakeCatalog:
    def __init__(self, prices=None):
        self.prices = dict(prices or {"M001": 5.0, "M002": 2.5, "M003": 12.25})
    
    def exists(self, medication_id):
        return medication_id in self.prices
    
    def price_of(self, medication_id):
        return self.prices[medication_id]

class RecordingSink:
    """Keeps the last saved records per collection and every save call."""
    def __init__(self):
        self.collections = {}
        self.calls = []
    
    def save(self, collection, records):
        self.calls.append(collection)
        self.collections[collection] = list(records)
    
    def load(self, collection):
        return list(self.collections.get(collection, []))

@pytest.fixture
def directory():
    return FakeDirectory()

@pytest.fixture
def catalog():
    return FakeCatalog()

@pytest.fixture
def sink():
    return RecordingSink()

@pytest.fixture
def services(directory, catalog, sink):
    return ClinicServices(directory, catalog, sink=sink, clock=lambda: NOW)

@pytest.fixture
def scheduling(services):
    return services.scheduling

@pytest.fixture
def outcome_service(services):
    return services.outcome_service

@pytest.fixture
def march_calendar(scheduling):
    """D001 works 09:00-17:00 hourly for all of March 2024."""
    scheduling.set_monthly_availability("D001", MARCH_1, NINE, FIVE_PM, 60)
    return scheduling

def at(day, hour, minute=0):
    return datetime.combine(day, time(hour, minute))

def assert_calendar_consistent(services, doctor_id="D001"):
    """No free slot is held by an active appointment and no slot is held twice."""
    held = [
        appointment.date_time
        for appointment in services.appointments.active_for_doctor(doctor_id)
    ]
    assert len(held) == len(set(held))
    for when in held:
        assert not services.availability.contains(doctor_id, when.date(), when.time())
    for day, slots in services.availability.get_all(doctor_id).items():
        assert slots == sorted(set(slots))
