"""Typed errors raised by the scheduling and outcome services.

Every error carries the HTTP status the API layer answers with, so routers
never translate them by hand.
"""
from typing import Optional


class ClinicError(Exception):
    status_code = 400
    error = "Bad Request"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# Not found

class NotFoundError(ClinicError):
    status_code = 404
    error = "Not Found"


class DoctorNotFoundError(NotFoundError):
    def __init__(self, doctor_id: str):
        super().__init__(f"Doctor not found: {doctor_id}")
        self.doctor_id = doctor_id


class PatientNotFoundError(NotFoundError):
    def __init__(self, patient_id: str):
        super().__init__(f"Patient not found: {patient_id}")
        self.patient_id = patient_id


class AppointmentNotFoundError(NotFoundError):
    def __init__(self, appointment_id: int):
        super().__init__(f"Appointment not found: {appointment_id}")
        self.appointment_id = appointment_id


class OutcomeNotFoundError(NotFoundError):
    def __init__(self, appointment_id: int):
        super().__init__(f"No appointment outcome recorded for appointment {appointment_id}")
        self.appointment_id = appointment_id


# Conflict

class ConflictError(ClinicError):
    status_code = 409
    error = "Conflict"


class NoAvailabilityError(ConflictError):
    def __init__(self, doctor_id: str, day):
        super().__init__(f"Doctor {doctor_id} has no available slots on {day.isoformat()}")
        self.doctor_id = doctor_id
        self.day = day


class SlotUnavailableError(ConflictError):
    def __init__(self, doctor_id: str, day, slot):
        super().__init__(
            f"Slot {day.isoformat()} {slot.strftime('%H:%M')} is no longer available "
            f"for doctor {doctor_id}, please pick another"
        )
        self.doctor_id = doctor_id
        self.day = day
        self.slot = slot


class AlreadyPaidError(ConflictError):
    def __init__(self, appointment_id: int):
        super().__init__(f"Bill for appointment {appointment_id} is already paid")
        self.appointment_id = appointment_id


class OutcomeAlreadyRecordedError(ConflictError):
    def __init__(self, appointment_id: int):
        super().__init__(f"Outcome already recorded for appointment {appointment_id}")
        self.appointment_id = appointment_id


# Invalid input

class InvalidInputError(ClinicError):
    status_code = 422
    error = "Invalid Input"


class InvalidRangeError(InvalidInputError):
    pass


class OffsetDateTimeError(InvalidInputError):
    def __init__(self, when):
        super().__init__(
            f"Appointment time {when.isoformat()} carries a UTC offset; "
            f"send the clinic's local time without one"
        )
        self.when = when


class UnknownMedicationError(InvalidInputError):
    def __init__(self, medication_id: str):
        super().__init__(f"Unknown medication: {medication_id}")
        self.medication_id = medication_id


# Inconsistent state

class InconsistentStateError(ClinicError):
    status_code = 409
    error = "Inconsistent State"


class InvalidTransitionError(InconsistentStateError):
    def __init__(self, appointment_id: int, current, requested=None, reason: Optional[str] = None):
        if requested is None:
            message = f"Appointment {appointment_id} is {current.value}"
        else:
            message = (
                f"Appointment {appointment_id} cannot move from "
                f"{current.value} to {requested.value}"
            )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.appointment_id = appointment_id
        self.current = current
        self.requested = requested


class PersistenceError(ClinicError):
    status_code = 500
    error = "Persistence Failure"
