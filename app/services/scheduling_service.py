import logging
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, Iterator, List, Optional

from ..core.exceptions import (
    AppointmentNotFoundError, ClinicError, DoctorNotFoundError, InvalidRangeError,
    InvalidTransitionError, NoAvailabilityError, OffsetDateTimeError,
    PatientNotFoundError, SlotUnavailableError,
)
from ..core.locking import DoctorLocks
from ..repositories.appointment import AppointmentRepository
from ..repositories.availability import AvailabilityStore
from ..repositories.directory import UserDirectory
from ..repositories.persistence import (
    APPOINTMENTS_COLLECTION, AVAILABILITY_COLLECTION, SnapshotWriter,
)
from ..schemas.appointment import (
    ALLOWED_TRANSITIONS, Appointment, AppointmentStatus, AppointmentView,
    BulkStatusResult,
)

logger = logging.getLogger(__name__)

# Transitions that give the appointment's slot back to the doctor's calendar
SLOT_RELEASING_STATUSES = frozenset({AppointmentStatus.DECLINED, AppointmentStatus.CANCELED})

# Declining everything upcoming turns down pending requests and cancels
# appointments that were already accepted
BULK_DECLINE_TARGETS = {
    AppointmentStatus.PENDING: AppointmentStatus.DECLINED,
    AppointmentStatus.CONFIRMED: AppointmentStatus.CANCELED,
}


class SchedulingService:
    """Owns the doctors' calendars and the appointment lifecycle.

    A slot is either free in the AvailabilityStore or held by exactly one
    PENDING/CONFIRMED appointment. Every operation that touches both sides
    runs under the doctor's lock so the two never disagree, and repository
    snapshots are flushed to the persistence sink only after the lock is
    released.
    """

    def __init__(
        self,
        availability: AvailabilityStore,
        appointments: AppointmentRepository,
        directory: UserDirectory,
        writer: Optional[SnapshotWriter] = None,
        locks: Optional[DoctorLocks] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.availability = availability
        self.appointments = appointments
        self.directory = directory
        self.writer = writer
        self.locks = locks or DoctorLocks()
        self.clock = clock

    # ------------------------------------------------------------------
    # Calendar
    # ------------------------------------------------------------------

    @staticmethod
    def generate_slots(start: time, end: time, interval_minutes: int) -> List[time]:
        """Slots from start to end inclusive, every interval_minutes."""
        if interval_minutes <= 0:
            raise InvalidRangeError(f"Slot interval must be positive, got {interval_minutes}")
        if start > end:
            return []
        step = timedelta(minutes=interval_minutes)
        current = datetime.combine(date.min, start)
        last = datetime.combine(date.min, end)
        slots = []
        while current <= last:
            slots.append(current.time())
            current += step
        return slots

    def set_monthly_availability(
        self,
        doctor_id: str,
        start_date: date,
        start_time: time,
        end_time: time,
        interval_minutes: int,
    ) -> Dict[date, List[time]]:
        """Publish slots for every day from start_date to the end of its month."""
        if end_time < start_time:
            raise InvalidRangeError(
                f"End time {end_time.strftime('%H:%M')} is before start time {start_time.strftime('%H:%M')}"
            )
        slots = self.generate_slots(start_time, end_time, interval_minutes)
        self._require_doctor(doctor_id)

        with self.locks.hold(doctor_id):
            taken = {
                (appointment.date_time.date(), appointment.date_time.time())
                for appointment in self.appointments.active_for_doctor(doctor_id)
            }
            replaced = self.availability.replace_month(
                doctor_id,
                start_date,
                lambda day: [slot for slot in slots if (day, slot) not in taken],
            )

        logger.info(
            f"Availability set for doctor {doctor_id}: {len(replaced)} days from "
            f"{start_date.isoformat()}, {len(slots)} slots per day before conflicts"
        )
        self._flush(AVAILABILITY_COLLECTION)
        return replaced

    def view_availability(self, doctor_id: str, day: date) -> List[time]:
        """Free slots of a doctor on one day (empty if none were published)."""
        self._require_doctor(doctor_id)
        with self.locks.hold(doctor_id):
            return self.availability.get(doctor_id, day)

    def view_monthly_availability(self, doctor_id: str) -> Dict[date, List[time]]:
        """Every published day of a doctor's calendar with its free slots."""
        self._require_doctor(doctor_id)
        with self.locks.hold(doctor_id):
            return self.availability.get_all(doctor_id)

    def is_slot_available(self, doctor_id: str, day: date, slot: time) -> bool:
        # Waits for any booking in flight so a slot is never seen half-taken
        with self.locks.hold(doctor_id):
            return self.availability.contains(doctor_id, day, slot)

    def book_slot(self, doctor_id: str, day: date, slot: time) -> None:
        """Take a free slot off the doctor's calendar."""
        self._require_doctor(doctor_id)
        with self.locks.hold(doctor_id):
            self._book_slot(doctor_id, day, slot)
        self._flush(AVAILABILITY_COLLECTION)

    def unbook_slot(self, doctor_id: str, day: date, slot: time) -> bool:
        """Put a slot back on the calendar; returns False if it was already free."""
        with self.locks.hold(doctor_id):
            released = self._release_slot(doctor_id, day, slot)
        if released:
            self._flush(AVAILABILITY_COLLECTION)
        return released

    # ------------------------------------------------------------------
    # Appointment lifecycle
    # ------------------------------------------------------------------

    def schedule_appointment(self, doctor_id: str, patient_id: str, when: datetime) -> int:
        """Book the slot at ``when`` and create a PENDING appointment for it."""
        self._require_local_time(when)
        self._require_doctor(doctor_id)
        self._require_patient(patient_id)
        day, slot = when.date(), when.time()

        with self.locks.hold(doctor_id):
            if self.appointments.active_at(doctor_id, when) is not None:
                logger.warning(f"Doctor {doctor_id} already has an appointment at {when.isoformat()}")
                raise SlotUnavailableError(doctor_id, day, slot)
            self._book_slot(doctor_id, day, slot)
            appointment = Appointment(
                id=self.appointments.next_id(),
                doctor_id=doctor_id,
                patient_id=patient_id,
                date_time=when,
                status=AppointmentStatus.PENDING,
            )
            self.appointments.add(appointment)

        logger.info(
            f"Appointment {appointment.id} scheduled: patient {patient_id} with "
            f"doctor {doctor_id} at {when.isoformat()}"
        )
        self._flush(AVAILABILITY_COLLECTION, APPOINTMENTS_COLLECTION)
        return appointment.id

    def reschedule_appointment(self, appointment_id: int, new_when: datetime) -> Appointment:
        """Move an appointment to another free slot of the same doctor.

        The new slot is checked before anything changes, so a failure leaves
        both the appointment and the calendar as they were.
        """
        self._require_local_time(new_when)
        doctor_id = self.get_appointment(appointment_id).doctor_id

        with self.locks.hold(doctor_id):
            appointment = self.get_appointment(appointment_id)
            if appointment.status.is_terminal:
                raise InvalidTransitionError(
                    appointment_id, appointment.status,
                    reason="only pending or confirmed appointments can be rescheduled",
                )
            if appointment.date_time == new_when:
                return appointment

            new_day, new_slot = new_when.date(), new_when.time()
            if self.appointments.active_at(doctor_id, new_when) is not None:
                raise SlotUnavailableError(doctor_id, new_day, new_slot)
            self._book_slot(doctor_id, new_day, new_slot)

            old_when = appointment.date_time
            self._release_slot(doctor_id, old_when.date(), old_when.time())
            appointment.date_time = new_when
            self.appointments.save(appointment)

        logger.info(
            f"Appointment {appointment_id} rescheduled from {old_when.isoformat()} "
            f"to {new_when.isoformat()}"
        )
        self._flush(AVAILABILITY_COLLECTION, APPOINTMENTS_COLLECTION)
        return appointment

    def cancel_appointment(self, appointment_id: int) -> Appointment:
        """Cancel an appointment and free its slot. Cancelling twice is a no-op."""
        return self.update_appointment_status(appointment_id, AppointmentStatus.CANCELED)

    def update_appointment_status(self, appointment_id: int, status: AppointmentStatus) -> Appointment:
        """Accept, decline or cancel an appointment.

        Declining and cancelling release the slot. Completion is reserved for
        outcome recording and is rejected here.
        """
        if status == AppointmentStatus.COMPLETED:
            current = self.get_appointment(appointment_id).status
            if current != AppointmentStatus.COMPLETED:
                raise InvalidTransitionError(
                    appointment_id, current, status,
                    reason="completion requires recording an appointment outcome",
                )
        doctor_id = self.get_appointment(appointment_id).doctor_id

        with self.locks.hold(doctor_id):
            appointment = self.get_appointment(appointment_id)
            previous = appointment.status
            changed = self._apply_status(appointment, status)

        if changed:
            logger.info(f"Appointment {appointment_id} status {previous.value} -> {status.value}")
            self._flush(AVAILABILITY_COLLECTION, APPOINTMENTS_COLLECTION)
        return appointment

    def accept_all_upcoming(self, doctor_id: str) -> BulkStatusResult:
        return self._bulk_update(doctor_id, AppointmentStatus.CONFIRMED)

    def decline_all_upcoming(self, doctor_id: str) -> BulkStatusResult:
        """Decline pending requests and cancel confirmed appointments; both free their slots."""
        return self._bulk_update(doctor_id, AppointmentStatus.DECLINED, BULK_DECLINE_TARGETS)

    @contextmanager
    def completing(self, appointment_id: int) -> Iterator[Appointment]:
        """Hold the doctor's lock while an outcome is recorded.

        The appointment becomes COMPLETED only if the block exits without
        raising. The caller flushes the appointments collection afterwards.
        """
        doctor_id = self.get_appointment(appointment_id).doctor_id
        with self.locks.hold(doctor_id):
            appointment = self.get_appointment(appointment_id)
            self._check_transition(appointment, AppointmentStatus.COMPLETED)
            yield appointment
            appointment.status = AppointmentStatus.COMPLETED
            self.appointments.save(appointment)
        logger.info(f"Appointment {appointment_id} completed")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.appointments.get(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(appointment_id)
        return appointment

    def appointments_for_patient(
        self, patient_id: str, view: AppointmentView = AppointmentView.ALL
    ) -> List[Appointment]:
        matches = self._view_filter(view)
        return self.appointments.find(
            lambda appointment: appointment.patient_id == patient_id and matches(appointment)
        )

    def appointments_for_doctor(
        self, doctor_id: str, view: AppointmentView = AppointmentView.ALL
    ) -> List[Appointment]:
        matches = self._view_filter(view)
        return self.appointments.find(
            lambda appointment: appointment.doctor_id == doctor_id and matches(appointment)
        )

    def _view_filter(self, view: AppointmentView) -> Callable[[Appointment], bool]:
        # Past means COMPLETED, whatever the appointment's date
        if view == AppointmentView.SCHEDULED:
            return lambda appointment: appointment.status.is_active
        if view == AppointmentView.PAST:
            return lambda appointment: appointment.status == AppointmentStatus.COMPLETED
        if view == AppointmentView.UPCOMING:
            now = self.clock()
            return lambda appointment: appointment.status.is_active and appointment.date_time > now
        return lambda appointment: True

    # ------------------------------------------------------------------
    # Internals, called with the doctor's lock held
    # ------------------------------------------------------------------

    def _book_slot(self, doctor_id: str, day: date, slot: time) -> None:
        if not self.availability.has_day(doctor_id, day):
            raise NoAvailabilityError(doctor_id, day)
        if not self.availability.remove(doctor_id, day, slot):
            logger.warning(
                f"Slot {day.isoformat()} {slot.isoformat()} not available for doctor {doctor_id}"
            )
            raise SlotUnavailableError(doctor_id, day, slot)

    def _release_slot(self, doctor_id: str, day: date, slot: time) -> bool:
        released = self.availability.insert_sorted(doctor_id, day, slot)
        if not released:
            logger.debug(f"Slot {day.isoformat()} {slot.isoformat()} already free for doctor {doctor_id}")
        return released

    def _check_transition(self, appointment: Appointment, status: AppointmentStatus) -> None:
        if status not in ALLOWED_TRANSITIONS[appointment.status]:
            raise InvalidTransitionError(appointment.id, appointment.status, status)

    def _apply_status(self, appointment: Appointment, status: AppointmentStatus) -> bool:
        if appointment.status == status:
            return False
        self._check_transition(appointment, status)
        appointment.status = status
        self.appointments.save(appointment)
        # Only once the new status is stored does the slot go back
        if status in SLOT_RELEASING_STATUSES:
            when = appointment.date_time
            self._release_slot(appointment.doctor_id, when.date(), when.time())
        return True

    def _bulk_update(
        self,
        doctor_id: str,
        status: AppointmentStatus,
        targets: Optional[Dict[AppointmentStatus, AppointmentStatus]] = None,
    ) -> BulkStatusResult:
        """Best effort: failures are reported per item, successes are kept.

        ``targets`` maps an appointment's current status to the one it moves
        to; statuses it does not name move to ``status``.
        """
        targets = targets or {}
        self._require_doctor(doctor_id)
        result = BulkStatusResult(requested_status=status)
        now = self.clock()
        changed = False

        with self.locks.hold(doctor_id):
            upcoming = self.appointments.find(
                lambda appointment: (
                    appointment.doctor_id == doctor_id
                    and appointment.status.is_active
                    and appointment.date_time > now
                )
            )
            for appointment in upcoming:
                try:
                    applied = self._apply_status(
                        appointment, targets.get(appointment.status, status)
                    )
                except ClinicError as e:
                    logger.warning(f"Bulk update of appointment {appointment.id} failed: {e.message}")
                    result.failed[appointment.id] = e.message
                    continue
                if applied:
                    result.updated.append(appointment.id)
                    changed = True
                else:
                    result.unchanged.append(appointment.id)

        logger.info(
            f"Bulk {status.value} for doctor {doctor_id}: {len(result.updated)} updated, "
            f"{len(result.unchanged)} unchanged, {len(result.failed)} failed"
        )
        if changed:
            self._flush(AVAILABILITY_COLLECTION, APPOINTMENTS_COLLECTION)
        return result

    @staticmethod
    def _require_local_time(when: datetime) -> None:
        # Calendars hold the clinic's naive local times
        if when.utcoffset() is not None:
            raise OffsetDateTimeError(when)

    def _require_doctor(self, doctor_id: str) -> None:
        if self.directory.find_doctor_by_id(doctor_id) is None:
            raise DoctorNotFoundError(doctor_id)

    def _require_patient(self, patient_id: str) -> None:
        if self.directory.find_patient_by_id(patient_id) is None:
            raise PatientNotFoundError(patient_id)

    def _flush(self, *collections: str) -> None:
        if self.writer is not None:
            self.writer.flush(*collections)
