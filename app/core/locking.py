import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class DoctorLocks:
    """One re-entrant lock per doctor.

    A doctor's calendar and appointment set form a single unit of contention:
    booking, unbooking, rescheduling, cancelling and status changes for the
    same doctor are serialized, different doctors proceed in parallel.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def lock_for(self, doctor_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(doctor_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[doctor_id] = lock
            return lock

    @contextmanager
    def hold(self, doctor_id: str) -> Iterator[None]:
        lock = self.lock_for(doctor_id)
        with lock:
            yield
