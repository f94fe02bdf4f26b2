"""Per-doctor calendar of free time-of-day slots."""
import bisect
import calendar
import threading
from datetime import date, time, timedelta
from typing import Callable, Dict, Iterable, List


def month_days(start_date: date) -> List[date]:
    """Every calendar day from ``start_date`` to the last day of its month."""
    last_day = calendar.monthrange(start_date.year, start_date.month)[1]
    end_date = start_date.replace(day=last_day)
    return [start_date + timedelta(days=offset) for offset in range((end_date - start_date).days + 1)]


class AvailabilityStore:
    """doctor id -> date -> ascending list of free slots, no duplicates.

    Only keyed reads and writes live here; deciding which slots may be
    freed or consumed is up to the scheduling service.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._calendars: Dict[str, Dict[date, List[time]]] = {}

    def get(self, doctor_id: str, day: date) -> List[time]:
        with self._lock:
            return list(self._calendars.get(doctor_id, {}).get(day, []))

    def get_all(self, doctor_id: str) -> Dict[date, List[time]]:
        with self._lock:
            days = self._calendars.get(doctor_id, {})
            return {day: list(days[day]) for day in sorted(days)}

    def has_day(self, doctor_id: str, day: date) -> bool:
        with self._lock:
            return day in self._calendars.get(doctor_id, {})

    def contains(self, doctor_id: str, day: date, slot: time) -> bool:
        with self._lock:
            return slot in self._calendars.get(doctor_id, {}).get(day, [])

    def replace_month(
        self,
        doctor_id: str,
        start_date: date,
        per_day: Callable[[date], Iterable[time]],
    ) -> Dict[date, List[time]]:
        """Overwrite every day from ``start_date`` to its month end.

        Days outside that range keep whatever they had.
        """
        replaced = {day: sorted(set(per_day(day))) for day in month_days(start_date)}
        with self._lock:
            days = self._calendars.setdefault(doctor_id, {})
            for day, slots in replaced.items():
                days[day] = list(slots)
        return replaced

    def remove(self, doctor_id: str, day: date, slot: time) -> bool:
        with self._lock:
            slots = self._calendars.get(doctor_id, {}).get(day)
            if slots is None or slot not in slots:
                return False
            slots.remove(slot)
            return True

    def insert_sorted(self, doctor_id: str, day: date, slot: time) -> bool:
        with self._lock:
            slots = self._calendars.setdefault(doctor_id, {}).setdefault(day, [])
            position = bisect.bisect_left(slots, slot)
            if position < len(slots) and slots[position] == slot:
                return False
            slots.insert(position, slot)
            return True

    # Persistence

    def to_records(self) -> List[dict]:
        with self._lock:
            return [
                {
                    "doctor_id": doctor_id,
                    "date": day.isoformat(),
                    "times": [slot.isoformat() for slot in days[day]],
                }
                for doctor_id, days in sorted(self._calendars.items())
                for day in sorted(days)
            ]

    def load_records(self, records: Iterable[dict]) -> None:
        calendars: Dict[str, Dict[date, List[time]]] = {}
        for record in records:
            day = date.fromisoformat(record["date"])
            slots = sorted({time.fromisoformat(value) for value in record.get("times", [])})
            calendars.setdefault(record["doctor_id"], {})[day] = slots
        with self._lock:
            self._calendars = calendars

    @staticmethod
    def record_key(record: dict) -> str:
        return f"{record['doctor_id']}:{record['date']}"
