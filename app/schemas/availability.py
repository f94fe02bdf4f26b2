from datetime import date, time
from typing import Dict, List

from pydantic import BaseModel, Field


class MonthlyAvailabilityRequest(BaseModel):
    start_date: date
    start_time: time
    end_time: time
    interval_minutes: int = Field(..., description="Minutes between consecutive slots")


class DayAvailability(BaseModel):
    doctor_id: str
    date: date
    slots: List[time]


class MonthlyAvailability(BaseModel):
    doctor_id: str
    days: Dict[date, List[time]]


class SlotCheck(BaseModel):
    doctor_id: str
    date: date
    slot: time
    available: bool
