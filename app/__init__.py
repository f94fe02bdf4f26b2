"""
Clinic Scheduling Engine

A FastAPI-based service owning doctors' calendars, the appointment lifecycle
and the clinical/billing outcomes of completed appointments.
"""

__version__ = "1.0.0"
