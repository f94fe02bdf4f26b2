from typing import List

from fastapi import APIRouter, Depends, status

from ...api.deps import (
    ensure_self_or_admin, get_current_user_token, get_services, require_role,
)
from ...core.security import AuthorizationError, TokenPayload, UserRole
from ...schemas.appointment import (
    Appointment, AppointmentCreate, AppointmentReschedule, AppointmentStatus,
    AppointmentStatusUpdate, AppointmentView, BulkStatusResult,
)
from ...services.container import ClinicServices

router = APIRouter(tags=["Appointments"])

def _ensure_party(caller: TokenPayload, appointment: Appointment) -> None:
    """Only the appointment's own doctor or patient (or an admin) may touch it."""
    if caller.role == UserRole.ADMIN:
        return
    if caller.role == UserRole.DOCTOR and caller.sub == appointment.doctor_id:
        return
    if caller.role == UserRole.PATIENT and caller.sub == appointment.patient_id:
        return
    raise AuthorizationError("You are not a party to this appointment")

@router.post("/appointments", response_model=Appointment, status_code=status.HTTP_201_CREATED)
def schedule_appointment(
    request: AppointmentCreate,
    caller: TokenPayload = Depends(require_role([UserRole.PATIENT, UserRole.ADMIN])),
    services: ClinicServices = Depends(get_services)
):
    """Book a free slot; the new appointment is PENDING until the doctor accepts."""
    ensure_self_or_admin(caller, request.patient_id)
    appointment_id = services.scheduling.schedule_appointment(
        request.doctor_id, request.patient_id, request.date_time
    )
    return services.scheduling.get_appointment(appointment_id)

@router.get("/appointments/{appointment_id}", response_model=Appointment)
def view_appointment(
    appointment_id: int,
    caller: TokenPayload = Depends(get_current_user_token),
    services: ClinicServices = Depends(get_services)
):
    """View a single appointment."""
    appointment = services.scheduling.get_appointment(appointment_id)
    if caller.role != UserRole.PHARMACIST:
        _ensure_party(caller, appointment)
    return appointment

@router.post("/appointments/{appointment_id}/reschedule", response_model=Appointment)
def reschedule_appointment(
    appointment_id: int,
    request: AppointmentReschedule,
    caller: TokenPayload = Depends(require_role([UserRole.PATIENT, UserRole.ADMIN])),
    services: ClinicServices = Depends(get_services)
):
    """Move an appointment to another free slot of the same doctor."""
    _ensure_party(caller, services.scheduling.get_appointment(appointment_id))
    return services.scheduling.reschedule_appointment(appointment_id, request.date_time)

@router.post("/appointments/{appointment_id}/cancel", response_model=Appointment)
def cancel_appointment(
    appointment_id: int,
    caller: TokenPayload = Depends(require_role([UserRole.PATIENT, UserRole.DOCTOR, UserRole.ADMIN])),
    services: ClinicServices = Depends(get_services)
):
    """Cancel an appointment and release its slot."""
    _ensure_party(caller, services.scheduling.get_appointment(appointment_id))
    return services.scheduling.cancel_appointment(appointment_id)

@router.patch("/appointments/{appointment_id}/status", response_model=Appointment)
def update_appointment_status(
    appointment_id: int,
    request: AppointmentStatusUpdate,
    caller: TokenPayload = Depends(require_role([UserRole.DOCTOR, UserRole.ADMIN])),
    services: ClinicServices = Depends(get_services)
):
    """Accept (CONFIRMED), decline (DECLINED) or cancel (CANCELED) an appointment."""
    _ensure_party(caller, services.scheduling.get_appointment(appointment_id))
    return services.scheduling.update_appointment_status(appointment_id, request.status)

@router.post("/doctors/{doctor_id}/appointments/accept-all", response_model=BulkStatusResult)
def accept_all_upcoming(
    doctor_id: str,
    caller: TokenPayload = Depends(require_role([UserRole.DOCTOR, UserRole.ADMIN])),
    services: ClinicServices = Depends(get_services)
):
    """Confirm every upcoming appointment of a doctor (best effort)."""
    ensure_self_or_admin(caller, doctor_id)
    return services.scheduling.accept_all_upcoming(doctor_id)

@router.post("/doctors/{doctor_id}/appointments/decline-all", response_model=BulkStatusResult)
def decline_all_upcoming(
    doctor_id: str,
    caller: TokenPayload = Depends(require_role([UserRole.DOCTOR, UserRole.ADMIN])),
    services: ClinicServices = Depends(get_services)
):
    """Decline pending and cancel confirmed upcoming appointments (best effort)."""
    ensure_self_or_admin(caller, doctor_id)
    return services.scheduling.decline_all_upcoming(doctor_id)

@router.get("/patients/{patient_id}/appointments", response_model=List[Appointment])
def view_patient_appointments(
    patient_id: str,
    view: AppointmentView = AppointmentView.ALL,
    caller: TokenPayload = Depends(require_role([UserRole.PATIENT, UserRole.ADMIN])),
    services: ClinicServices = Depends(get_services)
):
    """List a patient's appointments: all, scheduled, past or upcoming."""
    ensure_self_or_admin(caller, patient_id)
    return services.scheduling.appointments_for_patient(patient_id, view)

@router.get("/doctors/{doctor_id}/appointments", response_model=List[Appointment])
def view_doctor_appointments(
    doctor_id: str,
    view: AppointmentView = AppointmentView.ALL,
    caller: TokenPayload = Depends(require_role([UserRole.DOCTOR, UserRole.ADMIN])),
    services: ClinicServices = Depends(get_services)
):
    """List a doctor's appointments: all, scheduled, past or upcoming."""
    ensure_self_or_admin(caller, doctor_id)
    return services.scheduling.appointments_for_doctor(doctor_id, view)
