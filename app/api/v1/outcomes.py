from typing import List, Optional

from fastapi import APIRouter, Depends, status

from ...api.deps import (
    ensure_self_or_admin, get_current_user_token, get_services, require_role,
)
from ...core.security import TokenPayload, UserRole
from ...schemas.outcome import (
    AppointmentOutcome, AppointmentRecord, BillingStatus, BillingStatusUpdate,
    OutcomeCreate, PrescriptionStatus, PrescriptionStatusUpdate,
)
from ...services.container import ClinicServices

router = APIRouter(tags=["Outcomes"])

@router.post(
    "/appointments/{appointment_id}/outcome",
    response_model=AppointmentOutcome,
    status_code=status.HTTP_201_CREATED
)
def record_outcome(
    appointment_id: int,
    request: OutcomeCreate,
    caller: TokenPayload = Depends(require_role([UserRole.DOCTOR, UserRole.ADMIN])),
    services: ClinicServices = Depends(get_services)
):
    """Record the outcome of a confirmed appointment and mark it completed."""
    appointment = services.scheduling.get_appointment(appointment_id)
    ensure_self_or_admin(caller, appointment.doctor_id)
    return services.outcome_service.record_outcome(
        appointment_id,
        request.service_type,
        request.medication_ids,
        request.consultation_notes
    )

@router.get("/appointments/{appointment_id}/outcome", response_model=AppointmentOutcome)
def view_outcome(
    appointment_id: int,
    caller: TokenPayload = Depends(get_current_user_token),
    services: ClinicServices = Depends(get_services)
):
    """View the outcome of a completed appointment."""
    appointment = services.scheduling.get_appointment(appointment_id)
    if caller.role == UserRole.PATIENT:
        ensure_self_or_admin(caller, appointment.patient_id)
    elif caller.role == UserRole.DOCTOR:
        ensure_self_or_admin(caller, appointment.doctor_id)
    return services.outcome_service.get_outcome(appointment_id)

@router.patch("/appointments/{appointment_id}/outcome/prescription", response_model=AppointmentOutcome)
def update_prescription_status(
    appointment_id: int,
    request: PrescriptionStatusUpdate,
    _: TokenPayload = Depends(require_role([UserRole.PHARMACIST, UserRole.ADMIN])),
    services: ClinicServices = Depends(get_services)
):
    """Update prescription status (pharmacist)."""
    return services.outcome_service.update_prescription_status(appointment_id, request.status)

@router.patch("/appointments/{appointment_id}/outcome/billing", response_model=AppointmentOutcome)
def update_billing_status(
    appointment_id: int,
    request: BillingStatusUpdate,
    caller: TokenPayload = Depends(require_role([UserRole.PATIENT, UserRole.ADMIN])),
    services: ClinicServices = Depends(get_services)
):
    """Pay a bill (patient) or correct the billing status (admin)."""
    appointment = services.scheduling.get_appointment(appointment_id)
    ensure_self_or_admin(caller, appointment.patient_id)
    return services.outcome_service.update_billing_status(appointment_id, request.status)

@router.get("/outcomes", response_model=List[AppointmentOutcome])
def view_outcomes(
    prescription_status: Optional[PrescriptionStatus] = None,
    billing_status: Optional[BillingStatus] = None,
    _: TokenPayload = Depends(require_role([UserRole.PHARMACIST, UserRole.ADMIN])),
    services: ClinicServices = Depends(get_services)
):
    """List appointment outcomes, optionally filtered by status."""
    return services.outcome_service.view_outcomes_by_status(prescription_status, billing_status)

@router.get("/patients/{patient_id}/history", response_model=List[AppointmentRecord])
def patient_history(
    patient_id: str,
    caller: TokenPayload = Depends(require_role([UserRole.PATIENT, UserRole.ADMIN])),
    services: ClinicServices = Depends(get_services)
):
    """A patient's appointments, each with its outcome once completed."""
    ensure_self_or_admin(caller, patient_id)
    return services.outcome_service.history_for_patient(patient_id)

@router.get("/doctors/{doctor_id}/history", response_model=List[AppointmentRecord])
def doctor_history(
    doctor_id: str,
    caller: TokenPayload = Depends(require_role([UserRole.DOCTOR, UserRole.ADMIN])),
    services: ClinicServices = Depends(get_services)
):
    """A doctor's appointments, each with its outcome once completed."""
    ensure_self_or_admin(caller, doctor_id)
    return services.outcome_service.history_for_doctor(doctor_id)
