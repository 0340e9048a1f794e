"""
Who may read or write a patient's clinical data.

Write (vitals, diet plans): an admin, or the patient's assigned doctor
while that doctor is APPROVED.
Read (history, compliance, plan): the same, plus the patient themself.
"""
from apps.authz.models import ApprovalStatus
from apps.core.exceptions import AuthorizationError, PatientNotActiveError, PatientNotFoundError
from apps.core.validation import coerce_uuid
from apps.onboarding.invites import doctor_for_actor

from .models import Patient


def get_patient(patient_id, lock=False) -> Patient:
    pk = coerce_uuid(patient_id)
    queryset = Patient.objects.select_related('doctor')
    if lock:
        queryset = queryset.select_for_update()
    patient = queryset.filter(id=pk).first() if pk else None
    if patient is None:
        raise PatientNotFoundError(detail=[f'id: {patient_id}'])
    return patient


def is_assigned_doctor(actor, patient) -> bool:
    if not actor.is_doctor:
        return False
    own = doctor_for_actor(actor)
    return own is not None and own.id == patient.doctor_id and own.status == ApprovalStatus.APPROVED


def is_self(actor, patient) -> bool:
    return actor.is_patient and patient.user_id is not None and str(patient.user_id) == str(actor.actor_id)


def authorize_write(actor, patient) -> None:
    if actor.is_admin or is_assigned_doctor(actor, patient):
        return
    raise AuthorizationError(message='Only the assigned doctor or an admin can change this patient\'s records')


def authorize_read(actor, patient) -> None:
    if actor is None or actor.is_admin or is_assigned_doctor(actor, patient) or is_self(actor, patient):
        return
    raise AuthorizationError(message='Not allowed to view this patient\'s records')


def require_active(patient) -> None:
    """Vitals and diet tracking only run for APPROVED patients still in treatment."""
    if not patient.is_active_for_treatment:
        state = 'CURED' if patient.is_cured else patient.status
        raise PatientNotActiveError(detail=[f'patient status: {state}'])


def patients_for_actor(actor):
    """
    Patients the actor may list: all for admins, the doctor's own for doctors,
    the patient's own record for patients.
    """
    queryset = Patient.objects.select_related('doctor').order_by('-created_at')
    if actor.is_admin:
        return queryset
    if actor.is_doctor:
        own = doctor_for_actor(actor)
        return queryset.filter(doctor=own) if own is not None else queryset.none()
    if actor.is_patient:
        return queryset.filter(user_id=actor.actor_id)
    raise AuthorizationError(message='Not allowed to list patients')
