"""
Registration binding.

Turns a submitted registration form into a PENDING Doctor or Patient,
consuming the invite token in the same transaction. Token consumption is
a conditional UPDATE (only while consumed_at IS NULL), so of two racing
registrations with one token exactly one succeeds.
"""
import logging
from typing import Optional, Union

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.authz.models import ApprovalStatus, Doctor, RoleChoices, assign_role
from apps.clinical.models import Patient
from apps.core.exceptions import (
    AppValidationError,
    DoctorNotFoundError,
    TokenAlreadyConsumedError,
    TokenExpiredError,
    TokenRoleMismatchError,
)
from apps.core.observability import log_domain_event, metrics
from apps.core.retry import retry_on_transient
from apps.core.validation import validate
from apps.onboarding.invites import check_token_usable, get_invite
from apps.onboarding.models import InviteRole, InviteToken
from apps.onboarding.signals import registration_bound

logger = logging.getLogger(__name__)
User = get_user_model()

DOCTOR_PROFILE_SECTIONS = {
    'personal_info': ('first_name', 'last_name', 'email', 'phone', 'date_of_birth', 'gender'),
    'professional_info': ('medical_license', 'experience', 'qualification', 'specialization'),
    'practice_info': ('clinic_name', 'clinic_number', 'clinic_address', 'city', 'state', 'pincode'),
}

PATIENT_PROFILE_SECTIONS = {
    'personal_info': ('first_name', 'last_name', 'email', 'phone', 'date_of_birth', 'gender', 'age'),
    'address_info': ('address', 'city', 'state', 'pincode'),
    'lifestyle': ('occupation', 'work_type'),
}


def _clean(profile_data: dict) -> dict:
    cleaned = {}
    for key, value in (profile_data or {}).items():
        cleaned[key] = value.strip() if isinstance(value, str) else value
    if cleaned.get('email'):
        cleaned['email'] = cleaned['email'].lower()
    if isinstance(cleaned.get('gender'), str):
        cleaned['gender'] = cleaned['gender'].lower()
    if isinstance(cleaned.get('work_type'), str):
        cleaned['work_type'] = cleaned['work_type'].lower()
    return cleaned


def _sections(data: dict, layout: dict) -> dict:
    profile = {}
    for section, fields in layout.items():
        profile[section] = {
            name: data[name] for name in fields
            if data.get(name) not in (None, '')
        }
    return profile


def build_doctor_profile(data: dict, invite: Optional[InviteToken]) -> dict:
    profile = _sections(data, DOCTOR_PROFILE_SECTIONS)
    profile['registration_info'] = _registration_info(invite)
    return profile


def build_patient_profile(data: dict, invite: Optional[InviteToken]) -> dict:
    profile = _sections(data, PATIENT_PROFILE_SECTIONS)
    profile['emergency_contact'] = {
        'name': data.get('emergency_contact', ''),
        'phone': data.get('emergency_phone', ''),
    }
    profile['registration_info'] = _registration_info(invite)
    return profile


def _registration_info(invite):
    return {
        'registered_at': timezone.now().isoformat(),
        'invite_id': str(invite.id) if invite else None,
        'created_by': str(invite.created_by_user_id) if invite and invite.created_by_user_id else None,
    }


def _resolve_patient_doctor(invite: Optional[InviteToken], doctor_public_id) -> Doctor:
    """
    The doctor a new patient is assigned to.

    A doctor-issued invite decides it; otherwise (admin invite or direct
    registration) the patient supplies the doctor's public UID. Either way
    the doctor must currently be APPROVED.
    """
    if invite is not None and invite.issuing_doctor_id:
        doctor = invite.issuing_doctor
        if doctor.status != ApprovalStatus.APPROVED:
            raise DoctorNotFoundError(detail=['the inviting doctor is no longer approved'])
        return doctor

    public_id = str(doctor_public_id or '').strip().upper()
    if not public_id:
        raise AppValidationError(detail=['doctor_public_id: this field is required'])
    doctor = Doctor.objects.filter(doctor_uid=public_id, status=ApprovalStatus.APPROVED).first()
    if doctor is None:
        raise DoctorNotFoundError(detail=[f'doctor_public_id: {public_id}'])
    return doctor


def _consume(invite: InviteToken) -> None:
    """Mark the token consumed iff nobody else has; must run inside the atomic block."""
    now = timezone.now()
    updated = InviteToken.objects.filter(
        pk=invite.pk,
        consumed_at__isnull=True,
        expires_at__gt=now,
    ).update(consumed_at=now)
    if updated == 1:
        invite.consumed_at = now
        return

    current = InviteToken.objects.get(pk=invite.pk)
    if current.consumed_at is not None:
        raise TokenAlreadyConsumedError()
    raise TokenExpiredError()


def _login_user(data: dict, role_name: str):
    """
    Create the login account, or reuse an existing one when the same person
    registers for a second role with the same credentials.
    """
    existing = User.objects.filter(email=data['email']).first()
    if existing is not None:
        if not existing.check_password(data['password']):
            raise AppValidationError(detail=['email: an account with this email already exists'])
        user = existing
    else:
        user = User.objects.create_user(
            email=data['email'],
            password=data['password'],
            first_name=data.get('first_name', ''),
            last_name=data.get('last_name', ''),
        )
    assign_role(user, role_name)
    return user


@retry_on_transient(operation='bind_registration')
def bind_registration(
    token: Optional[str],
    role: str,
    profile_data: dict,
    doctor_public_id: Optional[str] = None,
) -> Union[Doctor, Patient]:
    """
    Register a doctor or patient in PENDING state.

    Doctors always need a DOCTOR invite. Patients either use a PATIENT invite
    or register directly with `doctor_public_id`. Nothing is written unless
    every check passes: entity, login account and token consumption commit
    together.

    Args:
        token: Invite token (None for direct patient registration)
        role: 'DOCTOR' | 'PATIENT'
        profile_data: Flat form fields (first_name, email, phone, password, ...)
        doctor_public_id: Doctor UID (DOC000001) for patients without a
            doctor-issued invite

    Returns:
        The created Doctor or Patient

    Raises:
        AppValidationError: Missing/malformed fields, duplicate email,
            doctor registration without a token
        TokenNotFoundError / TokenExpiredError / TokenRoleMismatchError
        TokenAlreadyConsumedError: Token used before, including by a
            concurrent registration
        DoctorNotFoundError: Assigned doctor missing or not APPROVED
    """
    role = str(role or '').strip().upper()
    if role not in InviteRole.values:
        raise AppValidationError(detail=['role: must be one of DOCTOR, PATIENT'])

    data = _clean(profile_data)
    entity = role.lower()

    try:
        validate(entity, 'register', data)

        invite = None
        if token:
            invite = get_invite(token)
            check_token_usable(invite)
            if invite.role != role:
                raise TokenRoleMismatchError(
                    detail=[f'token role: {invite.role}', f'requested role: {role}']
                )
        elif role == InviteRole.DOCTOR:
            raise AppValidationError(detail=['token: doctors can only register with an invite'])

        model = Doctor if role == InviteRole.DOCTOR else Patient
        if model.objects.filter(email=data['email']).exists():
            raise AppValidationError(
                detail=[f'email: a {entity} with this email already exists']
            )

        doctor = _resolve_patient_doctor(invite, doctor_public_id) if role == InviteRole.PATIENT else None

        try:
            with transaction.atomic():
                if invite is not None:
                    _consume(invite)

                if role == InviteRole.DOCTOR:
                    user = _login_user(data, RoleChoices.DOCTOR)
                    instance = Doctor.objects.create(
                        user=user,
                        email=data['email'],
                        status=ApprovalStatus.PENDING,
                        profile=build_doctor_profile(data, invite),
                        invite_token=invite,
                    )
                else:
                    user = _login_user(data, RoleChoices.PATIENT)
                    instance = Patient.objects.create(
                        user=user,
                        email=data['email'],
                        status=ApprovalStatus.PENDING,
                        doctor=doctor,
                        profile=build_patient_profile(data, invite),
                        invite_token=invite,
                    )

                registration_bound.send(
                    sender=model,
                    entity_type=model.__name__,
                    entity_id=str(instance.id),
                )
        except IntegrityError:
            # Lost a race on the unique email between the check and the insert
            raise AppValidationError(
                detail=[f'email: a {entity} with this email already exists']
            )
    except (TokenExpiredError, TokenAlreadyConsumedError, TokenRoleMismatchError) as e:
        metrics.registrations_total.labels(role=role, result=e.code.lower()).inc()
        log_domain_event(
            'registration_rejected',
            entity_type=role.title(),
            result='blocked',
            code=e.code,
        )
        raise
    except AppValidationError:
        metrics.registrations_total.labels(role=role, result='invalid').inc()
        raise

    metrics.registrations_total.labels(role=role, result='success').inc()
    log_domain_event(
        'registration_bound',
        entity_type=model.__name__,
        entity_id=str(instance.id),
        entity_ids={
            'invite_id': str(invite.id) if invite else None,
            'doctor_id': str(doctor.id) if doctor else None,
        },
        direct=invite is None,
    )
    return instance
