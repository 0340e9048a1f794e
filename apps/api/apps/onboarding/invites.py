"""
Invite token issuing and validation.

Admins invite doctors and patients; an APPROVED doctor invites patients,
who are then bound to that doctor at registration. Sending the invite
e-mail is left to the Celery task behind the invite_issued signal.
"""
import logging
import secrets
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from apps.authz.models import ApprovalStatus, Doctor
from apps.core.actors import Actor
from apps.core.exceptions import (
    AppValidationError,
    AuthorizationError,
    InvalidIssuerError,
    TokenAlreadyConsumedError,
    TokenExpiredError,
    TokenNotFoundError,
)
from apps.core.observability import log_domain_event, metrics
from apps.core.retry import retry_on_transient
from apps.core.validation import coerce_uuid, validate
from apps.onboarding.models import InviteRole, InviteToken
from apps.onboarding.signals import invite_issued

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def generate_token() -> str:
    """64 hex characters from 32 random bytes."""
    return secrets.token_hex(TOKEN_BYTES)


def invite_validity() -> timedelta:
    return timedelta(hours=getattr(settings, 'INVITE_TOKEN_VALIDITY_HOURS', 72))


def doctor_for_actor(actor: Actor) -> Optional[Doctor]:
    """The Doctor row linked to the acting user, if any."""
    if not actor.actor_id:
        return None
    return Doctor.objects.filter(user_id=actor.actor_id).first()


def _approved_doctor(doctor_id) -> Doctor:
    doctor_pk = coerce_uuid(doctor_id)
    doctor = Doctor.objects.filter(id=doctor_pk).first() if doctor_pk else None
    if doctor is None or doctor.status != ApprovalStatus.APPROVED:
        raise InvalidIssuerError(detail=[f'issuer_doctor_id: {doctor_id}'])
    return doctor


@retry_on_transient(operation='issue_invite')
def issue_invite(
    actor: Actor,
    role: str,
    issuer_doctor_id=None,
    recipient_email: Optional[str] = None,
    recipient_name: Optional[str] = None,
) -> InviteToken:
    """
    Create a single-use invite token.

    Rules:
    - Admin: DOCTOR or PATIENT invites. A PATIENT invite may name an
      APPROVED issuing doctor; a DOCTOR invite may not name one.
    - Doctor: PATIENT invites only, always bound to the acting doctor,
      who must be APPROVED.
    - Patients and anonymous actors cannot issue invites.

    Args:
        actor: Who is issuing
        role: 'DOCTOR' | 'PATIENT'
        issuer_doctor_id: Doctor UUID to bind a PATIENT invite to
        recipient_email: Optional address the invite is sent to
        recipient_name: Optional display name for the e-mail

    Returns:
        The persisted InviteToken (expires_at = now + validity window)

    Raises:
        AppValidationError: Unknown role or malformed recipient_email
        AuthorizationError: Actor may not issue this kind of invite
        InvalidIssuerError: Issuing doctor missing or not APPROVED
    """
    role = str(role or '').strip().upper()
    recipient_email = (recipient_email or '').strip()
    validate('invite', 'issue', {'role': role, 'recipient_email': recipient_email})

    if actor.is_admin:
        if role == InviteRole.DOCTOR and issuer_doctor_id:
            raise AppValidationError(
                message='Doctor invites cannot be bound to an issuing doctor',
                detail=['issuer_doctor_id: must be empty for DOCTOR invites'],
            )
        issuing_doctor = _approved_doctor(issuer_doctor_id) if issuer_doctor_id else None
    elif actor.is_doctor:
        if role != InviteRole.PATIENT:
            raise AuthorizationError(message='Doctors can only invite patients')
        own = doctor_for_actor(actor)
        if own is None:
            raise InvalidIssuerError(detail=['acting user has no doctor record'])
        if issuer_doctor_id and coerce_uuid(issuer_doctor_id) != own.id:
            raise AuthorizationError(message='Doctors can only issue invites bound to themselves')
        if own.status != ApprovalStatus.APPROVED:
            raise InvalidIssuerError(detail=[f'doctor status: {own.status}'])
        issuing_doctor = own
    else:
        raise AuthorizationError(message='Only admins and doctors can issue invites')

    with transaction.atomic():
        invite = InviteToken.objects.create(
            token=generate_token(),
            role=role,
            issuing_doctor=issuing_doctor,
            created_by_user_id=actor.actor_id,
            recipient_email=recipient_email,
            recipient_name=(recipient_name or '').strip(),
            expires_at=timezone.now() + invite_validity(),
        )
        invite_issued.send(
            sender=InviteToken,
            invite_id=str(invite.id),
            has_recipient=bool(recipient_email),
        )

    metrics.invites_issued_total.labels(role=role, issuer_role=actor.actor_role).inc()
    log_domain_event(
        'invite_issued',
        entity_type='InviteToken',
        entity_id=str(invite.id),
        entity_ids={'issuing_doctor_id': str(issuing_doctor.id) if issuing_doctor else None},
        role=role,
        issuer_role=actor.actor_role,
        expires_at=invite.expires_at.isoformat(),
    )
    return invite


def check_token_usable(invite: InviteToken, now=None) -> None:
    """
    Raise when `invite` can no longer be bound.

    Raises:
        TokenAlreadyConsumedError: consumed_at is set
        TokenExpiredError: now >= expires_at
    """
    if invite.is_consumed:
        raise TokenAlreadyConsumedError()
    if invite.is_expired(now):
        raise TokenExpiredError(detail=[f'expired_at: {invite.expires_at.isoformat()}'])


def get_invite(token: str) -> InviteToken:
    token = (token or '').strip()
    invite = (
        InviteToken.objects.select_related('issuing_doctor').filter(token=token).first()
        if token else None
    )
    if invite is None:
        raise TokenNotFoundError()
    return invite


def validate_invite(token: str) -> dict:
    """
    Read-only check used by the registration page before the form is shown.

    Returns:
        {role, expires_at, doctor_uid, doctor_name}; the doctor fields are
        only filled for invites bound to an issuing doctor.

    Raises:
        TokenNotFoundError, TokenAlreadyConsumedError, TokenExpiredError
    """
    invite = get_invite(token)
    check_token_usable(invite)

    doctor = invite.issuing_doctor
    return {
        'role': invite.role,
        'expires_at': invite.expires_at,
        'doctor_uid': doctor.doctor_uid if doctor else None,
        'doctor_name': doctor.display_name if doctor else None,
    }


def list_invites(actor: Actor):
    """
    Invites visible to the actor: all of them for admins, the doctor's own
    (bound to them or created by them) for doctors.

    Raises:
        AuthorizationError: Any other role
    """
    queryset = InviteToken.objects.select_related('issuing_doctor').order_by('-created_at')
    if actor.is_admin:
        return queryset
    if actor.is_doctor:
        own = doctor_for_actor(actor)
        if own is None:
            return queryset.none()
        return queryset.filter(Q(issuing_doctor=own) | Q(created_by_user_id=actor.actor_id))
    raise AuthorizationError(message='Only admins and doctors can list invites')


def purge_expired_invites(before, delete=False) -> int:
    """
    Count (and optionally delete) invites that expired before `before`
    without ever being consumed.

    Consumed tokens are never touched: they are the audit trail of who
    registered with which invite.

    Returns:
        Number of matching invites
    """
    stale = InviteToken.objects.filter(consumed_at__isnull=True, expires_at__lt=before)
    count = stale.count()
    if delete and count:
        with transaction.atomic():
            stale.delete()
    log_domain_event(
        'invites_purged' if delete else 'invites_purge_dry_run',
        entity_type='InviteToken',
        count=count,
        before=before.isoformat(),
    )
    return count
