"""
Approval state machine for doctors and patients.

Every status change of a Doctor or Patient goes through here. Each
effective transition locks the row, mutates it, appends an
ApprovalAuditLog entry and emits approval_status_changed (whose receiver
queues the e-mail after commit). A failed call changes nothing.

    PENDING  --approve-->  APPROVED   (public UID assigned on first approval)
    APPROVED --approve-->  APPROVED   (no-op: no audit, no notification)
    PENDING  --reject--->  REJECTED   (reason required)
    APPROVED --reject--->  REJECTED   (reason required)
    APPROVED --revert--->  REJECTED
    REJECTED --revert--->  APPROVED | PENDING
    APPROVED patient --mark_cured--> cured, --reactivate--> active again
"""
import logging
from datetime import datetime
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models.functions import Length
from django.utils import timezone

from apps.authz.models import ApprovalStatus, Doctor
from apps.clinical.models import Patient
from apps.core.actors import Actor
from apps.core.exceptions import (
    AppValidationError,
    AuthorizationError,
    DoctorNotFoundError,
    InvalidTransitionError,
    PatientNotFoundError,
    TransientInfrastructureError,
)
from apps.core.observability import metrics
from apps.core.observability.events import log_approval_transition
from apps.core.retry import retry_on_transient
from apps.core.validation import coerce_uuid
from apps.onboarding.invites import doctor_for_actor
from apps.onboarding.models import ApprovalAction, ApprovalAuditLog, ApprovalEntityType
from apps.onboarding.signals import approval_status_changed

logger = logging.getLogger(__name__)

PENDING = ApprovalStatus.PENDING
APPROVED = ApprovalStatus.APPROVED
REJECTED = ApprovalStatus.REJECTED

# (action, from_status) -> statuses that action may lead to
ALLOWED_TRANSITIONS = {
    (ApprovalAction.APPROVE, PENDING): {APPROVED},
    (ApprovalAction.REJECT, PENDING): {REJECTED},
    (ApprovalAction.REJECT, APPROVED): {REJECTED},
    (ApprovalAction.REVERT, APPROVED): {REJECTED},
    (ApprovalAction.REVERT, REJECTED): {APPROVED, PENDING},
}

CURED = 'CURED'
ACTIVE = 'ACTIVE'

UID_PREFIXES = {
    ApprovalEntityType.DOCTOR: ('DOC', 'doctor_uid'),
    ApprovalEntityType.PATIENT: ('PAT', 'patient_uid'),
}
UID_DIGITS = 6

ENTITY_MODELS = {
    ApprovalEntityType.DOCTOR: (Doctor, DoctorNotFoundError),
    ApprovalEntityType.PATIENT: (Patient, PatientNotFoundError),
}


def normalize_entity_type(entity_type) -> str:
    """'doctor' / 'Doctor' / 'DOCTOR' -> 'Doctor'; anything else is a validation error."""
    value = str(entity_type or '').strip().lower()
    for choice in ApprovalEntityType:
        if choice.value.lower() == value:
            return choice.value
    raise AppValidationError(detail=['entity_type: must be doctor or patient'])


# ============================================================================
# Helpers
# ============================================================================

def _lock_entity(entity_type: str, entity_id):
    model, not_found = ENTITY_MODELS[entity_type]
    pk = coerce_uuid(entity_id)
    entity = model.objects.select_for_update().filter(id=pk).first() if pk else None
    if entity is None:
        raise not_found(detail=[f'id: {entity_id}'])
    return entity


def authorize(actor: Actor, entity_type: str, entity) -> None:
    """
    Doctor entities: admins only. Patient entities: admins or the patient's
    assigned doctor, who must be APPROVED.

    Raises:
        AuthorizationError
    """
    if actor.is_admin:
        return
    if entity_type == ApprovalEntityType.PATIENT and actor.is_doctor:
        own = doctor_for_actor(actor)
        if own is not None and own.id == entity.doctor_id and own.status == APPROVED:
            return
    metrics.approval_transitions_total.labels(
        entity_type=entity_type, action='any', result='denied'
    ).inc()
    raise AuthorizationError(
        message=f'Not allowed to change the status of this {entity_type.lower()}'
    )


def next_public_uid(entity_type: str) -> str:
    """
    Next DOC/PAT identifier: prefix + zero-padded sequence, one above the
    highest issued so far. Ordered by length first so the sequence keeps
    counting past the padded width (DOC1000000 after DOC999999). The unique
    constraint on the column rejects a concurrent duplicate.
    """
    model, _ = ENTITY_MODELS[entity_type]
    prefix, field = UID_PREFIXES[entity_type]
    latest = (
        model.objects.select_for_update()
        .filter(**{f'{field}__startswith': prefix})
        .annotate(uid_length=Length(field))
        .order_by('-uid_length', f'-{field}')
        .values_list(field, flat=True)
        .first()
    )
    sequence = int(latest[len(prefix):]) + 1 if latest else 1
    return f'{prefix}{sequence:0{UID_DIGITS}d}'


def _uid_field(entity_type):
    return UID_PREFIXES[entity_type][1]


def _public_uid(entity_type, entity):
    return getattr(entity, _uid_field(entity_type))


def _record(actor, entity_type, entity, action, from_status, to_status, reason='', metadata=None):
    audit = ApprovalAuditLog.objects.create(
        entity_type=entity_type,
        entity_id=entity.id,
        from_status=from_status,
        to_status=to_status,
        action=action,
        actor_user_id=actor.actor_id,
        actor_role=actor.actor_role or '',
        reason=reason or '',
        metadata=metadata or {},
    )
    approval_status_changed.send(
        sender=entity.__class__,
        entity_type=entity_type,
        entity_id=str(entity.id),
        action=action,
        from_status=from_status,
        to_status=to_status,
        audit_log_id=str(audit.id),
    )
    return audit


def _apply_status(entity_type, entity, to_status, reason, now: datetime):
    """Mutate `entity` for the new status and return the changed field names."""
    entity.status = to_status
    fields = ['status', 'updated_at']

    if to_status == APPROVED:
        uid_field = _uid_field(entity_type)
        if not getattr(entity, uid_field):
            setattr(entity, uid_field, next_public_uid(entity_type))
            fields.append(uid_field)
        entity.approved_at = now
        entity.rejection_reason = ''
        fields += ['approved_at', 'rejection_reason']
    elif to_status == REJECTED:
        entity.rejection_reason = reason or ''
        fields.append('rejection_reason')
    else:
        entity.rejection_reason = ''
        fields.append('rejection_reason')
    return fields


@retry_on_transient(operation='approval_transition')
def _transition(actor: Actor, entity_type, entity_id, action: str,
                to_status: str, reason: str = ''):
    entity_type = normalize_entity_type(entity_type)
    try:
        with transaction.atomic():
            entity = _lock_entity(entity_type, entity_id)
            authorize(actor, entity_type, entity)
            from_status = entity.status

            if action == ApprovalAction.APPROVE and from_status == APPROVED:
                metrics.approval_transitions_total.labels(
                    entity_type=entity_type, action=action, result='noop'
                ).inc()
                log_approval_transition(entity_type, entity, from_status, from_status,
                                        action, actor, result='noop')
                return entity

            if to_status not in ALLOWED_TRANSITIONS.get((action, from_status), set()):
                requested = f'{action} to {to_status}' if action == ApprovalAction.REVERT else str(action)
                raise InvalidTransitionError(from_status, requested)

            fields = _apply_status(entity_type, entity, to_status, reason, timezone.now())
            entity.save(update_fields=fields)
            _record(actor, entity_type, entity, action, from_status, to_status, reason,
                    metadata={'public_uid': _public_uid(entity_type, entity)})
    except InvalidTransitionError:
        metrics.approval_transitions_total.labels(
            entity_type=entity_type, action=action, result='invalid'
        ).inc()
        raise
    except IntegrityError as e:
        # Concurrent approval took the same UID; the retry allocates the next one
        raise TransientInfrastructureError(detail=['public uid allocation conflict']) from e

    metrics.approval_transitions_total.labels(
        entity_type=entity_type, action=action, result='success'
    ).inc()
    log_approval_transition(entity_type, entity, from_status, to_status, action, actor,
                            public_uid=_public_uid(entity_type, entity))
    return entity


# ============================================================================
# Operations
# ============================================================================

def approve(actor: Actor, entity_type, entity_id):
    """
    Approve a PENDING doctor or patient.

    Assigns the public UID on first approval. Approving an APPROVED entity
    returns it unchanged (same UID, no audit entry, no notification).

    Raises:
        AuthorizationError, DoctorNotFoundError / PatientNotFoundError,
        InvalidTransitionError (from REJECTED: use revert)
    """
    return _transition(actor, entity_type, entity_id, ApprovalAction.APPROVE, APPROVED)


def reject(actor: Actor, entity_type, entity_id, reason: str):
    """
    Reject a PENDING or APPROVED doctor or patient. `reason` is required and
    stored on the entity.

    Raises:
        AppValidationError: Empty reason
        AuthorizationError, DoctorNotFoundError / PatientNotFoundError,
        InvalidTransitionError: Already REJECTED
    """
    reason = (reason or '').strip()
    if not reason:
        raise AppValidationError(detail=['reason: a rejection reason is required'])
    return _transition(actor, entity_type, entity_id, ApprovalAction.REJECT, REJECTED, reason)


def revert(actor: Actor, entity_type, entity_id, new_status: str, reason: Optional[str] = None):
    """
    Administrative override of an earlier decision.

    APPROVED -> REJECTED, REJECTED -> APPROVED, REJECTED -> PENDING. A
    revert to APPROVED reuses the existing UID, or assigns the first one.

    Raises:
        AppValidationError: Unknown new_status
        AuthorizationError, DoctorNotFoundError / PatientNotFoundError,
        InvalidTransitionError
    """
    new_status = str(new_status or '').strip().upper()
    if new_status not in ApprovalStatus.values:
        raise AppValidationError(detail=['new_status: must be one of PENDING, APPROVED, REJECTED'])
    return _transition(actor, entity_type, entity_id, ApprovalAction.REVERT, new_status,
                       (reason or '').strip())


@retry_on_transient(operation='patient_treatment_flag')
def _set_cured(actor: Actor, patient_id, cured: bool):
    action = ApprovalAction.MARK_CURED if cured else ApprovalAction.REACTIVATE
    entity_type = ApprovalEntityType.PATIENT
    try:
        with transaction.atomic():
            patient = _lock_entity(entity_type, patient_id)
            authorize(actor, entity_type, patient)
            current = CURED if patient.is_cured else ACTIVE
            if patient.status != APPROVED or patient.is_cured == cured:
                raise InvalidTransitionError(
                    patient.status if patient.status != APPROVED else current, action
                )

            patient.is_cured = cured
            patient.cured_at = timezone.now() if cured else None
            patient.save(update_fields=['is_cured', 'cured_at', 'updated_at'])
            target = CURED if cured else ACTIVE
            _record(actor, entity_type, patient, action, current, target,
                    metadata={'approval_status': patient.status})
    except InvalidTransitionError:
        metrics.approval_transitions_total.labels(
            entity_type=entity_type, action=action, result='invalid'
        ).inc()
        raise

    metrics.approval_transitions_total.labels(
        entity_type=entity_type, action=action, result='success'
    ).inc()
    log_approval_transition(entity_type, patient, current, target, action, actor)
    return patient


def mark_cured(actor: Actor, patient_id):
    """
    Mark an APPROVED patient as cured. History is kept; vitals and diet
    tracking stop accepting writes for the patient.

    Raises:
        AuthorizationError, PatientNotFoundError,
        InvalidTransitionError: Patient not APPROVED or already cured
    """
    return _set_cured(actor, patient_id, True)


def reactivate(actor: Actor, patient_id):
    """
    Resume treatment for a cured patient.

    Raises:
        AuthorizationError, PatientNotFoundError,
        InvalidTransitionError: Patient not APPROVED or not cured
    """
    return _set_cured(actor, patient_id, False)


def audit_trail(actor: Actor, entity_type, entity_id):
    """ApprovalAuditLog entries for one entity, newest first (same authority as transitions)."""
    entity_type = normalize_entity_type(entity_type)
    model, not_found = ENTITY_MODELS[entity_type]
    pk = coerce_uuid(entity_id)
    entity = model.objects.filter(id=pk).first() if pk else None
    if entity is None:
        raise not_found(detail=[f'id: {entity_id}'])
    authorize(actor, entity_type, entity)
    return ApprovalAuditLog.objects.filter(entity_type=entity_type, entity_id=entity.id)
