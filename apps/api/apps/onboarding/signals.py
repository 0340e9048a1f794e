"""
Onboarding signals and their notification receivers.

Payloads carry ids and statuses only (NO PHI); receivers look up whatever
the e-mail needs inside the Celery task.
"""
from django.dispatch import Signal, receiver

from apps.core.notifications import enqueue_on_commit

# Emitted after an invite token is created
#   - invite_id: UUID string
#   - has_recipient: bool, True when recipient_email was supplied
invite_issued = Signal()

# Emitted after a registration consumed a token (or a direct patient registration)
#   - entity_type: 'Doctor' | 'Patient'
#   - entity_id: UUID string
registration_bound = Signal()

# Emitted after every effective approval transition (never for no-ops)
#   - entity_type: 'Doctor' | 'Patient'
#   - entity_id: UUID string
#   - action: approve | reject | revert | mark_cured | reactivate
#   - from_status, to_status
#   - audit_log_id: UUID string of the ApprovalAuditLog entry
approval_status_changed = Signal()


@receiver(invite_issued)
def on_invite_issued(sender, invite_id, has_recipient, **kwargs):
    if not has_recipient:
        return
    from .tasks import send_invite_email
    enqueue_on_commit(
        send_invite_email, 'invite', 'InviteToken', invite_id,
        {'invite_id': invite_id},
    )


@receiver(registration_bound)
def on_registration_bound(sender, entity_type, entity_id, **kwargs):
    from .tasks import send_registration_received_email
    enqueue_on_commit(
        send_registration_received_email, 'registration', entity_type, entity_id,
        {'entity_type': entity_type, 'entity_id': entity_id},
    )


@receiver(approval_status_changed)
def on_approval_status_changed(sender, entity_type, entity_id, audit_log_id, **kwargs):
    from .tasks import send_approval_status_email
    enqueue_on_commit(
        send_approval_status_email, 'approval_status', entity_type, entity_id,
        {'audit_log_id': audit_log_id},
    )
