"""
Celery tasks for onboarding notifications.

Queued after commit by the receivers in apps.onboarding.signals. SMTP
mechanics are Django's e-mail backend; failures are retried with
exponential backoff and never affect the state change that triggered them.
"""
import logging
from smtplib import SMTPException

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

from apps.core.observability import log_domain_event, metrics

logger = logging.getLogger(__name__)

RETRYABLE_MAIL_ERRORS = (SMTPException, ConnectionError, TimeoutError)


def public_url(path):
    return f"{settings.APP_PUBLIC_URL.rstrip('/')}{path}"


def deliver_email(kind, subject, body, recipient, entity_type, entity_id):
    send_mail(
        subject=subject,
        message=body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[recipient],
        fail_silently=False,
    )
    metrics.notifications_total.labels(kind=kind, result='sent').inc()
    log_domain_event(
        'notification_sent',
        entity_type=entity_type,
        entity_id=str(entity_id),
        kind=kind,
    )


@shared_task(
    name='apps.onboarding.tasks.send_invite_email',
    autoretry_for=RETRYABLE_MAIL_ERRORS,
    retry_backoff=True,
    max_retries=3,
)
def send_invite_email(invite_id):
    """
    Send the registration link of an invite to its recipient.

    Args:
        invite_id: InviteToken UUID
    """
    from .models import InviteRole, InviteToken

    invite = InviteToken.objects.select_related('issuing_doctor').filter(id=invite_id).first()
    if invite is None or not invite.recipient_email:
        logger.warning('Invite e-mail skipped', extra={'event': 'notification_skipped', 'invite_id': invite_id})
        return

    role = 'doctor' if invite.role == InviteRole.DOCTOR else 'patient'
    link = public_url(f'/register?role={role}&token={invite.token}')
    greeting = f'Dear {invite.recipient_name},' if invite.recipient_name else 'Hello,'
    inviter = (
        f'{invite.issuing_doctor.display_name} has invited you'
        if invite.issuing_doctor else 'You have been invited'
    )
    body = (
        f'{greeting}\n\n'
        f'{inviter} to register as a {role} with Siddha Savor.\n\n'
        f'Complete your registration here:\n{link}\n\n'
        f'This link can be used once and expires on {invite.expires_at:%Y-%m-%d %H:%M %Z}.\n'
    )
    deliver_email('invite', f'Your Siddha Savor {role} registration link', body,
                  invite.recipient_email, 'InviteToken', invite.id)


@shared_task(
    name='apps.onboarding.tasks.send_registration_received_email',
    autoretry_for=RETRYABLE_MAIL_ERRORS,
    retry_backoff=True,
    max_retries=3,
)
def send_registration_received_email(entity_type, entity_id):
    """
    Confirm a registration to the registrant; it now waits for approval by
    an admin (doctors) or the assigned doctor (patients).
    """
    entity = _load_entity(entity_type, entity_id)
    if entity is None:
        return

    reviewer = 'an administrator' if entity_type == 'Doctor' else entity.doctor.display_name
    body = (
        'Thank you for registering with Siddha Savor.\n\n'
        f'Your registration is pending review by {reviewer}. '
        'You will receive an e-mail once it has been reviewed.\n'
    )
    deliver_email('registration', 'Registration received - Siddha Savor', body,
                  entity.email, entity_type, entity.id)


STATUS_MESSAGES = {
    'approve': ('Registration approved', 'Your registration has been approved. Your ID is {uid}. You can now log in: {login}'),
    'reject': ('Registration update', 'Your registration has not been approved at this time.\n\nReason: {reason}'),
    'revert': ('Registration status changed', 'Your registration status has been changed to {to_status}.{reason_line}'),
    'mark_cured': ('Treatment completed', 'Your doctor has marked your treatment as completed. Your history remains available.'),
    'reactivate': ('Treatment resumed', 'Your doctor has resumed your treatment plan.'),
}


@shared_task(
    name='apps.onboarding.tasks.send_approval_status_email',
    autoretry_for=RETRYABLE_MAIL_ERRORS,
    retry_backoff=True,
    max_retries=3,
)
def send_approval_status_email(audit_log_id):
    """
    Tell the doctor/patient about an approval transition.

    Args:
        audit_log_id: ApprovalAuditLog UUID describing the transition
    """
    from .models import ApprovalAuditLog

    audit = ApprovalAuditLog.objects.filter(id=audit_log_id).first()
    if audit is None:
        logger.warning('Approval e-mail skipped', extra={'event': 'notification_skipped', 'audit_log_id': audit_log_id})
        return

    entity = _load_entity(audit.entity_type, audit.entity_id)
    if entity is None:
        return

    subject, template = STATUS_MESSAGES[audit.action]
    uid = getattr(entity, 'doctor_uid', None) or getattr(entity, 'patient_uid', None)
    body = template.format(
        uid=uid or '-',
        login=public_url('/login'),
        reason=audit.reason or '-',
        reason_line=f'\n\nReason: {audit.reason}' if audit.reason else '',
        to_status=audit.to_status.lower(),
    )
    deliver_email('approval_status', f'{subject} - Siddha Savor', body,
                  entity.email, audit.entity_type, entity.id)


def _load_entity(entity_type, entity_id):
    from apps.authz.models import Doctor
    from apps.clinical.models import Patient

    model = Doctor if entity_type == 'Doctor' else Patient
    entity = model.objects.filter(id=entity_id).first()
    if entity is None:
        logger.warning(
            'Notification target missing',
            extra={'event': 'notification_skipped', 'entity_type': entity_type, 'entity_id': str(entity_id)},
        )
    return entity
