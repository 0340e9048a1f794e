"""
Onboarding models: invite_token, approval_audit_log
"""
import uuid
from django.conf import settings
from django.db import models
from django.utils import timezone


class InviteRole(models.TextChoices):
    """Role an invite token lets its holder register as."""
    DOCTOR = 'DOCTOR', 'Doctor'
    PATIENT = 'PATIENT', 'Patient'


class InviteToken(models.Model):
    """
    Time-bounded, single-use registration credential.

    Fields:
    - token: 64 hex chars (32 random bytes)
    - role: DOCTOR | PATIENT
    - issuing_doctor: the APPROVED doctor a PATIENT invite binds to
      (null for doctor invites and for admin patient invites without a doctor)
    - created_by_user: admin or doctor user who issued it
    - expires_at: issue time + INVITE_TOKEN_VALIDITY_HOURS
    - consumed_at: set exactly once by registration; tokens are never
      deleted so the issue/consume history stays auditable
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    token = models.CharField(max_length=64, unique=True)
    role = models.CharField(max_length=10, choices=InviteRole.choices)
    issuing_doctor = models.ForeignKey(
        'authz.Doctor',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='issued_invites'
    )
    created_by_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='issued_invites'
    )
    recipient_email = models.EmailField(max_length=255, blank=True, default='')
    recipient_name = models.CharField(max_length=255, blank=True, default='')
    expires_at = models.DateTimeField()
    consumed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'invite_token'
        verbose_name = 'Invite Token'
        verbose_name_plural = 'Invite Tokens'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['role'], name='idx_invite_role'),
            models.Index(fields=['expires_at'], name='idx_invite_expires'),
            models.Index(fields=['consumed_at'], name='idx_invite_consumed'),
        ]

    def __str__(self):
        return f"{self.role} invite {self.token[:8]}…"

    @property
    def is_consumed(self):
        return self.consumed_at is not None

    def is_expired(self, now=None):
        return (now or timezone.now()) >= self.expires_at

    def is_usable(self, now=None):
        return not self.is_consumed and not self.is_expired(now)


class ApprovalEntityType(models.TextChoices):
    DOCTOR = 'Doctor', 'Doctor'
    PATIENT = 'Patient', 'Patient'


class ApprovalAction(models.TextChoices):
    APPROVE = 'approve', 'Approve'
    REJECT = 'reject', 'Reject'
    REVERT = 'revert', 'Revert'
    MARK_CURED = 'mark_cured', 'Mark Cured'
    REACTIVATE = 'reactivate', 'Reactivate'


class ApprovalAuditLog(models.Model):
    """
    Append-only record of every effective approval transition.

    An idempotent re-approve writes nothing. For mark_cured/reactivate the
    approval status does not change; from/to hold ACTIVE/CURED instead.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    entity_type = models.CharField(max_length=10, choices=ApprovalEntityType.choices)
    entity_id = models.UUIDField()
    from_status = models.CharField(max_length=20)
    to_status = models.CharField(max_length=20)
    action = models.CharField(max_length=20, choices=ApprovalAction.choices)
    actor_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='approval_actions',
        help_text='User who performed the transition (null for system actions)'
    )
    actor_role = models.CharField(max_length=20, blank=True, default='')
    reason = models.TextField(blank=True, default='')
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = 'approval_audit_log'
        verbose_name = 'Approval Audit Log'
        verbose_name_plural = 'Approval Audit Logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['entity_type', 'entity_id'], name='idx_approval_audit_entity'),
            models.Index(fields=['created_at'], name='idx_approval_audit_created'),
            models.Index(fields=['actor_user'], name='idx_approval_audit_actor'),
        ]

    def __str__(self):
        return f"{self.entity_type} {self.entity_id}: {self.from_status} -> {self.to_status} ({self.action})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError('ApprovalAuditLog entries are append-only')
        super().save(*args, **kwargs)
