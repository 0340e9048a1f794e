"""
Onboarding serializers.

Input serializers only coerce shapes; the field rules (required fields,
formats, choices) live in apps.core.validation and are enforced by the
services, so the API and the service layer cannot disagree.
"""
from django.conf import settings
from rest_framework import serializers

from apps.authz.models import Doctor
from apps.clinical.models import Patient
from .models import ApprovalAuditLog, InviteToken


# ============================================================================
# Invites
# ============================================================================

class InviteIssueSerializer(serializers.Serializer):
    """POST /api/v1/invites/"""
    role = serializers.CharField()
    issuer_doctor_id = serializers.UUIDField(required=False, allow_null=True)
    recipient_email = serializers.CharField(required=False, allow_blank=True, default='')
    recipient_name = serializers.CharField(required=False, allow_blank=True, default='')


class InviteTokenSerializer(serializers.ModelSerializer):
    """
    Issued invite, including the registration link.

    The raw token is only shown to whoever may list the invite (the issuer or
    an admin); the link is what gets shared with the invitee.
    """
    issuing_doctor_uid = serializers.CharField(source='issuing_doctor.doctor_uid', read_only=True, default=None)
    registration_link = serializers.SerializerMethodField()
    is_consumed = serializers.BooleanField(read_only=True)
    is_expired = serializers.SerializerMethodField()

    class Meta:
        model = InviteToken
        fields = [
            'id',
            'token',
            'role',
            'issuing_doctor',
            'issuing_doctor_uid',
            'recipient_email',
            'recipient_name',
            'expires_at',
            'consumed_at',
            'created_at',
            'is_consumed',
            'is_expired',
            'registration_link',
        ]
        read_only_fields = fields

    def get_registration_link(self, obj):
        role = obj.role.lower()
        return f"{settings.APP_PUBLIC_URL.rstrip('/')}/register?role={role}&token={obj.token}"

    def get_is_expired(self, obj):
        return obj.is_expired()


class InviteValidationSerializer(serializers.Serializer):
    """Response of GET /api/v1/invites/validate/?token="""
    valid = serializers.BooleanField(default=True)
    role = serializers.CharField()
    expires_at = serializers.DateTimeField()
    doctor_uid = serializers.CharField(allow_null=True)
    doctor_name = serializers.CharField(allow_null=True)


# ============================================================================
# Registration
# ============================================================================

class RegistrationSerializer(serializers.Serializer):
    """
    POST /api/v1/register/

    `token`, `role` and `doctor_public_id` steer the binding; every other key
    of the payload is treated as a profile field.
    """
    CONTROL_FIELDS = ('token', 'role', 'doctor_public_id')

    token = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    role = serializers.CharField()
    doctor_public_id = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def profile_data(self):
        return {
            key: value for key, value in self.initial_data.items()
            if key not in self.CONTROL_FIELDS
        }


class RegistrationResultSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    role = serializers.CharField()
    status = serializers.CharField()
    email = serializers.EmailField()
    doctor_uid = serializers.CharField(allow_null=True, required=False)


# ============================================================================
# Approval
# ============================================================================

class RejectSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class RevertSerializer(serializers.Serializer):
    new_status = serializers.CharField()
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class ApprovalStateSerializer(serializers.Serializer):
    """Status of a Doctor or Patient after a transition."""
    id = serializers.UUIDField()
    entity_type = serializers.SerializerMethodField()
    status = serializers.CharField()
    public_uid = serializers.SerializerMethodField()
    rejection_reason = serializers.CharField()
    approved_at = serializers.DateTimeField(allow_null=True)
    is_cured = serializers.SerializerMethodField()

    def get_entity_type(self, obj):
        return obj.__class__.__name__

    def get_public_uid(self, obj):
        if isinstance(obj, Doctor):
            return obj.doctor_uid
        return obj.patient_uid

    def get_is_cured(self, obj):
        return obj.is_cured if isinstance(obj, Patient) else None


class ApprovalAuditLogSerializer(serializers.ModelSerializer):
    actor_email = serializers.EmailField(source='actor_user.email', read_only=True, default=None)

    class Meta:
        model = ApprovalAuditLog
        fields = [
            'id',
            'created_at',
            'entity_type',
            'entity_id',
            'from_status',
            'to_status',
            'action',
            'actor_user',
            'actor_email',
            'actor_role',
            'reason',
            'metadata',
        ]
        read_only_fields = fields
