"""
Onboarding API views: invites, registration, approval workflow.

Views translate HTTP into service calls and back. Authorization beyond the
role gate, state checks and auditing all happen in the services, which
raise apps.core.exceptions errors rendered by the unified handler.
"""
from django.utils import timezone
from rest_framework import status
from rest_framework.generics import ListAPIView
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.authz.permissions import IsAdmin, IsAdminOrDoctor
from apps.core.actors import Actor
from apps.core.exceptions import AppValidationError
from apps.core.observability.correlation import bind_actor

from . import approval, invites
from .registration import bind_registration
from .serializers import (
    ApprovalAuditLogSerializer,
    ApprovalStateSerializer,
    InviteIssueSerializer,
    InviteTokenSerializer,
    InviteValidationSerializer,
    RegistrationResultSerializer,
    RegistrationSerializer,
    RejectSerializer,
    RevertSerializer,
)


def request_actor(request) -> Actor:
    """Actor for the authenticated user, also bound to the request log context."""
    actor = Actor.from_user(request.user)
    bind_actor(actor)
    return actor


# ============================================================================
# Invites
# ============================================================================

class InviteListCreateView(ListAPIView):
    """
    GET  /api/v1/invites/ - Invites visible to the caller (admin: all,
                            doctor: own)
    POST /api/v1/invites/ - Issue an invite

    Request (POST):
    {
        "role": "PATIENT",
        "issuer_doctor_id": "uuid",          # admin only, optional
        "recipient_email": "a@example.com",  # optional, e-mailed when set
        "recipient_name": "Asha"             # optional
    }
    """
    permission_classes = [IsAdminOrDoctor]
    serializer_class = InviteTokenSerializer

    def get_queryset(self):
        queryset = invites.list_invites(request_actor(self.request))

        role = self.request.query_params.get('role')
        if role:
            queryset = queryset.filter(role=role.upper())

        state = self.request.query_params.get('state')
        if state == 'open':
            queryset = queryset.filter(consumed_at__isnull=True)
        elif state == 'consumed':
            queryset = queryset.filter(consumed_at__isnull=False)
        return queryset

    def post(self, request):
        serializer = InviteIssueSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        invite = invites.issue_invite(
            request_actor(request),
            role=data['role'],
            issuer_doctor_id=data.get('issuer_doctor_id'),
            recipient_email=data.get('recipient_email'),
            recipient_name=data.get('recipient_name'),
        )
        return Response(InviteTokenSerializer(invite).data, status=status.HTTP_201_CREATED)


class InviteValidateView(APIView):
    """
    GET /api/v1/invites/validate/?token=<token>

    Public; the registration page calls it before rendering the form.
    404 TOKEN_NOT_FOUND, 409 TOKEN_EXPIRED / TOKEN_ALREADY_CONSUMED.
    """
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'registration'

    def get(self, request):
        result = invites.validate_invite(request.query_params.get('token', ''))
        return Response(InviteValidationSerializer(result).data, status=status.HTTP_200_OK)


# ============================================================================
# Registration
# ============================================================================

class RegisterView(APIView):
    """
    POST /api/v1/register/

    Public registration for doctors (invite required) and patients (invite,
    or direct with `doctor_public_id`). The new record is PENDING until
    approved.

    Request:
    {
        "role": "PATIENT",
        "token": "64 hex chars",           # optional for patients
        "doctor_public_id": "DOC000001",   # patients without a doctor invite
        "first_name": "...", "last_name": "...", "email": "...",
        "phone": "9876543210", "password": "...", ...
    }
    """
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'registration'

    def post(self, request):
        serializer = RegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        instance = bind_registration(
            token=serializer.validated_data.get('token'),
            role=serializer.validated_data['role'],
            profile_data=serializer.profile_data(),
            doctor_public_id=serializer.validated_data.get('doctor_public_id'),
        )

        doctor = getattr(instance, 'doctor', None)
        result = {
            'id': instance.id,
            'role': instance.__class__.__name__.upper(),
            'status': instance.status,
            'email': instance.email,
            'doctor_uid': doctor.doctor_uid if doctor else None,
        }
        return Response(RegistrationResultSerializer(result).data, status=status.HTTP_201_CREATED)


# ============================================================================
# Approval workflow
# ============================================================================

class ApproveView(APIView):
    """POST /api/v1/approve/<entity_type>/<id>/"""
    permission_classes = [IsAdminOrDoctor]

    def post(self, request, entity_type, entity_id):
        entity = approval.approve(request_actor(request), entity_type, entity_id)
        return Response(ApprovalStateSerializer(entity).data, status=status.HTTP_200_OK)


class RejectView(APIView):
    """
    POST /api/v1/reject/<entity_type>/<id>/

    Request: {"reason": "License could not be verified"}
    """
    permission_classes = [IsAdminOrDoctor]

    def post(self, request, entity_type, entity_id):
        serializer = RejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        entity = approval.reject(
            request_actor(request), entity_type, entity_id,
            reason=serializer.validated_data['reason'],
        )
        return Response(ApprovalStateSerializer(entity).data, status=status.HTTP_200_OK)


class RevertView(APIView):
    """
    POST /api/v1/revert/<entity_type>/<id>/

    Request: {"new_status": "PENDING", "reason": "optional"}
    """
    permission_classes = [IsAdminOrDoctor]

    def post(self, request, entity_type, entity_id):
        serializer = RevertSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        entity = approval.revert(
            request_actor(request), entity_type, entity_id,
            new_status=serializer.validated_data['new_status'],
            reason=serializer.validated_data['reason'],
        )
        return Response(ApprovalStateSerializer(entity).data, status=status.HTTP_200_OK)


class MarkCuredView(APIView):
    """POST /api/v1/patients/<id>/mark-cured/"""
    permission_classes = [IsAdminOrDoctor]

    def post(self, request, patient_id):
        patient = approval.mark_cured(request_actor(request), patient_id)
        return Response(ApprovalStateSerializer(patient).data, status=status.HTTP_200_OK)


class ReactivateView(APIView):
    """POST /api/v1/patients/<id>/reactivate/"""
    permission_classes = [IsAdminOrDoctor]

    def post(self, request, patient_id):
        patient = approval.reactivate(request_actor(request), patient_id)
        return Response(ApprovalStateSerializer(patient).data, status=status.HTTP_200_OK)


class ApprovalAuditView(ListAPIView):
    """GET /api/v1/approval-audit/<entity_type>/<id>/ - newest first"""
    permission_classes = [IsAdminOrDoctor]
    serializer_class = ApprovalAuditLogSerializer

    def get_queryset(self):
        return approval.audit_trail(
            request_actor(self.request),
            self.kwargs['entity_type'],
            self.kwargs['entity_id'],
        ).select_related('actor_user')


class PurgeExpiredInvitesView(APIView):
    """
    POST /api/v1/invites/purge-expired/

    Admin housekeeping, dry run unless {"delete": true}. Only invites that
    expired without being used are removed.
    """
    permission_classes = [IsAdmin]

    def post(self, request):
        delete = request.data.get('delete', False)
        if not isinstance(delete, bool):
            raise AppValidationError(detail=['delete: must be a boolean'])
        count = invites.purge_expired_invites(timezone.now(), delete=delete)
        return Response({'matched': count, 'deleted': count if delete else 0}, status=status.HTTP_200_OK)
