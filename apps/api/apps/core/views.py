"""
Core views - current user profile and the shared validation rule table.
"""
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import UserProfileSerializer
from .validation import describe_rules


class CurrentUserView(APIView):
    """
    Current authenticated user profile endpoint.

    GET /api/v1/auth/me/ - Returns profile of the authenticated user.

    The frontend calls this after JWT login and uses `roles` plus the
    doctor/patient status to decide which dashboard to show. A doctor or
    patient still PENDING sees the waiting-for-approval screen.

    Response format:
    {
        "id": "uuid",
        "email": "user@example.com",
        "is_active": true,
        "roles": ["doctor"],
        "doctor": {"id": "uuid", "status": "APPROVED", "doctor_uid": "DOC000001"},
        "patient": null
    }
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        user = request.user
        roles = list(user.user_roles.values_list('role__name', flat=True))

        doctor = getattr(user, 'doctor_profile', None)
        patient = getattr(user, 'patient_profile', None)

        profile_data = {
            'id': user.id,
            'email': user.email,
            'is_active': user.is_active,
            'roles': roles,
            'doctor': {
                'id': str(doctor.id),
                'status': doctor.status,
                'doctor_uid': doctor.doctor_uid,
            } if doctor else None,
            'patient': {
                'id': str(patient.id),
                'status': patient.status,
                'patient_uid': patient.patient_uid,
                'is_cured': patient.is_cured,
            } if patient else None,
        }

        serializer = UserProfileSerializer(profile_data)
        return Response(serializer.data, status=status.HTTP_200_OK)


class ValidationRulesView(APIView):
    """
    GET /api/v1/validation-rules/

    Read-only copy of the rule table the services validate against, so
    registration and vitals forms check the same required fields.
    """
    permission_classes = [AllowAny]

    def get(self, request):
        return Response(describe_rules(), status=status.HTTP_200_OK)
