"""
Authz views for Doctor.
"""
from django.db.models import Count, Q
from rest_framework import viewsets

from apps.authz.models import Doctor
from apps.authz.permissions import IsAdmin
from apps.authz.serializers import DoctorDetailSerializer, DoctorListSerializer


class DoctorViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for Doctor endpoints (Admin only).

    Endpoints:
    - GET /api/v1/doctors/ - List doctors
    - GET /api/v1/doctors/{id}/ - Get doctor detail

    Query parameters:
    - ?status=PENDING|APPROVED|REJECTED - Filter by approval status
    - ?q=search_term - Search by email, doctor UID or name

    Status changes are not made here; they go through
    /api/v1/approve|reject|revert/doctor/{id}/.
    """
    permission_classes = [IsAdmin]

    def get_queryset(self):
        """Filter by status and search."""
        queryset = Doctor.objects.annotate(patient_count=Count('patients'))

        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter.upper())

        q = self.request.query_params.get('q')
        if q:
            queryset = queryset.filter(
                Q(email__icontains=q) |
                Q(doctor_uid__icontains=q) |
                Q(profile__personal_info__first_name__icontains=q) |
                Q(profile__personal_info__last_name__icontains=q)
            )

        return queryset.order_by('-created_at')

    def get_serializer_class(self):
        """Use different serializers for list/detail."""
        if self.action == 'list':
            return DoctorListSerializer
        return DoctorDetailSerializer
