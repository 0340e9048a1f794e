"""
Authz serializers for Doctor.
"""
from rest_framework import serializers
from apps.authz.models import Doctor


class DoctorListSerializer(serializers.ModelSerializer):
    """
    Serializer for Doctor list view.

    Used for:
    - The admin approval queue (GET /api/v1/doctors/?status=PENDING)
    """
    display_name = serializers.CharField(read_only=True)
    patient_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = Doctor
        fields = [
            'id',
            'doctor_uid',
            'email',
            'display_name',
            'status',
            'rejection_reason',
            'approved_at',
            'patient_count',
            'created_at',
        ]
        read_only_fields = fields


class DoctorDetailSerializer(serializers.ModelSerializer):
    """
    Serializer for Doctor detail view.

    Used for:
    - Reviewing a registration before approving it (GET /api/v1/doctors/{id}/)
    """
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = Doctor
        fields = [
            'id',
            'user',
            'doctor_uid',
            'email',
            'display_name',
            'status',
            'profile',
            'rejection_reason',
            'invite_token',
            'approved_at',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields
