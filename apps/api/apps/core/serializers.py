"""
Core serializers: current user profile.
"""
from rest_framework import serializers


class UserProfileSerializer(serializers.Serializer):
    """Authenticated user with roles and, where present, the practitioner record."""
    id = serializers.UUIDField()
    email = serializers.EmailField()
    is_active = serializers.BooleanField()
    roles = serializers.ListField(child=serializers.CharField())
    doctor = serializers.DictField(required=False, allow_null=True)
    patient = serializers.DictField(required=False, allow_null=True)
