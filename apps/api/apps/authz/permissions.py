"""
Role permissions for the onboarding and clinical endpoints.

These only gate by role. Whether a doctor may act on a particular patient
is decided in the service layer, which raises AuthorizationError.
"""
from rest_framework import permissions
from apps.authz.models import RoleChoices


def _user_roles(request):
    if not request.user or not request.user.is_authenticated:
        return None
    if request.user.is_superuser:
        return {RoleChoices.ADMIN}
    return set(request.user.user_roles.values_list('role__name', flat=True))


class IsAdmin(permissions.BasePermission):
    """Only Admin role users."""

    def has_permission(self, request, view):
        roles = _user_roles(request)
        return bool(roles) and RoleChoices.ADMIN in roles


class IsAdminOrDoctor(permissions.BasePermission):
    """Admins and doctors (invite issuing, approvals, vitals)."""

    def has_permission(self, request, view):
        roles = _user_roles(request)
        return bool(roles) and bool(roles & {RoleChoices.ADMIN, RoleChoices.DOCTOR})


class IsClinicalUser(permissions.BasePermission):
    """
    Any of admin, doctor or patient.

    Read endpoints (vitals history, diet compliance) use this; patients are
    further restricted to their own record by the service layer.
    """

    def has_permission(self, request, view):
        roles = _user_roles(request)
        return bool(roles) and bool(
            roles & {RoleChoices.ADMIN, RoleChoices.DOCTOR, RoleChoices.PATIENT}
        )
