"""
Onboarding URLs - invites, registration, approval workflow.
"""
from django.urls import path

from .views import (
    ApprovalAuditView,
    ApproveView,
    InviteListCreateView,
    InviteValidateView,
    MarkCuredView,
    PurgeExpiredInvitesView,
    ReactivateView,
    RegisterView,
    RejectView,
    RevertView,
)

urlpatterns = [
    # Invites
    path('invites/', InviteListCreateView.as_view(), name='invite-list'),
    path('invites/validate/', InviteValidateView.as_view(), name='invite-validate'),
    path('invites/purge-expired/', PurgeExpiredInvitesView.as_view(), name='invite-purge-expired'),

    # Registration (public)
    path('register/', RegisterView.as_view(), name='register'),

    # Approval workflow
    path('approve/<str:entity_type>/<str:entity_id>/', ApproveView.as_view(), name='approve'),
    path('reject/<str:entity_type>/<str:entity_id>/', RejectView.as_view(), name='reject'),
    path('revert/<str:entity_type>/<str:entity_id>/', RevertView.as_view(), name='revert'),
    path('patients/<str:patient_id>/mark-cured/', MarkCuredView.as_view(), name='patient-mark-cured'),
    path('patients/<str:patient_id>/reactivate/', ReactivateView.as_view(), name='patient-reactivate'),
    path('approval-audit/<str:entity_type>/<str:entity_id>/', ApprovalAuditView.as_view(), name='approval-audit'),
]
