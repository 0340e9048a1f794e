from django.contrib import admin

from .models import ApprovalAuditLog, InviteToken


@admin.register(InviteToken)
class InviteTokenAdmin(admin.ModelAdmin):
    list_display = ['role', 'issuing_doctor', 'recipient_email', 'expires_at', 'consumed_at', 'created_at']
    list_filter = ['role', 'created_at']
    search_fields = ['recipient_email', 'issuing_doctor__email']
    readonly_fields = ['id', 'token', 'created_at', 'consumed_at']
    autocomplete_fields = ['issuing_doctor', 'created_by_user']


@admin.register(ApprovalAuditLog)
class ApprovalAuditLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'entity_type', 'entity_id', 'action', 'from_status', 'to_status', 'actor_user']
    list_filter = ['entity_type', 'action', 'created_at']
    search_fields = ['entity_id', 'actor_user__email']
    readonly_fields = [
        'id', 'created_at', 'entity_type', 'entity_id', 'from_status', 'to_status',
        'action', 'actor_user', 'actor_role', 'reason', 'metadata',
    ]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
