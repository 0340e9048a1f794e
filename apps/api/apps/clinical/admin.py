from django.contrib import admin

from .models import ClinicalAuditLog, CustomDietPlan, DietEntry, Patient, VitalsRecord


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ['email', 'patient_uid', 'status', 'is_cured', 'doctor', 'created_at']
    list_filter = ['status', 'is_cured', 'created_at']
    search_fields = ['email', 'patient_uid', 'doctor__doctor_uid']
    readonly_fields = ['id', 'patient_uid', 'status', 'approved_at', 'cured_at', 'created_at', 'updated_at']
    autocomplete_fields = ['user', 'doctor']

    fieldsets = (
        ('Identity', {
            'fields': ('id', 'user', 'email', 'patient_uid', 'doctor', 'invite_token')
        }),
        ('Approval', {
            'fields': ('status', 'rejection_reason', 'approved_at', 'is_cured', 'cured_at')
        }),
        ('Profile', {
            'fields': ('profile',)
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(VitalsRecord)
class VitalsRecordAdmin(admin.ModelAdmin):
    list_display = ['patient', 'recorded_at', 'weight', 'bmi', 'bmr', 'tdee', 'diagnosis', 'recorded_by']
    list_filter = ['assessment_type', 'recorded_at']
    search_fields = ['patient__email', 'patient__patient_uid', 'diagnosis']
    readonly_fields = ['id', 'bmi', 'bmr', 'tdee', 'created_at', 'updated_at']
    date_hierarchy = 'recorded_at'


@admin.register(DietEntry)
class DietEntryAdmin(admin.ModelAdmin):
    list_display = ['patient', 'date', 'meal_type', 'completed', 'calorie_estimate']
    list_filter = ['meal_type', 'completed', 'date']
    search_fields = ['patient__email', 'patient__patient_uid']
    readonly_fields = ['id', 'completed_at', 'created_at', 'updated_at']


@admin.register(CustomDietPlan)
class CustomDietPlanAdmin(admin.ModelAdmin):
    list_display = ['patient', 'diagnosis', 'created_by', 'updated_at']
    search_fields = ['patient__email', 'diagnosis']
    readonly_fields = ['id', 'created_at', 'updated_at']


@admin.register(ClinicalAuditLog)
class ClinicalAuditLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'action', 'entity_type', 'entity_id', 'patient', 'actor_user']
    list_filter = ['action', 'entity_type', 'created_at']
    search_fields = ['entity_id', 'patient__email', 'actor_user__email']
    readonly_fields = ['id', 'created_at', 'actor_user', 'action', 'entity_type', 'entity_id', 'patient', 'metadata']

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
