from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, Role, UserRole, Doctor


class UserRoleInline(admin.TabularInline):
    model = UserRole
    extra = 0
    autocomplete_fields = ['role']


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Accounts. One account can hold several roles (a doctor who is also a
    patient), so roles are edited inline.
    """
    list_display = ['email', 'role_names', 'is_active', 'is_superuser', 'created_at']
    list_filter = ['is_active', 'is_superuser', 'user_roles__role__name']
    search_fields = ['email', 'first_name', 'last_name']
    readonly_fields = ['id', 'created_at', 'updated_at', 'last_login']
    inlines = [UserRoleInline]

    fieldsets = (
        (None, {'fields': ('id', 'email', 'password')}),
        ('Name', {'fields': ('first_name', 'last_name')}),
        ('Access', {'fields': ('is_active', 'is_staff', 'is_superuser')}),
        ('Dates', {'fields': ('last_login', 'created_at', 'updated_at')}),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'password1', 'password2', 'is_staff'),
        }),
    )

    ordering = ['email']

    @admin.display(description='Roles')
    def role_names(self, obj):
        return ', '.join(sorted(obj.user_roles.values_list('role__name', flat=True)))


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ['name', 'created_at']
    search_fields = ['name']
    readonly_fields = ['id', 'created_at']


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    """Read-mostly: status changes go through the approval endpoints so they are audited."""
    list_display = ['doctor_uid', 'display_name', 'email', 'status', 'approved_at']
    list_filter = ['status']
    search_fields = ['email', 'doctor_uid']
    ordering = ['-created_at']
    readonly_fields = [
        'id', 'user', 'doctor_uid', 'status', 'rejection_reason', 'approved_at',
        'invite_token', 'created_at', 'updated_at',
    ]
    fieldsets = (
        ('Approval', {'fields': ('id', 'doctor_uid', 'status', 'rejection_reason', 'approved_at')}),
        ('Account', {'fields': ('user', 'email', 'invite_token')}),
        ('Profile', {'fields': ('profile',)}),
        ('Dates', {'fields': ('created_at', 'updated_at')}),
    )
