"""
Authz models: auth_user, auth_role, auth_user_role, doctor
"""
import uuid
from django.db import models
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin


# ============================================================================
# Enums
# ============================================================================

class ApprovalStatus(models.TextChoices):
    """
    Approval state shared by doctors and patients.

    PENDING -> APPROVED | REJECTED, with explicit reverts between them.
    Only apps.onboarding.approval changes it.
    """
    PENDING = 'PENDING', 'Pending'
    APPROVED = 'APPROVED', 'Approved'
    REJECTED = 'REJECTED', 'Rejected'


# ============================================================================
# User Management
# ============================================================================

class UserManager(BaseUserManager):
    """Custom user manager for email-based authentication."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('Email is required')
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Login account. Doctors and patients each get one at registration;
    whether they may use the clinical endpoints depends on the approval
    status of the linked Doctor/Patient, not on is_active.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True, max_length=255)
    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150, blank=True)
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)  # Required for admin access
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        db_table = 'auth_user'
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        indexes = [
            models.Index(fields=['email'], name='idx_user_email'),
            models.Index(fields=['is_active'], name='idx_user_active'),
        ]

    def __str__(self):
        return self.email


class RoleChoices(models.TextChoices):
    """Fixed role names."""
    ADMIN = 'admin', 'Admin'
    DOCTOR = 'doctor', 'Doctor'
    PATIENT = 'patient', 'Patient'


class Role(models.Model):
    """System roles (admin|doctor|patient)."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(
        max_length=50,
        unique=True,
        choices=RoleChoices.choices
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'auth_role'
        verbose_name = 'Role'
        verbose_name_plural = 'Roles'

    def __str__(self):
        return self.get_name_display()


class UserRole(models.Model):
    """Many-to-many relationship between users and roles."""
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='user_roles'
    )
    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='user_roles'
    )

    class Meta:
        db_table = 'auth_user_role'
        verbose_name = 'User Role'
        verbose_name_plural = 'User Roles'
        unique_together = [('user', 'role')]
        indexes = [
            models.Index(fields=['user'], name='idx_user_role_user'),
            models.Index(fields=['role'], name='idx_user_role_role'),
        ]

    def __str__(self):
        return f"{self.user.email} - {self.role.name}"


def assign_role(user, role_name):
    """Attach `role_name` to `user`, creating the Role row when missing."""
    role, _ = Role.objects.get_or_create(name=role_name)
    UserRole.objects.get_or_create(user=user, role=role)
    return role


# ============================================================================
# Doctor
# ============================================================================

class Doctor(models.Model):
    """
    Doctor registered through an admin invite.

    Fields:
    - doctor_uid: public identifier (DOC000001), assigned on first approval,
      never cleared or reassigned afterwards
    - status: ApprovalStatus
    - profile: {personal_info, professional_info, practice_info}
    - rejection_reason: last reject/revert reason shown to the doctor
    - invite_token: the invite consumed at registration

    BUSINESS RULES:
    - Only an APPROVED doctor can issue patient invites, be chosen at
      direct patient registration, approve patients or record vitals
    - Status changes only through apps.onboarding.approval
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='doctor_profile'
    )
    email = models.EmailField(unique=True, max_length=255)
    doctor_uid = models.CharField(
        max_length=20,
        unique=True,
        null=True,
        blank=True,
        help_text='Public identifier, assigned on first approval'
    )
    status = models.CharField(
        max_length=20,
        choices=ApprovalStatus.choices,
        default=ApprovalStatus.PENDING
    )
    profile = models.JSONField(
        default=dict,
        help_text='personal_info, professional_info, practice_info'
    )
    rejection_reason = models.TextField(blank=True, default='')
    invite_token = models.ForeignKey(
        'onboarding.InviteToken',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='doctors'
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'doctor'
        verbose_name = 'Doctor'
        verbose_name_plural = 'Doctors'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_doctor_status'),
            models.Index(fields=['created_at'], name='idx_doctor_created'),
        ]

    def __str__(self):
        return f"{self.display_name} ({self.doctor_uid or self.status})"

    @property
    def personal_info(self):
        return (self.profile or {}).get('personal_info', {})

    @property
    def display_name(self):
        info = self.personal_info
        name = f"{info.get('first_name', '')} {info.get('last_name', '')}".strip()
        return f"Dr. {name}" if name else self.email

    @property
    def is_approved(self):
        return self.status == ApprovalStatus.APPROVED
