"""
Clinical models: patient, vitals_record, diet_entry, custom_diet_plan,
clinical_audit_log
"""
import uuid
from datetime import date

from django.conf import settings
from django.db import models

from apps.authz.models import ApprovalStatus


# ============================================================================
# Enums
# ============================================================================

class GenderChoices(models.TextChoices):
    MALE = 'male', 'Male'
    FEMALE = 'female', 'Female'
    OTHER = 'other', 'Other'


class WorkTypeChoices(models.TextChoices):
    """Physical activity band of the patient's work, drives the TDEE factor."""
    SOFT = 'soft', 'Soft'
    MEDIUM = 'medium', 'Medium'
    HEAVY = 'heavy', 'Heavy'


class AssessmentTypeChoices(models.TextChoices):
    """Siddha constitutional assessment recorded with the vitals."""
    NAADI = 'naadi', 'Naadi'
    THEGI = 'thegi', 'Thegi'


class MealTypeChoices(models.TextChoices):
    BREAKFAST = 'breakfast', 'Breakfast'
    LUNCH = 'lunch', 'Lunch'
    DINNER = 'dinner', 'Dinner'
    SNACK = 'snack', 'Snack'


class AuditActionChoices(models.TextChoices):
    """Clinical audit log action types"""
    CREATE = 'create', 'Create'
    UPDATE = 'update', 'Update'


class AuditEntityTypeChoices(models.TextChoices):
    """Clinical entities tracked in ClinicalAuditLog"""
    VITALS_RECORD = 'VitalsRecord', 'Vitals Record'
    CUSTOM_DIET_PLAN = 'CustomDietPlan', 'Custom Diet Plan'


# ============================================================================
# Patient
# ============================================================================

class Patient(models.Model):
    """
    Patient registered by invite or directly against a doctor's public UID.

    Fields:
    - patient_uid: public identifier (PAT000001), assigned on first approval,
      never cleared or reassigned afterwards
    - status: ApprovalStatus
    - is_cured / cured_at: treatment sub-state, only set from APPROVED
    - doctor: assigned at registration, never changed automatically
    - profile: {personal_info, address_info, emergency_contact, lifestyle}

    BUSINESS RULES:
    - Vitals and diet tracking require status APPROVED and not cured
    - Status changes only through apps.onboarding.approval
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='patient_profile'
    )
    email = models.EmailField(unique=True, max_length=255)
    patient_uid = models.CharField(
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
    is_cured = models.BooleanField(default=False)
    cured_at = models.DateTimeField(null=True, blank=True)
    doctor = models.ForeignKey(
        'authz.Doctor',
        on_delete=models.PROTECT,
        related_name='patients'
    )
    profile = models.JSONField(
        default=dict,
        help_text='personal_info, address_info, emergency_contact, lifestyle'
    )
    rejection_reason = models.TextField(blank=True, default='')
    invite_token = models.ForeignKey(
        'onboarding.InviteToken',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='patients'
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'patient'
        verbose_name = 'Patient'
        verbose_name_plural = 'Patients'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_patient_status'),
            models.Index(fields=['doctor', 'status'], name='idx_patient_doctor_status'),
            models.Index(fields=['created_at'], name='idx_patient_created'),
        ]

    def __str__(self):
        return f"{self.full_name} ({self.patient_uid or self.status})"

    @property
    def personal_info(self):
        return (self.profile or {}).get('personal_info', {})

    @property
    def lifestyle(self):
        return (self.profile or {}).get('lifestyle', {})

    @property
    def full_name(self):
        info = self.personal_info
        name = f"{info.get('first_name', '')} {info.get('last_name', '')}".strip()
        return name or self.email

    @property
    def birth_date(self):
        raw = self.personal_info.get('date_of_birth')
        if not raw:
            return None
        try:
            return date.fromisoformat(str(raw)[:10])
        except ValueError:
            return None

    @property
    def gender(self):
        return self.personal_info.get('gender') or ''

    @property
    def work_type(self):
        return self.lifestyle.get('work_type') or ''

    def age_on(self, on_date):
        """
        Age in whole years on `on_date`.

        Falls back to a stored personal_info.age when there is no date of
        birth. Returns None when neither is known.
        """
        born = self.birth_date
        if born is None:
            stored = self.personal_info.get('age')
            try:
                return int(stored) if stored not in (None, '') else None
            except (TypeError, ValueError):
                return None
        had_birthday = (on_date.month, on_date.day) >= (born.month, born.day)
        return on_date.year - born.year - (0 if had_birthday else 1)

    @property
    def is_active_for_treatment(self):
        return self.status == ApprovalStatus.APPROVED and not self.is_cured


# ============================================================================
# Vitals
# ============================================================================

class VitalsRecord(models.Model):
    """
    Timestamped vitals snapshot recorded by a doctor.

    Derived fields (bmi, bmr, tdee) are computed by
    apps.clinical.services before the row is written and stored verbatim;
    reads never recompute them. bmr/tdee are in MJ/day.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(
        Patient,
        on_delete=models.PROTECT,
        related_name='vitals_records'
    )
    recorded_by = models.ForeignKey(
        'authz.Doctor',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='recorded_vitals'
    )
    recorded_at = models.DateTimeField()

    # Raw vitals
    pulse_rate = models.PositiveIntegerField(null=True, blank=True)
    heart_rate = models.PositiveIntegerField(null=True, blank=True)
    temperature = models.DecimalField(max_digits=4, decimal_places=1, null=True, blank=True)
    blood_pressure_systolic = models.PositiveIntegerField(null=True, blank=True)
    blood_pressure_diastolic = models.PositiveIntegerField(null=True, blank=True)
    random_blood_sugar = models.DecimalField(max_digits=6, decimal_places=1, null=True, blank=True)
    respiratory_rate = models.PositiveIntegerField(null=True, blank=True)
    oxygen_saturation = models.PositiveIntegerField(null=True, blank=True)
    weight = models.DecimalField(max_digits=5, decimal_places=1, null=True, blank=True, help_text='kg')
    height = models.DecimalField(max_digits=5, decimal_places=1, null=True, blank=True, help_text='cm')

    # Siddha assessment
    assessment_type = models.CharField(
        max_length=10,
        choices=AssessmentTypeChoices.choices,
        blank=True,
        default=''
    )
    naadi = models.CharField(max_length=50, blank=True, default='')
    thegi = models.CharField(max_length=50, blank=True, default='')

    # Clinical
    diagnosis = models.CharField(max_length=255, blank=True, default='')
    medicines = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True, default='')

    # Derived
    bmi = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    bmr = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True, help_text='MJ/day')
    tdee = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True, help_text='MJ/day')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    RAW_FIELDS = (
        'pulse_rate', 'heart_rate', 'temperature', 'blood_pressure_systolic',
        'blood_pressure_diastolic', 'random_blood_sugar', 'respiratory_rate',
        'oxygen_saturation', 'weight', 'height',
        'assessment_type', 'naadi', 'thegi',
        'diagnosis', 'medicines', 'notes',
    )
    DERIVED_FIELDS = ('bmi', 'bmr', 'tdee')

    class Meta:
        db_table = 'vitals_record'
        verbose_name = 'Vitals Record'
        verbose_name_plural = 'Vitals Records'
        ordering = ['-recorded_at', '-created_at']
        indexes = [
            models.Index(fields=['patient', '-recorded_at'], name='idx_vitals_patient_recorded'),
        ]

    def __str__(self):
        return f"Vitals {self.recorded_at:%Y-%m-%d} - {self.patient_id}"


# ============================================================================
# Diet
# ============================================================================

class DietEntry(models.Model):
    """
    One meal slot of one day in a patient's diet ledger.

    At most one row per (patient, date, meal_type). `completed` is
    self-reported by the patient.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(
        Patient,
        on_delete=models.CASCADE,
        related_name='diet_entries'
    )
    date = models.DateField()
    meal_type = models.CharField(max_length=10, choices=MealTypeChoices.choices)
    completed = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)
    calorie_estimate = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'diet_entry'
        verbose_name = 'Diet Entry'
        verbose_name_plural = 'Diet Entries'
        ordering = ['date', 'meal_type']
        constraints = [
            models.UniqueConstraint(
                fields=['patient', 'date', 'meal_type'],
                name='uniq_diet_entry_patient_date_meal'
            ),
        ]
        indexes = [
            models.Index(fields=['patient', 'date'], name='idx_diet_entry_patient_date'),
        ]

    def __str__(self):
        return f"{self.date} {self.meal_type} ({'done' if self.completed else 'open'})"


class CustomDietPlan(models.Model):
    """
    Doctor-authored weekly plan that overrides the diagnosis template.

    plan_data has the template shape:
    {duration, days: [{day, meals: {breakfast, lunch, dinner, snacks?}, instructions}],
     general_instructions}
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.OneToOneField(
        Patient,
        on_delete=models.CASCADE,
        related_name='custom_diet_plan'
    )
    diagnosis = models.CharField(max_length=255, blank=True, default='')
    plan_data = models.JSONField(default=dict)
    created_by = models.ForeignKey(
        'authz.Doctor',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='authored_diet_plans'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'custom_diet_plan'
        verbose_name = 'Custom Diet Plan'
        verbose_name_plural = 'Custom Diet Plans'

    def __str__(self):
        return f"Custom diet plan - {self.patient_id}"


# ============================================================================
# Audit
# ============================================================================

class ClinicalAuditLog(models.Model):
    """
    Lightweight audit trail for vitals and custom diet plan changes.

    Fields:
    - actor_user: who made the change (nullable for system actions)
    - action: create|update
    - entity_type / entity_id: the changed record
    - patient: related patient (for easier querying)
    - metadata: changed_fields, before/after snapshots, age_defaulted, ...
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    actor_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='clinical_audit_logs',
        help_text='User who performed the action (null for system actions)'
    )
    action = models.CharField(max_length=10, choices=AuditActionChoices.choices)
    entity_type = models.CharField(max_length=50, choices=AuditEntityTypeChoices.choices)
    entity_id = models.UUIDField()
    patient = models.ForeignKey(
        Patient,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='audit_logs'
    )
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = 'clinical_audit_log'
        verbose_name = 'Clinical Audit Log'
        verbose_name_plural = 'Clinical Audit Logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['created_at'], name='idx_clinical_audit_created'),
            models.Index(fields=['entity_type', 'entity_id'], name='idx_clinical_audit_entity'),
            models.Index(fields=['patient'], name='idx_clinical_audit_patient'),
        ]

    def __str__(self):
        return f"{self.action} {self.entity_type} {self.entity_id}"


def log_clinical_audit(actor_user, instance, action, before=None, after=None,
                       changed_fields=None, patient=None, extra=None):
    """
    Create a clinical audit log entry.

    Args:
        actor_user: User instance or None for system actions
        instance: VitalsRecord or CustomDietPlan being audited
        action: 'create'|'update'
        before: Field values before the change (updates)
        after: Field values after the change
        changed_fields: Names of fields that changed
        patient: Patient (inferred from instance when omitted)
        extra: Additional metadata (e.g. {'age_defaulted': True})

    Returns:
        ClinicalAuditLog instance
    """
    from apps.core.observability import metrics

    if patient is None and hasattr(instance, 'patient'):
        patient = instance.patient

    metadata = {}
    if changed_fields:
        metadata['changed_fields'] = list(changed_fields)
    if before:
        metadata['before'] = before
    if after:
        metadata['after'] = after
    if extra:
        metadata.update(extra)

    audit_log = ClinicalAuditLog.objects.create(
        actor_user=actor_user,
        action=action,
        entity_type=instance.__class__.__name__,
        entity_id=instance.pk,
        patient=patient,
        metadata=metadata,
    )
    metrics.clinical_auditlog_created_total.labels(
        model=instance.__class__.__name__, action=action
    ).inc()
    return audit_log
