"""
Clinical serializers for Patient, VitalsRecord, DietEntry and diet plans.
"""
from rest_framework import serializers

from apps.clinical.models import CustomDietPlan, DietEntry, Patient, VitalsRecord


class PatientListSerializer(serializers.ModelSerializer):
    """
    Serializer for Patient list view.

    Used for:
    - A doctor's patient list and approval queue (GET /api/v1/patients/)
    - The admin overview of all patients
    """
    full_name = serializers.CharField(read_only=True)
    doctor_uid = serializers.CharField(source='doctor.doctor_uid', read_only=True, default=None)

    class Meta:
        model = Patient
        fields = [
            'id',
            'patient_uid',
            'email',
            'full_name',
            'status',
            'is_cured',
            'doctor',
            'doctor_uid',
            'approved_at',
            'created_at',
        ]
        read_only_fields = fields


class PatientDetailSerializer(serializers.ModelSerializer):
    """Full patient record including the structured profile."""
    full_name = serializers.CharField(read_only=True)
    doctor_uid = serializers.CharField(source='doctor.doctor_uid', read_only=True, default=None)
    doctor_name = serializers.CharField(source='doctor.display_name', read_only=True, default=None)

    class Meta:
        model = Patient
        fields = [
            'id',
            'patient_uid',
            'email',
            'full_name',
            'status',
            'is_cured',
            'cured_at',
            'doctor',
            'doctor_uid',
            'doctor_name',
            'profile',
            'rejection_reason',
            'approved_at',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


# ============================================================================
# Vitals
# ============================================================================

class VitalsRecordSerializer(serializers.ModelSerializer):
    """Stored vitals snapshot; bmr/tdee in MJ/day."""
    recorded_by_uid = serializers.CharField(source='recorded_by.doctor_uid', read_only=True, default=None)

    class Meta:
        model = VitalsRecord
        fields = [
            'id',
            'patient',
            'recorded_by',
            'recorded_by_uid',
            'recorded_at',
            *VitalsRecord.RAW_FIELDS,
            *VitalsRecord.DERIVED_FIELDS,
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class VitalsWriteSerializer(serializers.Serializer):
    """
    POST /api/v1/vitals/ and PUT|PATCH /api/v1/vitals/{id}/

    Only the envelope is checked here. Raw fields are passed through to
    apps.clinical.services, which coerces them and applies the per-context
    required-field rules; bmi/bmr/tdee in the payload are ignored.
    """
    patient_id = serializers.UUIDField(required=False)
    context = serializers.ChoiceField(
        choices=['doctor_visit', 'quick_entry'],
        required=False,
        default='doctor_visit',
    )
    recorded_at = serializers.DateTimeField(required=False)

    def raw_fields(self):
        raw = {
            name: self.initial_data[name]
            for name in VitalsRecord.RAW_FIELDS
            if name in self.initial_data
        }
        if 'recorded_at' in self.validated_data:
            raw['recorded_at'] = self.validated_data['recorded_at']
        return raw


class HealthProgressPointSerializer(serializers.Serializer):
    recorded_at = serializers.DateTimeField()
    weight = serializers.DecimalField(max_digits=5, decimal_places=1, allow_null=True)
    bmi = serializers.DecimalField(max_digits=5, decimal_places=2, allow_null=True)
    bmr = serializers.DecimalField(max_digits=6, decimal_places=2, allow_null=True)
    tdee = serializers.DecimalField(max_digits=6, decimal_places=2, allow_null=True)


class HealthProgressSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField()
    records = serializers.IntegerField()
    series = HealthProgressPointSerializer(many=True)
    change = serializers.DictField(child=serializers.DecimalField(max_digits=7, decimal_places=2, allow_null=True))


# ============================================================================
# Diet
# ============================================================================

class DailyComplianceSerializer(serializers.Serializer):
    date = serializers.DateField()
    weekday = serializers.IntegerField()
    completed = serializers.IntegerField()
    total = serializers.IntegerField()
    percentage = serializers.IntegerField()
    meals = serializers.DictField(child=serializers.BooleanField())


class WeeklySummarySerializer(serializers.Serializer):
    days = DailyComplianceSerializer(many=True)
    total_scheduled = serializers.IntegerField()
    total_completed = serializers.IntegerField()
    overall_compliance = serializers.IntegerField()
    average_daily_compliance = serializers.IntegerField()
    current_streak = serializers.IntegerField()


class MealRecordSerializer(serializers.Serializer):
    """POST /api/v1/meals/"""
    patient_id = serializers.UUIDField(required=False)
    date = serializers.DateField()
    meal_type = serializers.CharField()
    completed = serializers.BooleanField()
    calorie_estimate = serializers.IntegerField(required=False, allow_null=True, min_value=0)


class DietEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = DietEntry
        fields = ['id', 'patient', 'date', 'meal_type', 'completed', 'completed_at', 'calorie_estimate']
        read_only_fields = fields


class CustomDietPlanWriteSerializer(serializers.Serializer):
    """PUT /api/v1/patients/{id}/custom-diet-plan/"""
    diagnosis = serializers.CharField(required=False, allow_blank=True, default='')
    plan_data = serializers.JSONField()


class CustomDietPlanSerializer(serializers.ModelSerializer):
    class Meta:
        model = CustomDietPlan
        fields = ['id', 'patient', 'diagnosis', 'plan_data', 'created_by', 'created_at', 'updated_at']
        read_only_fields = fields
