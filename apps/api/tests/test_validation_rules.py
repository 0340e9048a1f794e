"""
Tests for the shared validation rule table.
"""
from datetime import date

import pytest

from apps.core.exceptions import AppValidationError, MissingRequiredVitalError
from apps.core.validation import coerce_uuid, describe_rules, validate


class TestValidate:

    def test_valid_meal(self):
        validate('meal', 'record', {'date': date(2024, 5, 6), 'meal_type': 'lunch', 'completed': False})

    def test_missing_fields_use_requested_error(self):
        with pytest.raises(MissingRequiredVitalError) as exc:
            validate('vitals', 'doctor_visit', {'weight': 60}, missing_error=MissingRequiredVitalError)

        assert exc.value.detail == [
            'blood_pressure_systolic: this field is required',
            'blood_pressure_diastolic: this field is required',
            'naadi or thegi: at least one is required',
        ]

    def test_format_problem_wins_over_missing(self):
        with pytest.raises(AppValidationError) as exc:
            validate('vitals', 'quick_entry', {'height': '0'}, missing_error=MissingRequiredVitalError)

        assert not isinstance(exc.value, MissingRequiredVitalError)
        assert exc.value.detail == ['weight: this field is required', 'height: must be between 30 and 300']

    def test_blank_strings_count_as_missing(self):
        with pytest.raises(AppValidationError) as exc:
            validate('invite', 'issue', {'role': '  '})
        assert exc.value.detail == ['role: this field is required']

    @pytest.mark.parametrize('field,value', [
        ('phone', '98765'),
        ('phone', '98765432101'),
        ('emergency_phone', 'abcdefghij'),
        ('pincode', '60001'),
        ('password', 'short'),
        ('email', 'ravi@'),
        ('date_of_birth', '15-06-1985'),
        ('gender', 'unknown'),
        ('work_type', 'desk'),
    ])
    def test_patient_registration_formats(self, field, value):
        data = {
            'first_name': 'Ravi', 'last_name': 'Shankar', 'email': 'ravi@example.com',
            'phone': '9000000001', 'date_of_birth': '1985-06-15', 'gender': 'male',
            'emergency_contact': 'Lakshmi', 'emergency_phone': '9000000002',
            'password': 'strongpass1', 'pincode': '600001', 'work_type': 'soft',
        }
        validate('patient', 'register', data)

        data[field] = value
        with pytest.raises(AppValidationError) as exc:
            validate('patient', 'register', data)
        assert exc.value.detail[0].startswith(f'{field}:')

    def test_unknown_context(self):
        with pytest.raises(AppValidationError) as exc:
            validate('nurse', 'register', {})
        assert exc.value.code == 'UNKNOWN_VALIDATION_CONTEXT'


class TestDescribeRules:

    def test_table_is_serialisable(self):
        rules = describe_rules()

        assert set(rules) == {
            'invite.issue', 'doctor.register', 'patient.register',
            'vitals.doctor_visit', 'vitals.quick_entry', 'meal.record',
        }
        assert rules['vitals.doctor_visit']['any_of'] == [['naadi', 'thegi']]
        assert rules['meal.record']['choices']['meal_type'] == ['breakfast', 'dinner', 'lunch', 'snack']
        assert rules['patient.register']['formats']['phone'] == 'phone'
        assert rules['vitals.quick_entry']['ranges']['height'] == [30, 300]
        assert rules['patient.register']['ranges'] == {}


def test_coerce_uuid():
    assert coerce_uuid('not-a-uuid') is None
    assert coerce_uuid(None) is None
    assert str(coerce_uuid('7a1c7c2e-0000-4000-8000-000000000000')) == '7a1c7c2e-0000-4000-8000-000000000000'
