"""
Shared validation rule table.

One table keyed by (entity, operation) lists required fields, any-of
groups, choice sets and format checks. Services validate against it
before touching the database, and GET /api/v1/validation-rules/ serves
the same table to client forms.
"""
import re
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, Optional, Tuple

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email

from .exceptions import AppValidationError


# ============================================================
# Format checks
# ============================================================
FORMAT_PATTERNS = {
    'phone': r'^\d{10}$',
    'pincode': r'^\d{6}$',
}


def _check_email(value):
    try:
        validate_email(str(value))
    except DjangoValidationError:
        return 'must be a valid email address'
    return None


def _check_pattern(name):
    pattern = re.compile(FORMAT_PATTERNS[name])

    def check(value):
        if not pattern.match(str(value)):
            return f'must match {FORMAT_PATTERNS[name]}'
        return None
    return check


def _check_min_length(length):
    def check(value):
        if len(str(value)) < length:
            return f'must be at least {length} characters'
        return None
    return check


def _check_iso_date(value):
    if isinstance(value, date):
        return None
    try:
        date.fromisoformat(str(value))
    except ValueError:
        return 'must be a date in YYYY-MM-DD format'
    return None


def _check_range(low, high):
    def check(value):
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 'must be a number'
        if not low <= number <= high:
            return f'must be between {low} and {high}'
        return None
    return check


# Plausible clinical ranges (inclusive). Units: kg, cm, mmHg, per minute, °C or °F, mg/dL, %.
VITAL_RANGES = {
    'weight': (1, 500),
    'height': (30, 300),
    'blood_pressure_systolic': (50, 300),
    'blood_pressure_diastolic': (20, 200),
    'pulse_rate': (20, 300),
    'heart_rate': (20, 300),
    'temperature': (25, 115),
    'random_blood_sugar': (10, 1500),
    'respiratory_rate': (1, 100),
    'oxygen_saturation': (1, 100),
}


FORMAT_CHECKS = {
    'email': _check_email,
    'phone': _check_pattern('phone'),
    'pincode': _check_pattern('pincode'),
    'password': _check_min_length(8),
    'date': _check_iso_date,
    **{f'vitals_{name}': _check_range(*bounds) for name, bounds in VITAL_RANGES.items()},
}

RANGE_BOUNDS = {f'vitals_{name}': bounds for name, bounds in VITAL_RANGES.items()}


# ============================================================
# Rule sets
# ============================================================
@dataclass(frozen=True)
class RuleSet:
    """Validation rules for one (entity, operation) pair."""
    required: Tuple[str, ...] = ()
    any_of: Tuple[Tuple[str, ...], ...] = ()
    formats: Dict[str, str] = field(default_factory=dict)
    choices: Dict[str, FrozenSet[str]] = field(default_factory=dict)

    def to_dict(self):
        return {
            'required': list(self.required),
            'any_of': [list(group) for group in self.any_of],
            'formats': dict(self.formats),
            'choices': {k: sorted(v) for k, v in self.choices.items()},
            'ranges': {
                name: list(RANGE_BOUNDS[check]) for name, check in self.formats.items() if check in RANGE_BOUNDS
            },
        }


GENDERS = frozenset({'male', 'female', 'other'})
WORK_TYPES = frozenset({'soft', 'medium', 'heavy'})
INVITE_ROLES = frozenset({'DOCTOR', 'PATIENT'})
MEAL_TYPES = frozenset({'breakfast', 'lunch', 'dinner', 'snack'})
ASSESSMENT_TYPES = frozenset({'naadi', 'thegi'})

_VITALS_FORMATS = {name: f'vitals_{name}' for name in VITAL_RANGES}

RULES: Dict[Tuple[str, str], RuleSet] = {
    ('invite', 'issue'): RuleSet(
        required=('role',),
        formats={'recipient_email': 'email'},
        choices={'role': INVITE_ROLES},
    ),
    ('doctor', 'register'): RuleSet(
        required=('first_name', 'last_name', 'email', 'phone', 'password',
                  'medical_license', 'qualification'),
        formats={
            'email': 'email',
            'phone': 'phone',
            'password': 'password',
            'pincode': 'pincode',
            'date_of_birth': 'date',
        },
        choices={'gender': GENDERS},
    ),
    ('patient', 'register'): RuleSet(
        required=('first_name', 'last_name', 'email', 'phone', 'date_of_birth',
                  'gender', 'emergency_contact', 'emergency_phone', 'password'),
        formats={
            'email': 'email',
            'phone': 'phone',
            'emergency_phone': 'phone',
            'password': 'password',
            'pincode': 'pincode',
            'date_of_birth': 'date',
        },
        choices={'gender': GENDERS, 'work_type': WORK_TYPES},
    ),
    ('vitals', 'doctor_visit'): RuleSet(
        required=('weight', 'blood_pressure_systolic', 'blood_pressure_diastolic'),
        any_of=(('naadi', 'thegi'),),
        formats=_VITALS_FORMATS,
        choices={'assessment_type': ASSESSMENT_TYPES},
    ),
    ('vitals', 'quick_entry'): RuleSet(
        required=('weight',),
        formats=_VITALS_FORMATS,
        choices={'assessment_type': ASSESSMENT_TYPES},
    ),
    ('meal', 'record'): RuleSet(
        required=('date', 'meal_type', 'completed'),
        formats={'date': 'date'},
        choices={'meal_type': MEAL_TYPES},
    ),
}


def _is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def get_rules(entity: str, operation: str) -> RuleSet:
    try:
        return RULES[(entity, operation)]
    except KeyError:
        raise AppValidationError(
            message=f'Unknown validation context: {entity}/{operation}',
            code='UNKNOWN_VALIDATION_CONTEXT',
        )


def missing_fields(rules: RuleSet, data: dict):
    """Return human-readable lines for required fields and any-of groups not satisfied."""
    problems = [f'{name}: this field is required' for name in rules.required if _is_blank(data.get(name))]
    for group in rules.any_of:
        if all(_is_blank(data.get(name)) for name in group):
            problems.append(f"{' or '.join(group)}: at least one is required")
    return problems


def format_problems(rules: RuleSet, data: dict):
    """Return human-readable lines for supplied fields with a bad format or choice."""
    problems = []
    for name, check_name in rules.formats.items():
        value = data.get(name)
        if _is_blank(value):
            continue
        error = FORMAT_CHECKS[check_name](value)
        if error:
            problems.append(f'{name}: {error}')
    for name, allowed in rules.choices.items():
        value = data.get(name)
        if _is_blank(value):
            continue
        if str(value) not in allowed:
            problems.append(f"{name}: must be one of {', '.join(sorted(allowed))}")
    return problems


def validate(entity: str, operation: str, data: dict,
             missing_error: Optional[type] = None) -> None:
    """
    Validate `data` against the (entity, operation) rule set.

    Args:
        entity: Rule table entity ('doctor', 'patient', 'vitals', ...)
        operation: Rule table operation ('register', 'doctor_visit', ...)
        data: Flat mapping of submitted fields
        missing_error: Exception class raised when only required fields are
            missing (defaults to AppValidationError)

    Raises:
        AppValidationError: Any format/choice problem, or missing fields
    """
    rules = get_rules(entity, operation)
    missing = missing_fields(rules, data)
    bad = format_problems(rules, data)

    if bad:
        raise AppValidationError(detail=missing + bad)
    if missing:
        raise (missing_error or AppValidationError)(detail=missing)


def describe_rules():
    """Serialisable view of the whole table, keyed 'entity.operation'."""
    return {f'{entity}.{operation}': rules.to_dict() for (entity, operation), rules in RULES.items()}


def coerce_uuid(value):
    """Parse an id from a URL or payload; None when it is not a UUID."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None
