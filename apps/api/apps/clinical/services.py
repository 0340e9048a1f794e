"""
Vitals record service.

Creates and amends vitals snapshots, filling bmi/bmr/tdee from
apps.clinical.metabolic before the row is written. Derived values are
stored verbatim and only recomputed when weight or height is patched (or
a derived value is missing), so reads never recompute them.
"""
import logging
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from apps.core.actors import Actor
from apps.core.exceptions import AppValidationError, MissingRequiredVitalError, VitalsNotFoundError
from apps.core.observability import log_domain_event, metrics
from apps.core.retry import retry_on_transient
from apps.core.validation import coerce_uuid, validate
from apps.onboarding.invites import doctor_for_actor

from . import metabolic
from .access import authorize_read, authorize_write, get_patient, require_active
from .models import AuditActionChoices, VitalsRecord, log_clinical_audit
from .signals import vitals_recorded

logger = logging.getLogger(__name__)

VITALS_CONTEXTS = ('doctor_visit', 'quick_entry')
METABOLIC_INPUTS = ('weight', 'height')


# ============================================================================
# Input handling
# ============================================================================

def _clean_raw(raw_fields: dict) -> dict:
    """
    Keep only raw vitals fields and coerce them to model types.

    Blank values clear the field. Client-supplied bmi/bmr/tdee are dropped.

    Raises:
        AppValidationError: A value cannot be converted
    """
    cleaned = {}
    problems = []
    for name in VitalsRecord.RAW_FIELDS:
        if name not in raw_fields:
            continue
        field = VitalsRecord._meta.get_field(name)
        value = raw_fields[name]
        if isinstance(value, str):
            value = value.strip()

        if value in (None, ''):
            cleaned[name] = None if field.null else field.get_default()
            continue
        try:
            cleaned[name] = field.to_python(value)
        except DjangoValidationError:
            problems.append(f'{name}: invalid value')

    if problems:
        raise AppValidationError(detail=problems)
    if isinstance(cleaned.get('assessment_type'), str):
        cleaned['assessment_type'] = cleaned['assessment_type'].lower()
    return cleaned


def _recorded_at(raw_fields: dict):
    value = raw_fields.get('recorded_at')
    if not value:
        return timezone.now()
    parsed = value if hasattr(value, 'tzinfo') else parse_datetime(str(value))
    if parsed is None:
        raise AppValidationError(detail=['recorded_at: must be an ISO 8601 datetime'])
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def _check_context(context: str) -> str:
    if context not in VITALS_CONTEXTS:
        raise AppValidationError(detail=[f"context: must be one of {', '.join(VITALS_CONTEXTS)}"])
    return context


def _state(record: VitalsRecord) -> dict:
    return {name: getattr(record, name) for name in VitalsRecord.RAW_FIELDS}


def _snapshot(record: VitalsRecord, names) -> dict:
    """JSON-safe copy of the given fields for the audit log."""
    snapshot = {}
    for name in names:
        value = getattr(record, name)
        if isinstance(value, Decimal):
            value = str(value)
        elif hasattr(value, 'isoformat'):
            value = value.isoformat()
        snapshot[name] = value
    return snapshot


# ============================================================================
# Derivation
# ============================================================================

def _check_derived_fits(record: VitalsRecord):
    """
    Reject derived values wider than their column.

    Raw values inside the plausible ranges can still combine badly (heavy
    weight over a very short height), and an oversize decimal would be
    refused by PostgreSQL or stored unreadable by SQLite.
    """
    problems = []
    for name in VitalsRecord.DERIVED_FIELDS:
        value = getattr(record, name)
        if value is None:
            continue
        field = VitalsRecord._meta.get_field(name)
        if abs(value) >= Decimal(10) ** (field.max_digits - field.decimal_places):
            problems.append(f'{name}: derived value {value} is out of range, check weight and height units')
    if problems:
        raise AppValidationError(detail=problems)


def _derive(record: VitalsRecord, patient) -> metabolic.MetabolicResult:
    """Fill bmi/bmr/tdee on `record` from its raw values and the patient's profile."""
    result = metabolic.derive_metrics(
        weight_kg=record.weight,
        height_cm=record.height,
        age_years=patient.age_on(timezone.localdate()),
        gender=patient.gender,
        work_type=patient.work_type,
        default_age=settings.DEFAULT_PATIENT_AGE,
    )
    record.bmi, record.bmr, record.tdee = result.bmi, result.bmr, result.tdee
    _check_derived_fits(record)

    if result.age_defaulted:
        metrics.metabolic_fallbacks_total.labels(kind='age').inc()
    if result.work_type_defaulted:
        metrics.metabolic_fallbacks_total.labels(kind='work_type').inc()
        logger.info(
            'Unknown work type, using default activity factor',
            extra={
                'event': 'metabolic_work_type_defaulted',
                'patient_id': str(patient.id),
                'work_type_used': result.work_type_used,
            },
        )
    return result


def _derivation_metadata(result: Optional[metabolic.MetabolicResult], context: str) -> dict:
    metadata = {'context': context}
    if result is not None and result.bmr is not None:
        metadata.update({
            'age_used': result.age_used,
            'age_defaulted': result.age_defaulted,
            'work_type_used': result.work_type_used,
            'work_type_defaulted': result.work_type_defaulted,
        })
    return metadata


def _needs_derivation(record: VitalsRecord, patched) -> bool:
    if any(name in patched for name in METABOLIC_INPUTS):
        return True
    if record.weight is None:
        return False
    if record.bmr is None or record.tdee is None:
        return True
    return record.height is not None and record.bmi is None


# ============================================================================
# Operations
# ============================================================================

@retry_on_transient(operation='create_vitals')
def create_vitals(actor: Actor, patient_id, raw_fields: dict, context: str = 'doctor_visit') -> VitalsRecord:
    """
    Record a vitals snapshot for a patient.

    Args:
        actor: Assigned (APPROVED) doctor or admin
        patient_id: Patient UUID
        raw_fields: Raw vitals, Siddha assessment and clinical fields;
            optional `recorded_at` (defaults to now)
        context: 'doctor_visit' (weight, blood pressure and naadi or thegi
            required) or 'quick_entry' (weight required)

    Returns:
        The saved VitalsRecord with bmi/bmr/tdee filled where derivable

    Raises:
        PatientNotFoundError, AuthorizationError
        PatientNotActiveError: Patient not APPROVED or already cured
        MissingRequiredVitalError: A field required by `context` is missing
        AppValidationError: Malformed values
    """
    context = _check_context(context)
    raw_fields = raw_fields or {}
    data = _clean_raw(raw_fields)
    recorded_at = _recorded_at(raw_fields)

    with transaction.atomic():
        patient = get_patient(patient_id)
        authorize_write(actor, patient)
        require_active(patient)
        validate('vitals', context, data, missing_error=MissingRequiredVitalError)

        record = VitalsRecord(
            patient=patient,
            recorded_by=doctor_for_actor(actor) if actor.is_doctor else None,
            recorded_at=recorded_at,
            **data,
        )
        result = _derive(record, patient)
        record.save()

        log_clinical_audit(
            actor_user=actor.user,
            instance=record,
            action=AuditActionChoices.CREATE,
            after=_snapshot(record, tuple(data) + VitalsRecord.DERIVED_FIELDS),
            patient=patient,
            extra=_derivation_metadata(result, context),
        )
        vitals_recorded.send(
            sender=VitalsRecord,
            vitals_id=str(record.id),
            patient_id=str(patient.id),
            action=AuditActionChoices.CREATE,
        )

    metrics.vitals_recorded_total.labels(action='create', context=context).inc()
    log_domain_event(
        'vitals_recorded',
        entity_type='VitalsRecord',
        entity_id=str(record.id),
        entity_ids={'patient_id': str(patient.id)},
        context=context,
        derived=record.bmr is not None,
    )
    return record


@retry_on_transient(operation='update_vitals')
def update_vitals(actor: Actor, vitals_id, patch: dict, context: str = 'doctor_visit') -> VitalsRecord:
    """
    Amend a vitals record.

    The patched record is re-validated as a whole for `context`. Derived
    fields are recomputed when weight or height is patched, or when a
    derived value is missing; otherwise the stored values are kept.

    Raises:
        VitalsNotFoundError, AuthorizationError, PatientNotActiveError,
        MissingRequiredVitalError, AppValidationError
    """
    context = _check_context(context)
    data = _clean_raw(patch or {})
    if 'recorded_at' in (patch or {}):
        data['recorded_at'] = _recorded_at(patch)

    with transaction.atomic():
        pk = coerce_uuid(vitals_id)
        record = (
            VitalsRecord.objects.select_for_update().select_related('patient').filter(id=pk).first()
            if pk else None
        )
        if record is None:
            raise VitalsNotFoundError(detail=[f'id: {vitals_id}'])

        patient = record.patient
        authorize_write(actor, patient)
        require_active(patient)

        validate('vitals', context, {**_state(record), **data}, missing_error=MissingRequiredVitalError)

        changed = [name for name, value in data.items() if getattr(record, name) != value]
        derive = _needs_derivation(record, [name for name in changed if name in METABOLIC_INPUTS])
        tracked = changed + (list(VitalsRecord.DERIVED_FIELDS) if derive else [])
        if not tracked:
            return record
        before = _snapshot(record, tracked)

        for name, value in data.items():
            setattr(record, name, value)
        result = _derive(record, patient) if derive else None

        record.save()
        log_clinical_audit(
            actor_user=actor.user,
            instance=record,
            action=AuditActionChoices.UPDATE,
            before=before,
            after=_snapshot(record, tracked),
            changed_fields=tracked,
            patient=patient,
            extra=_derivation_metadata(result, context),
        )
        vitals_recorded.send(
            sender=VitalsRecord,
            vitals_id=str(record.id),
            patient_id=str(patient.id),
            action=AuditActionChoices.UPDATE,
        )

    metrics.vitals_recorded_total.labels(action='update', context=context).inc()
    log_domain_event(
        'vitals_updated',
        entity_type='VitalsRecord',
        entity_id=str(record.id),
        entity_ids={'patient_id': str(patient.id)},
        changed_fields=tracked,
        rederived=derive,
    )
    return record


def get_history(patient_id, actor: Optional[Actor] = None):
    """All vitals of a patient, newest first."""
    patient = get_patient(patient_id)
    authorize_read(actor, patient)
    return patient.vitals_records.select_related('recorded_by').order_by('-recorded_at', '-created_at')


def get_latest(patient_id, actor: Optional[Actor] = None) -> Optional[VitalsRecord]:
    """Most recent vitals record, or None when the patient has none."""
    return get_history(patient_id, actor).first()


def _delta(first, latest):
    if first is None or latest is None:
        return None
    return latest - first


def health_progress(patient_id, actor: Optional[Actor] = None) -> dict:
    """
    Weight and metabolic trend for a patient.

    Returns:
        {
            'patient_id': str,
            'records': int,
            'series': [{recorded_at, weight, bmi, bmr, tdee}, ...],  # oldest first
            'change': {weight, bmi, bmr, tdee} latest minus first (None when
                      either end lacks the value),
        }
    """
    history = list(get_history(patient_id, actor).order_by('recorded_at', 'created_at'))
    series = [
        {
            'recorded_at': record.recorded_at,
            'weight': record.weight,
            'bmi': record.bmi,
            'bmr': record.bmr,
            'tdee': record.tdee,
        }
        for record in history
    ]

    change = {name: None for name in ('weight', 'bmi', 'bmr', 'tdee')}
    if len(history) > 1:
        first, latest = history[0], history[-1]
        change = {name: _delta(getattr(first, name), getattr(latest, name)) for name in change}

    return {
        'patient_id': str(patient_id),
        'records': len(history),
        'series': series,
        'change': change,
    }
