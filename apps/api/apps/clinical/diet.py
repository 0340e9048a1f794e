"""
Diet compliance tracking.

A day's compliance is the share of its scheduled meal slots (DietEntry
rows) the patient marked completed:

    percentage = round_half_up(completed / total * 100), 0 when total == 0

Slots are opened per day by schedule_day (breakfast, lunch, dinner and a
snack slot when the plan's day lists snacks); recording a meal opens the
day first, so a single report never counts as a whole day.
"""
import logging
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.core.actors import Actor
from apps.core.exceptions import (
    AppValidationError,
    AuthorizationError,
    DietPlanNotFoundError,
    TransientInfrastructureError,
)
from apps.core.observability import log_domain_event, metrics
from apps.core.retry import retry_on_transient
from apps.core.validation import validate
from apps.onboarding.invites import doctor_for_actor

from .access import authorize_read, authorize_write, get_patient, is_assigned_doctor, is_self, require_active
from .diet_plans import MAIN_MEALS, day_plan, iso_weekday, resolve_diet_plan, validate_plan_shape
from .models import AuditActionChoices, CustomDietPlan, DietEntry, MealTypeChoices, log_clinical_audit

logger = logging.getLogger(__name__)

MAX_RANGE_DAYS = 366
WEEK_DAYS = 7
STREAK_THRESHOLD = 80


def compliance_percentage(completed: int, total: int) -> int:
    """Whole percentage, rounded half up; 0 when nothing was scheduled."""
    if total <= 0:
        return 0
    value = Decimal(completed * 100) / Decimal(total)
    return int(value.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def _parse_date(value, name='date') -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise AppValidationError(detail=[f'{name}: must be a date in YYYY-MM-DD format'])


def _day_result(on_date: date, entries) -> dict:
    meals = {entry.meal_type: entry.completed for entry in entries}
    completed = sum(1 for done in meals.values() if done)
    total = len(meals)
    return {
        'date': on_date,
        'weekday': iso_weekday(on_date),
        'completed': completed,
        'total': total,
        'percentage': compliance_percentage(completed, total),
        'meals': meals,
    }


def _entries_by_date(patient, start: date, end: date) -> dict:
    by_date = {}
    for entry in DietEntry.objects.filter(patient=patient, date__range=(start, end)).order_by('date'):
        by_date.setdefault(entry.date, []).append(entry)
    return by_date


# ============================================================================
# Compliance
# ============================================================================

def daily_compliance(patient_id, on_date, actor: Optional[Actor] = None) -> dict:
    """
    Compliance for one day.

    Returns:
        {date, weekday, completed, total, percentage, meals: {meal_type: bool}}
    """
    on_date = _parse_date(on_date)
    patient = get_patient(patient_id)
    authorize_read(actor, patient)
    entries = DietEntry.objects.filter(patient=patient, date=on_date)
    return _day_result(on_date, list(entries))


def range_compliance(patient_id, start, end, actor: Optional[Actor] = None) -> List[dict]:
    """
    One daily result per date from `start` to `end` inclusive, oldest first.
    Days without slots report 0/0 and 0%.

    Raises:
        AppValidationError: start after end, or a range over MAX_RANGE_DAYS
    """
    start = _parse_date(start, 'start')
    end = _parse_date(end, 'end')
    if start > end:
        raise AppValidationError(detail=['start: must not be after end'])
    if (end - start).days + 1 > MAX_RANGE_DAYS:
        raise AppValidationError(detail=[f'range: at most {MAX_RANGE_DAYS} days'])

    patient = get_patient(patient_id)
    authorize_read(actor, patient)
    by_date = _entries_by_date(patient, start, end)

    days = (end - start).days + 1
    return [
        _day_result(day, by_date.get(day, []))
        for day in (start + timedelta(days=offset) for offset in range(days))
    ]


def weekly_summary(patient_id, end_date=None, actor: Optional[Actor] = None) -> dict:
    """
    Seven days ending on `end_date` (default today) plus totals.

    Returns:
        {
            'days': [daily results, oldest first],
            'total_scheduled': int,
            'total_completed': int,
            'overall_compliance': int,     # over all slots of the week
            'average_daily_compliance': int,
            'current_streak': int,         # trailing days at >= 80%
        }
    """
    end = _parse_date(end_date) if end_date else timezone.localdate()
    days = range_compliance(patient_id, end - timedelta(days=WEEK_DAYS - 1), end, actor=actor)

    total_scheduled = sum(day['total'] for day in days)
    total_completed = sum(day['completed'] for day in days)
    average = compliance_percentage(sum(day['percentage'] for day in days), 100 * len(days))

    streak = 0
    for day in reversed(days):
        if day['total'] == 0 or day['percentage'] < STREAK_THRESHOLD:
            break
        streak += 1

    return {
        'days': days,
        'total_scheduled': total_scheduled,
        'total_completed': total_completed,
        'overall_compliance': compliance_percentage(total_completed, total_scheduled),
        'average_daily_compliance': average,
        'current_streak': streak,
    }


# ============================================================================
# Meal ledger
# ============================================================================

def _planned_meal_types(patient, on_date: date):
    meal_types = list(MAIN_MEALS)
    try:
        plan = resolve_diet_plan(patient)['plan']
        meals = day_plan(plan, iso_weekday(on_date)).get('meals', {})
    except (DietPlanNotFoundError, AppValidationError):
        return meal_types
    if meals.get('snacks'):
        meal_types.append(MealTypeChoices.SNACK)
    return meal_types


def schedule_day(patient_id, on_date) -> List[DietEntry]:
    """
    Open the un-completed meal slots of a day that has none yet.

    Returns:
        The slots created now (empty when the day was already scheduled)
    """
    on_date = _parse_date(on_date)
    patient = get_patient(patient_id)
    if DietEntry.objects.filter(patient=patient, date=on_date).exists():
        return []

    created = []
    with transaction.atomic():
        for meal_type in _planned_meal_types(patient, on_date):
            entry, was_created = DietEntry.objects.get_or_create(
                patient=patient, date=on_date, meal_type=meal_type,
            )
            if was_created:
                created.append(entry)
    return created


@retry_on_transient(operation='record_meal')
def record_meal(actor: Actor, patient_id, on_date, meal_type: str, completed,
                calorie_estimate: Optional[int] = None) -> DietEntry:
    """
    Mark one meal slot completed or not (patient self-report, or the
    assigned doctor / an admin on their behalf).

    Raises:
        PatientNotFoundError, AuthorizationError, PatientNotActiveError,
        AppValidationError: Bad date, meal type or calorie estimate
    """
    meal_type = str(meal_type or '').strip().lower()
    validate('meal', 'record', {'date': on_date, 'meal_type': meal_type, 'completed': completed})
    if not isinstance(completed, bool):
        raise AppValidationError(detail=['completed: must be true or false'])
    if calorie_estimate is not None and (not isinstance(calorie_estimate, int) or calorie_estimate < 0):
        raise AppValidationError(detail=['calorie_estimate: must be a non-negative integer'])
    on_date = _parse_date(on_date)

    patient = get_patient(patient_id)
    if not (actor.is_admin or is_assigned_doctor(actor, patient) or is_self(actor, patient)):
        raise AuthorizationError(message='Only the patient, their doctor or an admin can record meals')
    require_active(patient)

    try:
        with transaction.atomic():
            schedule_day(patient.id, on_date)
            entry, _ = DietEntry.objects.select_for_update().get_or_create(
                patient=patient, date=on_date, meal_type=meal_type,
            )
            entry.completed = completed
            entry.completed_at = timezone.now() if completed else None
            fields = ['completed', 'completed_at', 'updated_at']
            if calorie_estimate is not None:
                entry.calorie_estimate = calorie_estimate
                fields.append('calorie_estimate')
            entry.save(update_fields=fields)
    except IntegrityError as e:
        # Concurrent first report for the same slot; the retry finds the row
        raise TransientInfrastructureError(detail=['meal slot creation conflict']) from e

    metrics.meals_recorded_total.labels(meal_type=meal_type, completed=str(completed).lower()).inc()
    log_domain_event(
        'meal_recorded',
        entity_type='DietEntry',
        entity_id=str(entry.id),
        entity_ids={'patient_id': str(patient.id)},
        meal_type=meal_type,
        completed=completed,
        reported_by=actor.actor_role,
    )
    return entry


# ============================================================================
# Custom plans
# ============================================================================

@retry_on_transient(operation='save_custom_diet_plan')
def save_custom_diet_plan(actor: Actor, patient_id, plan_data: dict, diagnosis: str = '') -> CustomDietPlan:
    """
    Create or replace a patient's custom weekly plan; it then takes
    precedence over the diagnosis template.

    Raises:
        PatientNotFoundError, AuthorizationError,
        AppValidationError: plan_data is not seven days of breakfast, lunch
            and dinner lists
    """
    validate_plan_shape(plan_data)
    plan = dict(plan_data)
    plan.setdefault('duration', WEEK_DAYS)

    with transaction.atomic():
        patient = get_patient(patient_id, lock=True)
        authorize_write(actor, patient)

        existing = CustomDietPlan.objects.filter(patient=patient).first()
        action = AuditActionChoices.UPDATE if existing else AuditActionChoices.CREATE
        custom, _ = CustomDietPlan.objects.update_or_create(
            patient=patient,
            defaults={
                'diagnosis': (diagnosis or plan.get('diagnosis') or '').strip(),
                'plan_data': plan,
                'created_by': doctor_for_actor(actor) if actor.is_doctor else None,
            },
        )
        log_clinical_audit(
            actor_user=actor.user,
            instance=custom,
            action=action,
            changed_fields=['plan_data', 'diagnosis'],
            patient=patient,
        )

    log_domain_event(
        'custom_diet_plan_saved',
        entity_type='CustomDietPlan',
        entity_id=str(custom.id),
        entity_ids={'patient_id': str(patient.id)},
        action=action,
    )
    return custom


def plan_for_day(patient_id, on_date=None, actor: Optional[Actor] = None) -> dict:
    """
    The plan in force and the entry for one day of it.

    Returns:
        {source, diagnosis, weekday, day, plan}
    """
    on_date = _parse_date(on_date) if on_date else timezone.localdate()
    patient = get_patient(patient_id)
    authorize_read(actor, patient)
    resolved = resolve_diet_plan(patient)
    weekday = iso_weekday(on_date)
    return {
        **resolved,
        'weekday': weekday,
        'day': day_plan(resolved['plan'], weekday),
    }


def meal_reminder(patient, meal_type: str, on_date: date) -> Optional[dict]:
    """
    What a patient should eat for one main meal of `on_date`, from the plan
    in force.

    Returns:
        {diagnosis, items, notes}, or None when the patient has no plan or
        the day lists nothing for that meal

    Raises:
        AppValidationError: meal_type is not breakfast, lunch or dinner
    """
    if meal_type not in MAIN_MEALS:
        raise AppValidationError(detail=[f"meal_type: must be one of {', '.join(MAIN_MEALS)}"])
    try:
        resolved = resolve_diet_plan(patient)
    except DietPlanNotFoundError:
        return None

    meals = day_plan(resolved['plan'], iso_weekday(on_date)).get('meals') or {}
    items = [item for item in meals.get(meal_type) or [] if item]
    if not items:
        return None
    return {'diagnosis': resolved['diagnosis'], 'items': items, 'notes': meals.get('notes', '')}
