"""
Celery tasks for clinical notifications and the daily meal ledger.
"""
import logging

from celery import shared_task
from django.utils import timezone

from apps.core.notifications import enqueue_on_commit
from apps.core.observability import log_domain_event
from apps.onboarding.tasks import RETRYABLE_MAIL_ERRORS, deliver_email, public_url

logger = logging.getLogger(__name__)

# Local times the reminders go out; the beat schedule in settings uses the same hours
MEAL_TIMES = {'breakfast': '8:00 AM', 'lunch': '12:30 PM', 'dinner': '8:00 PM'}


@shared_task(
    name='apps.clinical.tasks.send_vitals_recorded_email',
    autoretry_for=RETRYABLE_MAIL_ERRORS,
    retry_backoff=True,
    max_retries=3,
)
def send_vitals_recorded_email(vitals_id):
    """
    Tell the patient a doctor recorded a new visit. The e-mail carries no
    readings; the patient logs in to see them.
    """
    from .models import VitalsRecord

    record = VitalsRecord.objects.select_related('patient', 'recorded_by').filter(id=vitals_id).first()
    if record is None:
        logger.warning('Vitals e-mail skipped', extra={'event': 'notification_skipped', 'vitals_id': vitals_id})
        return

    doctor = record.recorded_by.display_name if record.recorded_by else 'Your doctor'
    body = (
        f"{doctor} recorded your vitals on {record.recorded_at:%Y-%m-%d}.\n\n"
        f"Log in to review them and your diet plan: {public_url('/login')}\n"
    )
    deliver_email('vitals_recorded', 'New visit recorded - Siddha Savor', body,
                  record.patient.email, 'VitalsRecord', record.id)


@shared_task(name='apps.clinical.tasks.schedule_meals_for_today')
def schedule_meals_for_today():
    """
    Open today's meal slots for every patient in active treatment.

    Meant for a daily Celery beat entry; schedule_day skips patients whose
    day already has slots, so re-running is harmless.

    Returns:
        Number of patients whose day was scheduled now
    """
    from apps.authz.models import ApprovalStatus
    from .diet import schedule_day
    from .models import Patient

    today = timezone.localdate()
    scheduled = 0
    patient_ids = Patient.objects.filter(
        status=ApprovalStatus.APPROVED, is_cured=False
    ).values_list('id', flat=True)
    for patient_id in patient_ids:
        created = schedule_day(patient_id, today)
        if created:
            scheduled += 1

    log_domain_event('meals_scheduled', entity_type='DietEntry', count=scheduled, date=today.isoformat())
    return scheduled


@shared_task(name='apps.clinical.tasks.send_meal_reminders')
def send_meal_reminders(meal_type):
    """
    Queue one reminder e-mail per patient in active treatment whose plan
    lists something for `meal_type` today.

    One beat entry per main meal. Patients without a custom plan or a
    diagnosis with a template are skipped.

    Returns:
        Number of reminders queued
    """
    from apps.authz.models import ApprovalStatus
    from .diet import meal_reminder
    from .models import Patient

    today = timezone.localdate()
    queued = 0
    patients = Patient.objects.filter(status=ApprovalStatus.APPROVED, is_cured=False)
    for patient in patients.iterator():
        if meal_reminder(patient, meal_type, today) is None:
            continue
        enqueue_on_commit(
            send_meal_reminder_email, 'meal_reminder', 'Patient', patient.id,
            task_kwargs={
                'patient_id': str(patient.id),
                'meal_type': meal_type,
                'on_date': today.isoformat(),
            },
        )
        queued += 1

    log_domain_event('meal_reminders_queued', entity_type='Patient', count=queued,
                     meal_type=meal_type, date=today.isoformat())
    return queued


@shared_task(
    name='apps.clinical.tasks.send_meal_reminder_email',
    autoretry_for=RETRYABLE_MAIL_ERRORS,
    retry_backoff=True,
    max_retries=3,
)
def send_meal_reminder_email(patient_id, meal_type, on_date):
    from datetime import date

    from .diet import meal_reminder
    from .models import Patient

    patient = Patient.objects.filter(id=patient_id).first()
    reminder = meal_reminder(patient, meal_type, date.fromisoformat(on_date)) if patient else None
    if reminder is None:
        logger.warning('Meal reminder skipped', extra={'event': 'notification_skipped', 'patient_id': patient_id})
        return

    lines = [
        f"Dear {patient.personal_info.get('first_name') or 'Patient'},",
        '',
        f"It's {MEAL_TIMES[meal_type]}, time for your {meal_type}. "
        f"Today's {meal_type} from your Siddha diet plan:",
        '',
        *[f'  - {item}' for item in reminder['items']],
    ]
    if reminder['notes']:
        lines += ['', f"Notes: {reminder['notes']}"]
    lines += ['', f"Mark it as eaten once you're done: {public_url('/dashboard/patient')}"]

    deliver_email('meal_reminder', f'{meal_type.capitalize()} reminder - Siddha Savor',
                  '\n'.join(lines) + '\n', patient.email, 'Patient', patient.id)
