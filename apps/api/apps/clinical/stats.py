"""
Dashboard counters.

Admins get the whole practice, doctors their own panel, patients their own
latest readings. Weekly compliance is completed over scheduled meal slots
for the seven days ending today.
"""
from datetime import timedelta

from django.db.models import Count, Q
from django.utils import timezone

from apps.authz.models import ApprovalStatus, Doctor
from apps.core.actors import Actor
from apps.core.exceptions import AuthorizationError, DoctorNotFoundError, PatientNotFoundError
from apps.onboarding.invites import doctor_for_actor
from apps.onboarding.models import InviteToken

from .diet import WEEK_DAYS, compliance_percentage, weekly_summary
from .models import DietEntry, Patient, VitalsRecord


def _status_counts(queryset) -> dict:
    found = dict(queryset.order_by().values_list('status').annotate(n=Count('id')))
    return {status: found.get(status, 0) for status in ApprovalStatus.values}


def _patient_counts(patients) -> dict:
    approved = patients.filter(status=ApprovalStatus.APPROVED)
    by_status = _status_counts(patients)
    return {
        'total': sum(by_status.values()),
        'by_status': by_status,
        'active': approved.filter(is_cured=False).count(),
        'cured': approved.filter(is_cured=True).count(),
    }


def _weekly_compliance(patients) -> int:
    end = timezone.localdate()
    totals = DietEntry.objects.filter(
        patient__in=patients,
        date__range=(end - timedelta(days=WEEK_DAYS - 1), end),
    ).aggregate(
        scheduled=Count('id'),
        completed=Count('id', filter=Q(completed=True)),
    )
    return compliance_percentage(totals['completed'], totals['scheduled'])


def admin_stats() -> dict:
    patients = Patient.objects.all()
    return {
        'doctors': _status_counts(Doctor.objects.all()),
        'patients': _patient_counts(patients),
        'active_invites': InviteToken.objects.filter(
            consumed_at__isnull=True, expires_at__gt=timezone.now(),
        ).count(),
        'vitals_records': VitalsRecord.objects.count(),
        'weekly_compliance': _weekly_compliance(patients),
    }


def doctor_stats(doctor: Doctor) -> dict:
    patients = Patient.objects.filter(doctor=doctor)
    return {
        'doctor_uid': doctor.doctor_uid,
        'patients': _patient_counts(patients),
        'vitals_records': VitalsRecord.objects.filter(patient__doctor=doctor).count(),
        'weekly_compliance': _weekly_compliance(patients.filter(
            status=ApprovalStatus.APPROVED, is_cured=False,
        )),
    }


def patient_stats(patient: Patient) -> dict:
    latest = patient.vitals_records.order_by('-recorded_at', '-created_at').first()
    week = weekly_summary(patient.id)
    return {
        'patient_uid': patient.patient_uid,
        'status': 'CURED' if patient.is_cured else patient.status,
        'doctor_name': patient.doctor.display_name if patient.doctor else None,
        'vitals_records': patient.vitals_records.count(),
        'latest': {
            'recorded_at': latest.recorded_at if latest else None,
            'weight': latest.weight if latest else None,
            'bmr': latest.bmr if latest else None,
            'tdee': latest.tdee if latest else None,
            'diagnosis': latest.diagnosis if latest else None,
            'thegi': latest.thegi if latest else None,
        },
        'weekly_compliance': week['overall_compliance'],
        'current_streak': week['current_streak'],
    }


def stats_for(actor: Actor) -> dict:
    """
    Counters for the acting user's dashboard.

    Raises:
        DoctorNotFoundError / PatientNotFoundError: No profile row for the account
        AuthorizationError: No recognised role
    """
    if actor.is_admin:
        return {'scope': 'admin', **admin_stats()}
    if actor.is_doctor:
        doctor = doctor_for_actor(actor)
        if doctor is None:
            raise DoctorNotFoundError()
        return {'scope': 'doctor', **doctor_stats(doctor)}
    if actor.is_patient:
        patient = Patient.objects.select_related('doctor').filter(user_id=actor.actor_id).first()
        if patient is None:
            raise PatientNotFoundError()
        return {'scope': 'patient', **patient_stats(patient)}
    raise AuthorizationError(message='No dashboard for this account')
