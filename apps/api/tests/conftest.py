"""
Global test fixtures for pytest.

Provides reusable fixtures for API and service testing:
- Users by role and the matching Actor
- Doctor and Patient records in each approval state
- Authenticated API clients by role
"""
import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from apps.authz.models import ApprovalStatus, Doctor, RoleChoices, User, assign_role
from apps.clinical.models import Patient
from apps.core.actors import Actor


PATIENT_PROFILE = {
    'personal_info': {
        'first_name': 'Meena',
        'last_name': 'Raman',
        'email': 'meena@example.com',
        'phone': '9876543210',
        'date_of_birth': '1990-01-01',
        'gender': 'female',
    },
    'lifestyle': {'occupation': 'Accountant', 'work_type': 'soft'},
}


def make_user(email, role, password='testpass123', **extra):
    user = User.objects.create_user(email=email, password=password, **extra)
    assign_role(user, role)
    return user


def make_doctor(email, status=ApprovalStatus.APPROVED, doctor_uid=None):
    user = make_user(email, RoleChoices.DOCTOR)
    return Doctor.objects.create(
        user=user,
        email=email,
        status=status,
        doctor_uid=doctor_uid,
        approved_at=timezone.now() if status == ApprovalStatus.APPROVED else None,
        profile={'personal_info': {'first_name': 'Arun', 'last_name': 'Kumar'}},
    )


def make_patient(email, doctor, status=ApprovalStatus.APPROVED, patient_uid=None,
                 profile=None, with_user=True):
    user = make_user(email, RoleChoices.PATIENT) if with_user else None
    return Patient.objects.create(
        user=user,
        email=email,
        doctor=doctor,
        status=status,
        patient_uid=patient_uid,
        profile=profile if profile is not None else PATIENT_PROFILE,
    )


def client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


# ============================================================================
# Users and actors
# ============================================================================

@pytest.fixture
def admin_user(db):
    """Admin user (role assignment, not superuser)."""
    return make_user('admin@test.com', RoleChoices.ADMIN, is_staff=True)


@pytest.fixture
def admin_actor(admin_user):
    return Actor.from_user(admin_user)


@pytest.fixture
def doctor(db):
    """APPROVED doctor with a public UID."""
    return make_doctor('doctor@test.com', doctor_uid='DOC000001')


@pytest.fixture
def doctor_actor(doctor):
    return Actor.from_user(doctor.user)


@pytest.fixture
def other_doctor(db):
    return make_doctor('other.doctor@test.com', doctor_uid='DOC000002')


@pytest.fixture
def pending_doctor(db):
    return make_doctor('pending.doctor@test.com', status=ApprovalStatus.PENDING)


@pytest.fixture
def patient(doctor):
    """APPROVED patient under `doctor`, female, born 1990-01-01, soft work."""
    return make_patient('meena@example.com', doctor, patient_uid='PAT000001')


@pytest.fixture
def patient_actor(patient):
    return Actor.from_user(patient.user)


@pytest.fixture
def pending_patient(doctor):
    return make_patient('pending.patient@example.com', doctor, status=ApprovalStatus.PENDING)


# ============================================================================
# API Clients
# ============================================================================

@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()


@pytest.fixture
def admin_client(admin_user):
    return client_for(admin_user)


@pytest.fixture
def doctor_client(doctor):
    return client_for(doctor.user)


@pytest.fixture
def patient_client(patient):
    return client_for(patient.user)
