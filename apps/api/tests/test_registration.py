"""
Tests for registration binding (invite consumption, doctor assignment).
"""
from datetime import timedelta

import pytest
from django.core import mail
from django.utils import timezone

from apps.authz.models import ApprovalStatus, Doctor, User
from apps.clinical.models import Patient
from apps.core.exceptions import (
    AppValidationError,
    DoctorNotFoundError,
    TokenAlreadyConsumedError,
    TokenExpiredError,
    TokenNotFoundError,
    TokenRoleMismatchError,
)
from apps.onboarding import invites, registration
from apps.onboarding.models import InviteToken
from apps.onboarding.registration import bind_registration


def doctor_form(**overrides):
    data = {
        'first_name': 'Kavya',
        'last_name': 'Iyer',
        'email': 'kavya@example.com',
        'phone': '9123456780',
        'password': 'strongpass1',
        'medical_license': 'TN-12345',
        'qualification': 'BSMS',
        'specialization': 'Naadi',
        'clinic_name': 'Savor Clinic',
    }
    data.update(overrides)
    return data


def patient_form(**overrides):
    data = {
        'first_name': 'Ravi',
        'last_name': 'Shankar',
        'email': 'ravi@example.com',
        'phone': '9000000001',
        'date_of_birth': '1985-06-15',
        'gender': 'Male',
        'work_type': 'Heavy',
        'emergency_contact': 'Lakshmi',
        'emergency_phone': '9000000002',
        'password': 'strongpass1',
    }
    data.update(overrides)
    return data


@pytest.mark.django_db
class TestDoctorRegistration:

    def test_binds_pending_doctor_and_consumes_token(self, admin_actor):
        invite = invites.issue_invite(admin_actor, 'DOCTOR')

        doctor = bind_registration(invite.token, 'DOCTOR', doctor_form())

        assert isinstance(doctor, Doctor)
        assert doctor.status == ApprovalStatus.PENDING
        assert doctor.doctor_uid is None
        assert doctor.invite_token == invite
        assert doctor.profile['professional_info']['medical_license'] == 'TN-12345'
        assert doctor.profile['practice_info']['clinic_name'] == 'Savor Clinic'
        assert doctor.user.check_password('strongpass1')
        assert doctor.user.user_roles.filter(role__name='doctor').exists()

        invite.refresh_from_db()
        assert invite.consumed_at is not None

    def test_doctor_requires_token(self):
        with pytest.raises(AppValidationError):
            bind_registration(None, 'DOCTOR', doctor_form())
        assert Doctor.objects.count() == 0

    def test_token_reuse_rejected(self, admin_actor):
        invite = invites.issue_invite(admin_actor, 'DOCTOR')
        bind_registration(invite.token, 'DOCTOR', doctor_form())

        with pytest.raises(TokenAlreadyConsumedError):
            bind_registration(invite.token, 'DOCTOR', doctor_form(email='second@example.com'))
        assert Doctor.objects.count() == 1

    def test_token_consumed_concurrently(self, admin_actor, monkeypatch):
        invite = invites.issue_invite(admin_actor, 'DOCTOR')
        won_at = timezone.now() - timedelta(seconds=1)
        real_check = registration.check_token_usable

        def check_then_lose_race(token_row, now=None):
            real_check(token_row, now)
            # Another registration commits between the check and our consume
            InviteToken.objects.filter(pk=token_row.pk).update(consumed_at=won_at)

        monkeypatch.setattr(registration, 'check_token_usable', check_then_lose_race)

        with pytest.raises(TokenAlreadyConsumedError):
            bind_registration(invite.token, 'DOCTOR', doctor_form())

        assert Doctor.objects.count() == 0
        assert not User.objects.filter(email='kavya@example.com').exists()
        invite.refresh_from_db()
        assert invite.consumed_at == won_at

    def test_expired_token_rejected(self, admin_actor):
        invite = invites.issue_invite(admin_actor, 'DOCTOR')
        InviteToken.objects.filter(pk=invite.pk).update(expires_at=timezone.now() - timedelta(minutes=1))

        with pytest.raises(TokenExpiredError):
            bind_registration(invite.token, 'DOCTOR', doctor_form())

        invite.refresh_from_db()
        assert invite.consumed_at is None
        assert not User.objects.filter(email='kavya@example.com').exists()

    def test_role_mismatch(self, admin_actor):
        invite = invites.issue_invite(admin_actor, 'PATIENT')

        with pytest.raises(TokenRoleMismatchError):
            bind_registration(invite.token, 'DOCTOR', doctor_form())

        invite.refresh_from_db()
        assert invite.consumed_at is None

    def test_unknown_token(self):
        with pytest.raises(TokenNotFoundError):
            bind_registration('0' * 64, 'DOCTOR', doctor_form())

    def test_missing_fields_leave_token_unused(self, admin_actor):
        invite = invites.issue_invite(admin_actor, 'DOCTOR')

        with pytest.raises(AppValidationError) as exc:
            bind_registration(invite.token, 'DOCTOR', doctor_form(medical_license='', phone='123'))

        assert 'medical_license: this field is required' in exc.value.detail
        assert any(line.startswith('phone:') for line in exc.value.detail)
        invite.refresh_from_db()
        assert invite.consumed_at is None

    def test_duplicate_email(self, admin_actor, doctor):
        invite = invites.issue_invite(admin_actor, 'DOCTOR')

        with pytest.raises(AppValidationError):
            bind_registration(invite.token, 'DOCTOR', doctor_form(email=doctor.email))
        invite.refresh_from_db()
        assert invite.consumed_at is None


@pytest.mark.django_db
class TestPatientRegistration:

    def test_doctor_invite_assigns_issuing_doctor(self, doctor_actor, doctor, other_doctor):
        invite = invites.issue_invite(doctor_actor, 'PATIENT')

        # The invite's doctor wins over a supplied public id
        patient = bind_registration(invite.token, 'PATIENT', patient_form(), doctor_public_id='DOC000002')

        assert isinstance(patient, Patient)
        assert patient.doctor == doctor
        assert patient.status == ApprovalStatus.PENDING
        assert patient.gender == 'male'
        assert patient.work_type == 'heavy'
        assert patient.profile['emergency_contact'] == {'name': 'Lakshmi', 'phone': '9000000002'}
        assert patient.profile['registration_info']['invite_id'] == str(invite.id)

    def test_direct_registration_with_doctor_public_id(self, doctor):
        patient = bind_registration(None, 'PATIENT', patient_form(), doctor_public_id='doc000001')
        assert patient.doctor == doctor
        assert patient.invite_token is None

    def test_direct_registration_needs_doctor_public_id(self, doctor):
        with pytest.raises(AppValidationError):
            bind_registration(None, 'PATIENT', patient_form())

    def test_direct_registration_with_unapproved_doctor(self, pending_doctor):
        Doctor.objects.filter(pk=pending_doctor.pk).update(doctor_uid='DOC000009')

        with pytest.raises(DoctorNotFoundError):
            bind_registration(None, 'PATIENT', patient_form(), doctor_public_id='DOC000009')
        assert Patient.objects.count() == 0

    def test_admin_patient_invite_without_doctor_uses_public_id(self, admin_actor, doctor):
        invite = invites.issue_invite(admin_actor, 'PATIENT')

        patient = bind_registration(invite.token, 'PATIENT', patient_form(), doctor_public_id='DOC000001')

        assert patient.doctor == doctor
        invite.refresh_from_db()
        assert invite.consumed_at is not None

    def test_inviting_doctor_no_longer_approved(self, doctor_actor, doctor):
        invite = invites.issue_invite(doctor_actor, 'PATIENT')
        Doctor.objects.filter(pk=doctor.pk).update(status=ApprovalStatus.REJECTED)

        with pytest.raises(DoctorNotFoundError):
            bind_registration(invite.token, 'PATIENT', patient_form())
        invite.refresh_from_db()
        assert invite.consumed_at is None

    def test_existing_account_reused_for_second_role_with_same_password(self, admin_actor, doctor):
        invite = invites.issue_invite(admin_actor, 'DOCTOR')
        registered = bind_registration(invite.token, 'DOCTOR', doctor_form(email='dual@example.com'))

        patient = bind_registration(
            None, 'PATIENT', patient_form(email='dual@example.com'), doctor_public_id='DOC000001',
        )

        assert patient.user == registered.user
        roles = set(patient.user.user_roles.values_list('role__name', flat=True))
        assert roles == {'doctor', 'patient'}

    def test_existing_account_with_other_password_rejected(self, doctor):
        bind_registration(None, 'PATIENT', patient_form(), doctor_public_id='DOC000001')

        with pytest.raises(AppValidationError):
            bind_registration(
                None, 'PATIENT', patient_form(password='differentpass'), doctor_public_id='DOC000001',
            )

    def test_confirmation_email_after_commit(self, doctor, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            bind_registration(None, 'PATIENT', patient_form(), doctor_public_id='DOC000001')

        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == ['ravi@example.com']
        assert 'Dr. Arun Kumar' in mail.outbox[0].body

    def test_unknown_role(self):
        with pytest.raises(AppValidationError):
            bind_registration(None, 'ADMIN', patient_form())
