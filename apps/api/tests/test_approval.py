"""
Tests for the doctor/patient approval state machine.
"""
import pytest
from django.core import mail

from apps.authz.models import ApprovalStatus
from apps.core.actors import Actor
from apps.core.exceptions import (
    AppValidationError,
    AuthorizationError,
    DoctorNotFoundError,
    InvalidTransitionError,
    PatientNotFoundError,
)
from apps.onboarding import approval
from apps.onboarding.models import ApprovalAuditLog
from tests.conftest import make_doctor, make_patient


@pytest.mark.django_db
class TestDoctorApproval:

    def test_approve_assigns_first_uid_and_audits(self, admin_actor, pending_doctor):
        doctor = approval.approve(admin_actor, 'doctor', pending_doctor.id)

        assert doctor.status == ApprovalStatus.APPROVED
        assert doctor.doctor_uid == 'DOC000001'
        assert doctor.approved_at is not None

        audit = ApprovalAuditLog.objects.get(entity_id=doctor.id)
        assert (audit.from_status, audit.to_status, audit.action) == ('PENDING', 'APPROVED', 'approve')
        assert audit.actor_role == 'admin'
        assert audit.metadata['public_uid'] == 'DOC000001'

    def test_uids_are_sequential(self, admin_actor, doctor):
        newcomer = make_doctor('new.doc@test.com', status=ApprovalStatus.PENDING)
        approved = approval.approve(admin_actor, 'Doctor', newcomer.id)
        assert approved.doctor_uid == 'DOC000002'

    def test_uid_sequence_continues_past_padding(self, admin_actor):
        make_doctor('old.doc@test.com', doctor_uid='DOC000005')
        make_doctor('last.doc@test.com', doctor_uid='DOC999999')
        first = make_doctor('first.new@test.com', status=ApprovalStatus.PENDING)
        second = make_doctor('second.new@test.com', status=ApprovalStatus.PENDING)

        assert approval.approve(admin_actor, 'doctor', first.id).doctor_uid == 'DOC1000000'
        assert approval.approve(admin_actor, 'doctor', second.id).doctor_uid == 'DOC1000001'

    def test_reapprove_is_noop(self, admin_actor, pending_doctor, django_capture_on_commit_callbacks):
        approval.approve(admin_actor, 'doctor', pending_doctor.id)

        with django_capture_on_commit_callbacks(execute=True):
            again = approval.approve(admin_actor, 'doctor', pending_doctor.id)

        assert again.doctor_uid == 'DOC000001'
        assert ApprovalAuditLog.objects.filter(entity_id=pending_doctor.id).count() == 1
        assert mail.outbox == []

    def test_only_admin_approves_doctors(self, doctor_actor, pending_doctor):
        with pytest.raises(AuthorizationError):
            approval.approve(doctor_actor, 'doctor', pending_doctor.id)
        pending_doctor.refresh_from_db()
        assert pending_doctor.status == ApprovalStatus.PENDING

    def test_reject_requires_reason(self, admin_actor, pending_doctor):
        with pytest.raises(AppValidationError):
            approval.reject(admin_actor, 'doctor', pending_doctor.id, '   ')

    def test_reject_stores_reason(self, admin_actor, pending_doctor):
        doctor = approval.reject(admin_actor, 'doctor', pending_doctor.id, 'License not verifiable')
        assert doctor.status == ApprovalStatus.REJECTED
        assert doctor.rejection_reason == 'License not verifiable'
        assert doctor.doctor_uid is None

    def test_reject_approved_doctor(self, admin_actor, doctor):
        rejected = approval.reject(admin_actor, 'doctor', doctor.id, 'License revoked')
        assert rejected.status == ApprovalStatus.REJECTED
        assert rejected.doctor_uid == 'DOC000001'

    def test_approve_from_rejected_is_invalid(self, admin_actor, pending_doctor):
        approval.reject(admin_actor, 'doctor', pending_doctor.id, 'Incomplete')

        with pytest.raises(InvalidTransitionError) as exc:
            approval.approve(admin_actor, 'doctor', pending_doctor.id)
        assert exc.value.current_status == 'REJECTED'

    def test_reject_twice_is_invalid(self, admin_actor, pending_doctor):
        approval.reject(admin_actor, 'doctor', pending_doctor.id, 'Incomplete')
        with pytest.raises(InvalidTransitionError):
            approval.reject(admin_actor, 'doctor', pending_doctor.id, 'Again')

    def test_revert_rejected_to_approved_keeps_uid(self, admin_actor, doctor):
        approval.revert(admin_actor, 'doctor', doctor.id, 'REJECTED', 'Audit hold')
        restored = approval.revert(admin_actor, 'doctor', doctor.id, 'APPROVED')

        assert restored.status == ApprovalStatus.APPROVED
        assert restored.doctor_uid == 'DOC000001'
        assert restored.rejection_reason == ''

    def test_revert_rejected_to_pending(self, admin_actor, pending_doctor):
        approval.reject(admin_actor, 'doctor', pending_doctor.id, 'Incomplete')
        doctor = approval.revert(admin_actor, 'doctor', pending_doctor.id, 'pending')
        assert doctor.status == ApprovalStatus.PENDING

    def test_revert_pending_is_invalid(self, admin_actor, pending_doctor):
        with pytest.raises(InvalidTransitionError):
            approval.revert(admin_actor, 'doctor', pending_doctor.id, 'APPROVED')

    def test_revert_unknown_status(self, admin_actor, doctor):
        with pytest.raises(AppValidationError):
            approval.revert(admin_actor, 'doctor', doctor.id, 'ARCHIVED')

    def test_unknown_entity(self, admin_actor):
        with pytest.raises(DoctorNotFoundError):
            approval.approve(admin_actor, 'doctor', '00000000-0000-0000-0000-000000000000')
        with pytest.raises(PatientNotFoundError):
            approval.approve(admin_actor, 'patient', 'not-a-uuid')

    def test_unknown_entity_type(self, admin_actor, doctor):
        with pytest.raises(AppValidationError):
            approval.approve(admin_actor, 'nurse', doctor.id)

    def test_status_email_after_commit(self, admin_actor, pending_doctor, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            approval.approve(admin_actor, 'doctor', pending_doctor.id)

        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == [pending_doctor.email]
        assert 'DOC000001' in mail.outbox[0].body


@pytest.mark.django_db
class TestPatientApproval:

    def test_assigned_doctor_approves_patient(self, doctor_actor, pending_patient):
        patient = approval.approve(doctor_actor, 'patient', pending_patient.id)

        assert patient.status == ApprovalStatus.APPROVED
        assert patient.patient_uid == 'PAT000001'
        audit = ApprovalAuditLog.objects.get(entity_id=patient.id)
        assert audit.actor_role == 'doctor'

    def test_other_doctor_cannot_approve(self, other_doctor, pending_patient):
        with pytest.raises(AuthorizationError):
            approval.approve(Actor.from_user(other_doctor.user), 'patient', pending_patient.id)

    def test_unapproved_assigned_doctor_cannot_approve(self, pending_doctor):
        patient = make_patient('p@example.com', pending_doctor, status=ApprovalStatus.PENDING)
        with pytest.raises(AuthorizationError):
            approval.approve(Actor.from_user(pending_doctor.user), 'patient', patient.id)

    def test_patient_cannot_approve_self(self, patient_actor, pending_patient):
        with pytest.raises(AuthorizationError):
            approval.approve(patient_actor, 'patient', pending_patient.id)

    def test_mark_cured_and_reactivate(self, doctor_actor, patient):
        cured = approval.mark_cured(doctor_actor, patient.id)
        assert cured.is_cured is True
        assert cured.cured_at is not None
        assert cured.status == ApprovalStatus.APPROVED

        active = approval.reactivate(doctor_actor, patient.id)
        assert active.is_cured is False
        assert active.cured_at is None

        actions = list(
            ApprovalAuditLog.objects.filter(entity_id=patient.id)
            .order_by('created_at')
            .values_list('action', 'from_status', 'to_status')
        )
        assert actions == [('mark_cured', 'ACTIVE', 'CURED'), ('reactivate', 'CURED', 'ACTIVE')]

    def test_mark_cured_twice_is_invalid(self, doctor_actor, patient):
        approval.mark_cured(doctor_actor, patient.id)
        with pytest.raises(InvalidTransitionError):
            approval.mark_cured(doctor_actor, patient.id)

    def test_mark_cured_requires_approved(self, doctor_actor, pending_patient):
        with pytest.raises(InvalidTransitionError):
            approval.mark_cured(doctor_actor, pending_patient.id)

    def test_reactivate_active_patient_is_invalid(self, doctor_actor, patient):
        with pytest.raises(InvalidTransitionError):
            approval.reactivate(doctor_actor, patient.id)

    def test_audit_trail_newest_first(self, admin_actor, pending_patient):
        approval.approve(admin_actor, 'patient', pending_patient.id)
        approval.reject(admin_actor, 'patient', pending_patient.id, 'Duplicate registration')

        trail = list(approval.audit_trail(admin_actor, 'patient', pending_patient.id))
        assert [entry.action for entry in trail] == ['reject', 'approve']
        assert trail[0].reason == 'Duplicate registration'

    def test_audit_log_is_append_only(self, admin_actor, pending_patient):
        approval.approve(admin_actor, 'patient', pending_patient.id)
        entry = ApprovalAuditLog.objects.get(entity_id=pending_patient.id)

        entry.reason = 'edited'
        with pytest.raises(ValueError):
            entry.save()

    def test_superuser_acts_as_admin(self, pending_patient, django_user_model):
        root = django_user_model.objects.create_superuser(email='root@test.com', password='rootpass123')
        patient = approval.approve(Actor.from_user(root), 'patient', pending_patient.id)
        assert patient.status == ApprovalStatus.APPROVED


OPERATIONS = {
    'approve': lambda actor, kind, entity: approval.approve(actor, kind, entity.id),
    'reject': lambda actor, kind, entity: approval.reject(actor, kind, entity.id, 'Not eligible'),
    'revert_to_pending': lambda actor, kind, entity: approval.revert(actor, kind, entity.id, 'PENDING'),
    'revert_to_approved': lambda actor, kind, entity: approval.revert(actor, kind, entity.id, 'APPROVED'),
    'revert_to_rejected': lambda actor, kind, entity: approval.revert(actor, kind, entity.id, 'REJECTED'),
    'mark_cured': lambda actor, kind, entity: approval.mark_cured(actor, entity.id),
}

# Every (status, operation) pair outside the transition table
INVALID_PAIRS = [
    ('PENDING', 'revert_to_pending'),
    ('PENDING', 'revert_to_approved'),
    ('PENDING', 'revert_to_rejected'),
    ('PENDING', 'mark_cured'),
    ('APPROVED', 'revert_to_pending'),
    ('APPROVED', 'revert_to_approved'),
    ('REJECTED', 'approve'),
    ('REJECTED', 'reject'),
    ('REJECTED', 'revert_to_rejected'),
    ('REJECTED', 'mark_cured'),
]


def test_invalid_pairs_cover_everything_outside_the_table():
    allowed = {
        ('PENDING', 'approve'),
        ('APPROVED', 'approve'),  # no-op
        ('PENDING', 'reject'),
        ('APPROVED', 'reject'),
        ('APPROVED', 'revert_to_rejected'),
        ('REJECTED', 'revert_to_approved'),
        ('REJECTED', 'revert_to_pending'),
        ('APPROVED', 'mark_cured'),
    }
    every_pair = {(status, op) for status in ApprovalStatus.values for op in OPERATIONS}
    assert every_pair - allowed == set(INVALID_PAIRS)


@pytest.mark.django_db
class TestInvalidTransitions:

    def _entity(self, kind, status, doctor):
        uid = status != ApprovalStatus.PENDING
        if kind == 'doctor':
            return make_doctor('subject.doc@test.com', status=status, doctor_uid='DOC000050' if uid else None)
        return make_patient('subject@example.com', doctor, status=status,
                            patient_uid='PAT000050' if uid else None)

    @pytest.mark.parametrize('kind', ['doctor', 'patient'])
    @pytest.mark.parametrize('status,operation', INVALID_PAIRS)
    def test_rejected_without_side_effects(self, admin_actor, doctor, kind, status, operation):
        if kind == 'doctor' and operation == 'mark_cured':
            pytest.skip('mark_cured applies to patients only')
        entity = self._entity(kind, status, doctor)

        with pytest.raises(InvalidTransitionError) as exc:
            OPERATIONS[operation](admin_actor, kind, entity)

        assert exc.value.current_status == status
        entity.refresh_from_db()
        assert entity.status == status
        assert not ApprovalAuditLog.objects.filter(entity_id=entity.id).exists()
