"""
HTTP-level tests: routing, role gates and the unified error body.
"""
import pytest
from django.urls import reverse
from django.utils import timezone

from apps.authz.models import ApprovalStatus
from apps.onboarding.models import InviteToken


VISIT = {
    'weight': 60,
    'height': 160,
    'blood_pressure_systolic': 120,
    'blood_pressure_diastolic': 80,
    'naadi': 'Vatham',
    'diagnosis': 'Hypertension',
}


def assert_error(response, status_code, code):
    assert response.status_code == status_code, response.content
    body = response.json()
    assert body['type'] == 'error'
    assert body['code'] == code
    assert isinstance(body['detail'], list)
    return body


class TestHealth:

    def test_healthz(self, client):
        response = client.get('/healthz')
        assert response.status_code == 200
        assert response.json()['status'] == 'ok'

    def test_request_id_is_echoed_or_generated(self, client):
        assert client.get('/healthz', HTTP_X_REQUEST_ID='req-123')['X-Request-ID'] == 'req-123'
        assert client.get('/healthz')['X-Request-ID']

    def test_request_context_cleared_after_response(self, client):
        from apps.core.observability.correlation import get_request_id

        client.get('/healthz', HTTP_X_REQUEST_ID='req-456')
        assert get_request_id() is None

    @pytest.mark.django_db
    def test_readyz_requires_role_catalog(self, client):
        from apps.authz.models import Role, RoleChoices

        Role.objects.all().delete()
        response = client.get('/readyz')
        assert response.status_code == 503
        assert response.json()['checks'] == {'database': True, 'roles': False}

        for choice in RoleChoices:
            Role.objects.get_or_create(name=choice.value)
        assert client.get('/readyz').json()['status'] == 'ready'


@pytest.mark.django_db
class TestAuthAndRoles:

    def test_unauthenticated(self, api_client):
        response = api_client.get('/api/v1/patients/')
        assert_error(response, 401, 'NOT_AUTHENTICATED')

    def test_patient_cannot_issue_invites(self, patient_client):
        response = patient_client.post('/api/v1/invites/', {'role': 'PATIENT'}, format='json')
        assert_error(response, 403, 'PERMISSION_DENIED')

    def test_current_user(self, patient_client, patient):
        response = patient_client.get(reverse('current-user'))

        assert response.status_code == 200
        data = response.json()
        assert data['roles'] == ['patient']
        assert data['patient']['patient_uid'] == 'PAT000001'
        assert data['doctor'] is None

    def test_validation_rules_are_public(self, api_client):
        response = api_client.get('/api/v1/validation-rules/')
        assert response.status_code == 200
        assert 'vitals.doctor_visit' in response.json()


@pytest.mark.django_db
class TestInviteEndpoints:

    def test_issue_and_validate(self, admin_client, api_client):
        response = admin_client.post('/api/v1/invites/', {'role': 'doctor'}, format='json')

        assert response.status_code == 201
        invite = response.json()
        assert invite['role'] == 'DOCTOR'
        assert invite['registration_link'].endswith(f"register?role=doctor&token={invite['token']}")

        response = api_client.get('/api/v1/invites/validate/', {'token': invite['token']})
        assert response.status_code == 200
        assert response.json()['role'] == 'DOCTOR'
        assert response.json()['doctor_uid'] is None

    def test_validate_unknown_token(self, api_client):
        assert_error(api_client.get('/api/v1/invites/validate/', {'token': 'abc'}), 404, 'TOKEN_NOT_FOUND')

    def test_doctor_lists_own_invites(self, doctor_client, admin_client):
        doctor_client.post('/api/v1/invites/', {'role': 'PATIENT'}, format='json')
        admin_client.post('/api/v1/invites/', {'role': 'DOCTOR'}, format='json')

        response = doctor_client.get('/api/v1/invites/')

        assert response.status_code == 200
        assert [row['role'] for row in response.json()['results']] == ['PATIENT']

    def test_purge_is_admin_only(self, doctor_client):
        assert_error(doctor_client.post('/api/v1/invites/purge-expired/', {}, format='json'),
                     403, 'PERMISSION_DENIED')

    def test_purge_flag_must_be_boolean(self, admin_client):
        response = admin_client.post('/api/v1/invites/purge-expired/', {'delete': 'yes'}, format='json')
        assert_error(response, 400, 'VALIDATION_ERROR')

    def test_purge_dry_run(self, admin_client):
        response = admin_client.post('/api/v1/invites/purge-expired/', {}, format='json')
        assert response.json() == {'matched': 0, 'deleted': 0}


@pytest.mark.django_db
class TestRegistrationEndpoint:

    def payload(self, **overrides):
        data = {
            'role': 'PATIENT',
            'doctor_public_id': 'DOC000001',
            'first_name': 'Ravi',
            'last_name': 'Shankar',
            'email': 'ravi@example.com',
            'phone': '9000000001',
            'date_of_birth': '1985-06-15',
            'gender': 'male',
            'emergency_contact': 'Lakshmi',
            'emergency_phone': '9000000002',
            'password': 'strongpass1',
        }
        data.update(overrides)
        return data

    def test_direct_patient_registration(self, api_client, doctor):
        response = api_client.post('/api/v1/register/', self.payload(), format='json')

        assert response.status_code == 201
        data = response.json()
        assert data['role'] == 'PATIENT'
        assert data['status'] == ApprovalStatus.PENDING
        assert data['doctor_uid'] == 'DOC000001'

    def test_missing_profile_fields(self, api_client, doctor):
        response = api_client.post('/api/v1/register/', self.payload(phone=''), format='json')
        body = assert_error(response, 400, 'VALIDATION_ERROR')
        assert 'phone: this field is required' in body['detail']

    def test_missing_role(self, api_client):
        payload = self.payload()
        del payload['role']
        body = assert_error(api_client.post('/api/v1/register/', payload, format='json'), 400, 'VALIDATION_ERROR')
        assert body['detail'][0].startswith('role:')

    def test_consumed_token(self, api_client, admin_client):
        token = admin_client.post('/api/v1/invites/', {'role': 'DOCTOR'}, format='json').json()['token']
        InviteToken.objects.filter(token=token).update(consumed_at=timezone.now())

        response = api_client.post('/api/v1/register/', {
            'role': 'DOCTOR', 'token': token, 'first_name': 'Kavya', 'last_name': 'Iyer',
            'email': 'kavya@example.com', 'phone': '9123456780', 'password': 'strongpass1',
            'medical_license': 'TN-12345', 'qualification': 'BSMS',
        }, format='json')

        assert_error(response, 409, 'TOKEN_ALREADY_CONSUMED')


@pytest.mark.django_db
class TestApprovalEndpoints:

    def test_doctor_approves_own_patient(self, doctor_client, pending_patient):
        response = doctor_client.post(f'/api/v1/approve/patient/{pending_patient.id}/')

        assert response.status_code == 200
        data = response.json()
        assert data['entity_type'] == 'Patient'
        assert data['status'] == 'APPROVED'
        assert data['public_uid'] == 'PAT000001'

    def test_reject_twice_conflicts(self, admin_client, pending_doctor):
        url = f'/api/v1/reject/doctor/{pending_doctor.id}/'
        assert admin_client.post(url, {'reason': 'Incomplete'}, format='json').status_code == 200

        body = assert_error(admin_client.post(url, {'reason': 'Again'}, format='json'), 409, 'INVALID_TRANSITION')
        assert 'current_status: REJECTED' in body['detail']

    def test_doctor_cannot_approve_doctor(self, doctor_client, pending_doctor):
        response = doctor_client.post(f'/api/v1/approve/doctor/{pending_doctor.id}/')
        assert_error(response, 403, 'FORBIDDEN')

    def test_mark_cured_and_audit(self, doctor_client, patient):
        assert doctor_client.post(f'/api/v1/patients/{patient.id}/mark-cured/').json()['is_cured'] is True

        response = doctor_client.get(f'/api/v1/approval-audit/patient/{patient.id}/')
        assert response.status_code == 200
        assert response.json()['results'][0]['action'] == 'mark_cured'


@pytest.mark.django_db
class TestClinicalEndpoints:

    def test_record_vitals(self, doctor_client, patient):
        response = doctor_client.post('/api/v1/vitals/', {'patient_id': str(patient.id), **VISIT}, format='json')

        assert response.status_code == 201
        data = response.json()
        assert data['bmi'] == '23.44'
        assert data['recorded_by_uid'] == 'DOC000001'

    def test_patient_cannot_record_vitals(self, patient_client, patient):
        response = patient_client.post('/api/v1/vitals/', {'patient_id': str(patient.id), **VISIT}, format='json')
        assert_error(response, 403, 'PERMISSION_DENIED')

    def test_missing_vital(self, doctor_client, patient):
        payload = {'patient_id': str(patient.id), **VISIT}
        del payload['weight']
        assert_error(doctor_client.post('/api/v1/vitals/', payload, format='json'), 400, 'MISSING_REQUIRED_VITAL')

    def test_height_in_metres(self, doctor_client, patient):
        payload = {'patient_id': str(patient.id), **VISIT, 'height': 1.75}
        body = assert_error(doctor_client.post('/api/v1/vitals/', payload, format='json'), 400, 'VALIDATION_ERROR')
        assert body['detail'] == ['height: must be between 30 and 300']

    def test_latest_without_records(self, patient_client):
        assert_error(patient_client.get('/api/v1/vitals/latest/'), 404, 'VITALS_NOT_FOUND')

    def test_patient_reads_own_history(self, doctor_client, patient_client, patient):
        doctor_client.post('/api/v1/vitals/', {'patient_id': str(patient.id), **VISIT}, format='json')

        response = patient_client.get('/api/v1/vitals/')

        assert response.status_code == 200
        assert response.json()['count'] == 1

    def test_patient_list_scoped_to_doctor(self, doctor_client, other_doctor, patient):
        response = doctor_client.get('/api/v1/patients/')
        assert [row['id'] for row in response.json()['results']] == [str(patient.id)]

        other = doctor_client.get('/api/v1/patients/', {'status': 'PENDING'})
        assert other.json()['results'] == []

    def test_meal_and_daily_compliance(self, patient_client):
        response = patient_client.post('/api/v1/meals/', {
            'date': '2024-05-06', 'meal_type': 'lunch', 'completed': True,
        }, format='json')
        assert response.status_code == 200
        assert response.json()['completed'] is True

        response = patient_client.get('/api/v1/diet-compliance/', {'date': '2024-05-06'})
        assert response.json()['percentage'] == 33

    def test_compliance_needs_date(self, patient_client):
        assert_error(patient_client.get('/api/v1/diet-compliance/'), 400, 'VALIDATION_ERROR')

    def test_weekly_compliance(self, patient_client):
        response = patient_client.get('/api/v1/diet-compliance/weekly/', {'end': '2024-05-12'})
        assert response.status_code == 200
        assert len(response.json()['days']) == 7

    def test_custom_diet_plan(self, doctor_client, patient_client, patient):
        day = {'meals': {'breakfast': ['Ragi kanji'], 'lunch': ['Millet rice'], 'dinner': ['Idli']}}
        plan = {'days': [dict(day, day=n) for n in range(1, 8)]}
        url = f'/api/v1/patients/{patient.id}/custom-diet-plan/'

        assert_error(patient_client.put(url, {'plan_data': plan}, format='json'), 403, 'PERMISSION_DENIED')

        response = doctor_client.put(url, {'plan_data': plan, 'diagnosis': 'Anemia'}, format='json')
        assert response.status_code == 200

        response = patient_client.get(f'/api/v1/patients/{patient.id}/diet-plan/', {'date': '2024-05-12'})
        assert response.json()['source'] == 'custom'
        assert response.json()['weekday'] == 7

    def test_diet_plan_without_diagnosis(self, patient_client, patient):
        response = patient_client.get(f'/api/v1/patients/{patient.id}/diet-plan/')
        assert_error(response, 404, 'DIET_PLAN_NOT_FOUND')

    def test_templates(self, doctor_client):
        response = doctor_client.get('/api/v1/diet-plans/templates/')
        assert [plan['diagnosis'] for plan in response.json()] == [
            'Anemia', 'Diabetes Mellitus', 'Hemorrhoids', 'Hypertension',
        ]


@pytest.mark.django_db
class TestDoctorDirectory:

    def test_admin_filters_by_status(self, admin_client, doctor, pending_doctor):
        response = admin_client.get('/api/v1/doctors/', {'status': 'pending'})

        assert response.status_code == 200
        assert [row['email'] for row in response.json()['results']] == [pending_doctor.email]

    def test_doctors_cannot_browse_directory(self, doctor_client):
        assert_error(doctor_client.get('/api/v1/doctors/'), 403, 'PERMISSION_DENIED')
