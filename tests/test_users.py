from decimal import Decimal
from unittest.mock import patch

import pytest
from django.urls import reverse

from apps.jobs import services as job_services
from apps.management.models import ManagementLog
from .conftest import UserFactory, WorkerFactory

pytestmark = pytest.mark.django_db

DOCUMENTS = {
    'full_name': 'Ravi Kumar',
    'aadhaar_front': 'https://files.example.com/ravi/aadhaar-front.jpg',
    'aadhaar_back': 'https://files.example.com/ravi/aadhaar-back.jpg',
    'address': '7 Residency Road, Bengaluru',
    'date_of_birth': '1994-03-02',
    'gender': 'Male',
}


@pytest.fixture
def applicant(db):
    return UserFactory(verification_status='pending')


class TestRoleSwitch:
    def test_switch_when_idle(self, api, client_user):
        response = api(client_user).post(reverse('switch_role'), {'role': 'worker'}, format='json')
        assert response.status_code == 200
        assert response.data['role'] == 'worker'

    def test_active_job_blocks_switch_for_both_sides(self, api, client_user, job, worker):
        job_services.pickup_job(job.id, worker)

        assert api(client_user).post(reverse('switch_role'), {'role': 'worker'}, format='json').status_code == 409
        assert api(worker).post(reverse('switch_role'), {'role': 'client'}, format='json').status_code == 409
        worker.refresh_from_db()
        assert worker.role == 'worker'

        status = api(worker).get(reverse('active_jobs_status')).data
        assert status == {'has_active_jobs': True, 'can_switch_role': False}

    def test_admin_role_cannot_be_chosen(self, api, client_user):
        response = api(client_user).post(reverse('switch_role'), {'role': 'admin'}, format='json')
        assert response.status_code == 400


class TestVerification:
    def test_submit_documents(self, api, client_user):
        response = api(client_user).post(reverse('verification_submit'), DOCUMENTS, format='json')
        assert response.status_code == 200
        assert response.data['verification_status'] == 'pending'
        assert response.data['has_submitted_documents'] is True
        client_user.refresh_from_db()
        assert client_user.verification_submitted_at is not None

    def test_status(self, api, worker):
        response = api(worker).get(reverse('verification_status'))
        assert response.data['verification_status'] == 'approved'
        assert response.data['worker_public_id'] == worker.worker_public_id

    def test_admin_approval_assigns_worker_id(self, api, admin_user, applicant):
        response = api(admin_user).post(reverse('approve_verification', kwargs={'user_id': applicant.id}))

        assert response.status_code == 200
        applicant.refresh_from_db()
        assert applicant.verification_status == 'approved'
        assert applicant.role == 'worker'
        assert applicant.worker_public_id.isdigit()
        assert 5 <= len(applicant.worker_public_id) <= 9
        assert ManagementLog.objects.filter(admin=admin_user, action='approve_verification').count() == 1

    def test_worker_id_collision_is_retried(self, admin_user, applicant):
        from apps.management.services import approve_verification
        WorkerFactory(worker_public_id='55555')
        with patch('apps.users.services.generate_worker_public_id', side_effect=['55555', '7654321']):
            user = approve_verification(applicant.id, admin_user)
        assert user.worker_public_id == '7654321'

    def test_worker_id_allocation_gives_up(self, api, admin_user, applicant, settings):
        settings.WORKER_ID_MAX_ATTEMPTS = 2
        WorkerFactory(worker_public_id='55555')
        with patch('apps.users.services.generate_worker_public_id', return_value='55555'):
            response = api(admin_user).post(reverse('approve_verification', kwargs={'user_id': applicant.id}))
        assert response.status_code == 409
        applicant.refresh_from_db()
        assert applicant.verification_status == 'pending'
        assert applicant.worker_public_id is None

    def test_reject(self, api, admin_user, applicant):
        response = api(admin_user).post(
            reverse('reject_verification', kwargs={'user_id': applicant.id}), {'reason': 'Blurry photo'}, format='json'
        )
        assert response.status_code == 200
        assert response.data['verification_status'] == 'rejected'
        assert ManagementLog.objects.get(action='reject_verification').details.endswith('Blurry photo')

    def test_pending_list(self, api, admin_user, applicant, worker):
        response = api(admin_user).get(reverse('pending_verifications'))
        assert [u['id'] for u in response.data] == [applicant.id]

    def test_non_admin_cannot_review(self, api, worker, applicant):
        response = api(worker).post(reverse('approve_verification', kwargs={'user_id': applicant.id}))
        assert response.status_code == 403


class TestAdminLookup:
    def test_search_by_phone_fragment(self, api, admin_user):
        match = UserFactory(phone_number='+919812345670')
        UserFactory(phone_number='+917000000001')
        response = api(admin_user).get(reverse('user_search'), {'phone': '12345'})
        assert [u['id'] for u in response.data] == [match.id]

    def test_search_needs_digits(self, api, admin_user):
        response = api(admin_user).get(reverse('user_search'), {'phone': 'ab'})
        assert response.status_code == 400

    def test_user_profile_includes_wallet(self, api, admin_user, worker, fund_wallet):
        fund_wallet(worker, '250.00')
        response = api(admin_user).get(reverse('admin_user_profile', kwargs={'user_id': worker.id}))
        assert response.data['wallet'] == {'balance': '250.00', 'total_earnings': '250.00'}

    def test_management_logs(self, api, admin_user, applicant):
        api(admin_user).post(reverse('approve_verification', kwargs={'user_id': applicant.id}))
        response = api(admin_user).get(reverse('management_logs'))
        assert response.data[0]['action'] == 'approve_verification'


class TestWallet:
    def test_wallet_summary(self, api, worker, fund_wallet):
        fund_wallet(worker, '900.00')
        response = api(worker).get(reverse('wallet'))
        assert response.status_code == 200
        assert response.data['balance'] == '900.00'
        assert response.data['total_earnings'] == '900.00'
        assert response.data['currency'] == 'INR'
        assert response.data['worker_public_id'] == worker.worker_public_id
        assert len(response.data['transactions']) == 1
        assert Decimal(response.data['transactions'][0]['amount']) == Decimal('900.00')

    def test_clients_have_no_wallet_endpoint(self, api, client_user):
        assert api(client_user).get(reverse('wallet')).status_code == 403
