from decimal import Decimal

import pytest
from django.urls import reverse

from apps.jobs import services
from apps.jobs.models import Job
from core.exceptions import StateConflict
from .conftest import JobFactory, UserFactory

pytestmark = pytest.mark.django_db

JOB_PAYLOAD = {
    'title': 'Paint the living room',
    'address': '4 Park Street, Kolkata',
    'pincode': '700016',
    'budget': '2500.00',
    'category': 'Painting',
    'gender': 'Female',
    'description': 'Two coats, white',
}


class TestJobCreateAndFetch:
    def test_created_job_reads_back_unchanged(self, api, client_user):
        http = api(client_user)
        created = http.post(reverse('job_list_create'), JOB_PAYLOAD, format='json')
        assert created.status_code == 201

        fetched = http.get(reverse('job_detail', kwargs={'job_id': created.data['id']}))
        assert fetched.status_code == 200
        for field, value in JOB_PAYLOAD.items():
            assert fetched.data[field] == value
        assert fetched.data['status'] == 'open'
        assert fetched.data['client_id'] == client_user.id
        assert fetched.data['assigned_worker'] is None

    def test_budget_must_be_positive(self, api, client_user):
        response = api(client_user).post(
            reverse('job_list_create'), dict(JOB_PAYLOAD, budget='0'), format='json'
        )
        assert response.status_code == 400
        assert response.data['code'] == 'validation_error'
        assert 'budget' in response.data['fields']
        assert not Job.objects.exists()

    def test_missing_title_is_rejected(self, api, client_user):
        payload = {k: v for k, v in JOB_PAYLOAD.items() if k != 'title'}
        response = api(client_user).post(reverse('job_list_create'), payload, format='json')
        assert response.status_code == 400
        assert 'title' in response.data['fields']

    def test_workers_cannot_post_jobs(self, api, worker):
        response = api(worker).post(reverse('job_list_create'), JOB_PAYLOAD, format='json')
        assert response.status_code == 403

    def test_unauthenticated_request_gets_error_body(self, api):
        response = api().get(reverse('job_list_create'))
        assert response.status_code == 401
        assert response.data['code'] == 'not_authenticated'
        assert 'error' in response.data

    def test_list_filters_by_status(self, api, client_user):
        JobFactory(client=client_user)
        JobFactory(client=client_user, status='cancelled')
        JobFactory()

        response = api(client_user).get(reverse('job_list_create'), {'status': 'open'})
        assert response.status_code == 200
        assert [j['status'] for j in response.data] == ['open']

        response = api(client_user).get(reverse('job_list_create'))
        assert len(response.data) == 2


class TestEditAndDelete:
    def test_owner_can_edit_open_job(self, api, client_user, job):
        response = api(client_user).patch(
            reverse('job_detail', kwargs={'job_id': job.id}), {'budget': '1200.00'}, format='json'
        )
        assert response.status_code == 200
        job.refresh_from_db()
        assert job.budget == Decimal('1200.00')
        assert job.gender == 'Any'

    def test_other_client_gets_403_not_404(self, api, job):
        stranger = UserFactory()
        url = reverse('job_detail', kwargs={'job_id': job.id})
        assert api(stranger).patch(url, {'title': 'Mine now'}, format='json').status_code == 403
        assert api(stranger).delete(url).status_code == 403
        assert api(stranger).get(url).status_code == 403

    def test_unknown_job_is_404(self, api, client_user):
        response = api(client_user).get(reverse('job_detail', kwargs={'job_id': 999}))
        assert response.status_code == 404
        assert response.data['code'] == 'not_found'

    def test_edit_refused_after_assignment(self, api, client_user, job, worker):
        services.pickup_job(job.id, worker)
        response = api(client_user).patch(
            reverse('job_detail', kwargs={'job_id': job.id}), {'budget': '1.00'}, format='json'
        )
        assert response.status_code == 409
        assert response.data['code'] == 'precondition_failed'
        job.refresh_from_db()
        assert job.budget == Decimal('1000.00')

    def test_delete_refused_after_assignment(self, api, client_user, job, worker):
        services.pickup_job(job.id, worker)
        response = api(client_user).delete(reverse('job_detail', kwargs={'job_id': job.id}))
        assert response.status_code == 409
        assert Job.objects.filter(pk=job.id).exists()

    def test_delete_open_job(self, api, client_user, job):
        response = api(client_user).delete(reverse('job_detail', kwargs={'job_id': job.id}))
        assert response.status_code == 204
        assert not Job.objects.filter(pk=job.id).exists()

    def test_cancel_rejects_pending_offers(self, api, client_user, job, worker):
        services.submit_offer(job.id, worker, Decimal('900'))
        response = api(client_user).post(reverse('job_cancel', kwargs={'job_id': job.id}))
        assert response.status_code == 200
        assert response.data['status'] == 'cancelled'
        assert list(job.offers.values_list('status', flat=True)) == ['rejected']


class TestWorkerTransitions:
    def test_full_lifecycle(self, api, client_user, job, worker):
        http = api(worker)
        assert http.post(reverse('job_pickup', kwargs={'job_id': job.id})).data['status'] == 'assigned'
        assert http.post(reverse('job_start', kwargs={'job_id': job.id})).data['status'] == 'in_progress'
        assert http.post(reverse('job_work_done', kwargs={'job_id': job.id})).data['status'] == 'work_done'

        paid = api(client_user).post(reverse('job_pay', kwargs={'job_id': job.id}), {'payment_method': 'upi'})
        assert paid.status_code == 200
        assert paid.data['job_status'] == 'completed'

        done = http.post(reverse('job_fully_complete', kwargs={'job_id': job.id}))
        assert done.status_code == 200
        assert done.data['status'] == 'fully_completed'
        job.refresh_from_db()
        assert job.fully_completed_at is not None

    def test_pickup_freezes_worker_snapshot(self, job, worker):
        services.pickup_job(job.id, worker)
        job.refresh_from_db()
        assert job.assigned_worker_id == worker.id
        assert job.assigned_worker_name == worker.display_name
        assert job.assigned_worker_public_id == worker.worker_public_id
        assert job.pickup_method == 'direct'

    def test_only_assigned_worker_can_mark_done(self, api, job, worker, other_worker):
        services.pickup_job(job.id, worker)
        response = api(other_worker).post(reverse('job_work_done', kwargs={'job_id': job.id}))
        assert response.status_code == 403
        assert response.data['code'] == 'not_authorized'

    def test_cannot_fully_complete_before_payment(self, api, work_done_job, worker):
        response = api(worker).post(reverse('job_fully_complete', kwargs={'job_id': work_done_job.id}))
        assert response.status_code == 409

    def test_paying_before_work_done_is_refused(self, api, client_user, job, worker):
        services.pickup_job(job.id, worker)
        response = api(client_user).post(reverse('job_pay', kwargs={'job_id': job.id}), {'payment_method': 'upi'})
        assert response.status_code == 409
        assert response.data['status'] == 'assigned'
        assert worker.get_wallet().balance == Decimal('0.00')

    def test_unverified_worker_cannot_pick_up(self, api, job):
        from .conftest import WorkerFactory
        newcomer = WorkerFactory(verification_status='pending', worker_public_id=None)
        response = api(newcomer).post(reverse('job_pickup', kwargs={'job_id': job.id}))
        assert response.status_code == 409
        job.refresh_from_db()
        assert job.status == 'open'

    def test_stale_transition_is_a_conflict(self, job):
        stale = Job.objects.get(pk=job.id)
        Job.objects.filter(pk=job.id).update(status='cancelled')
        with pytest.raises(StateConflict):
            services.advance_job(stale, 'assigned', ('open',))

    def test_worker_sees_assigned_jobs(self, api, job, worker):
        services.pickup_job(job.id, worker)
        response = api(worker).get(reverse('assigned_jobs'))
        assert [j['id'] for j in response.data] == [job.id]

    def test_open_jobs_exclude_assigned(self, api, job, worker, other_worker):
        second = JobFactory()
        services.pickup_job(second.id, worker)
        response = api(other_worker).get(reverse('open_jobs'))
        assert [j['id'] for j in response.data] == [job.id]
