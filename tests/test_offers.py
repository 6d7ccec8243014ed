import threading
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.db import IntegrityError, connection, transaction
from django.urls import reverse
from django.utils import timezone

from apps.jobs import services
from apps.jobs.models import Job, Offer
from core.exceptions import PreconditionFailed, ResourceNotFound, StateConflict
from .conftest import WorkerFactory

pytestmark = pytest.mark.django_db


def make_offer(http, job, amount='950.00', message='Can start tomorrow'):
    return http.post(
        reverse('offer_submit', kwargs={'job_id': job.id}),
        {'amount': amount, 'message': message},
        format='json',
    )


def backdate_cooldown(job, worker, minutes):
    job.refresh_from_db()
    job.cooldowns[str(worker.id)] = (timezone.now() - timedelta(minutes=minutes)).isoformat()
    job.save(update_fields=['cooldowns'])


class TestSubmitOffer:
    def test_offer_is_recorded_with_worker_snapshot(self, api, job, worker):
        response = make_offer(api(worker), job)
        assert response.status_code == 201
        offer = Offer.objects.get(pk=response.data['id'])
        assert offer.status == 'pending'
        assert offer.worker_public_id == worker.worker_public_id
        assert offer.amount == Decimal('950.00')

    def test_second_offer_inside_cooldown_gets_retry_after(self, api, job, worker):
        http = api(worker)
        make_offer(http, job)
        response = make_offer(http, job, amount='900.00')

        assert response.status_code == 429
        assert response.data['code'] == 'offer_cooldown'
        assert 0 < response.data['retry_after'] <= 300
        assert int(response['Retry-After']) == response.data['retry_after']
        assert Offer.objects.get(job=job, worker=worker).amount == Decimal('950.00')

    def test_offer_after_cooldown_replaces_previous(self, api, job, worker):
        http = api(worker)
        make_offer(http, job)
        backdate_cooldown(job, worker, minutes=6)

        response = make_offer(http, job, amount='880.00')
        assert response.status_code == 201
        offers = Offer.objects.filter(job=job, worker=worker)
        assert offers.count() == 1
        assert offers.get().amount == Decimal('880.00')

    def test_cooldown_is_per_job(self, api, client_user, job, worker):
        from .conftest import JobFactory
        other_job = JobFactory(client=client_user)
        http = api(worker)
        assert make_offer(http, job).status_code == 201
        assert make_offer(http, other_job).status_code == 201

    def test_cooldown_endpoint(self, api, job, worker):
        http = api(worker)
        url = reverse('offer_cooldown', kwargs={'job_id': job.id})
        assert http.get(url).data == {'can_offer': True, 'remaining_seconds': 0}

        make_offer(http, job)
        data = http.get(url).data
        assert data['can_offer'] is False
        assert 0 < data['remaining_seconds'] <= 300

    def test_offer_on_own_job_is_refused(self, api, client_user, job):
        client_user.role = 'worker'
        client_user.verification_status = 'approved'
        client_user.save()
        assert make_offer(api(client_user), job).status_code == 409

    def test_offer_on_assigned_job_is_refused(self, api, job, worker, other_worker):
        services.pickup_job(job.id, other_worker)
        response = make_offer(api(worker), job)
        assert response.status_code == 409
        assert response.data['status'] == 'assigned'

    def test_clients_cannot_make_offers(self, api, client_user, job):
        assert make_offer(api(client_user), job).status_code == 403


class TestAcceptOffer:
    def test_accept_assigns_and_rejects_the_rest(self, api, client_user, job, worker, other_worker):
        services.submit_offer(job.id, worker, Decimal('950'))
        services.submit_offer(job.id, other_worker, Decimal('900'))

        response = api(client_user).post(
            reverse('offer_accept', kwargs={'job_id': job.id}), {'worker_id': worker.id}, format='json'
        )
        assert response.status_code == 200
        job.refresh_from_db()
        assert job.status == 'assigned'
        assert job.assigned_worker_id == worker.id
        assert job.pickup_method == 'offer'
        assert job.offers.get(worker=worker).status == 'accepted'
        assert job.offers.get(worker=other_worker).status == 'rejected'
        assert job.offers.filter(status='accepted').count() == 1

    def test_second_accept_is_refused(self, api, client_user, job, worker, other_worker):
        services.submit_offer(job.id, worker, Decimal('950'))
        services.submit_offer(job.id, other_worker, Decimal('900'))
        http = api(client_user)
        url = reverse('offer_accept', kwargs={'job_id': job.id})
        http.post(url, {'worker_id': worker.id}, format='json')

        response = http.post(url, {'worker_id': other_worker.id}, format='json')
        assert response.status_code == 409
        assert job.offers.filter(status='accepted').count() == 1

    def test_accept_unknown_worker_is_404(self, api, client_user, job, worker):
        response = api(client_user).post(
            reverse('offer_accept', kwargs={'job_id': job.id}), {'worker_id': worker.id}, format='json'
        )
        assert response.status_code == 404

    def test_only_owner_may_accept(self, api, job, worker):
        from .conftest import UserFactory
        services.submit_offer(job.id, worker, Decimal('950'))
        response = api(UserFactory()).post(
            reverse('offer_accept', kwargs={'job_id': job.id}), {'worker_id': worker.id}, format='json'
        )
        assert response.status_code == 403
        assert job.offers.get().status == 'pending'

    def test_reject_offer(self, api, client_user, job, worker):
        services.submit_offer(job.id, worker, Decimal('950'))
        response = api(client_user).post(
            reverse('offer_reject', kwargs={'job_id': job.id}), {'worker_id': worker.id}, format='json'
        )
        assert response.status_code == 200
        assert response.data['status'] == 'rejected'
        job.refresh_from_db()
        assert job.status == 'open'

    def test_database_allows_one_accepted_offer_per_job(self, job, worker, other_worker):
        services.submit_offer(job.id, worker, Decimal('950'))
        services.submit_offer(job.id, other_worker, Decimal('900'))
        with pytest.raises(IntegrityError), transaction.atomic():
            Offer.objects.filter(job=job).update(status='accepted')

    def test_accept_against_stale_open_row_is_refused(self, client_user, job, worker, other_worker):
        services.submit_offer(job.id, worker, Decimal('950'))
        services.submit_offer(job.id, other_worker, Decimal('900'))
        stale = Job.objects.get(pk=job.id)
        # Another request assigned the job after this one read it as open
        Job.objects.filter(pk=job.id).update(status='assigned', assigned_worker=worker)

        with patch('apps.jobs.services.lock_job', return_value=stale):
            with pytest.raises(StateConflict):
                services.accept_offer(job.id, client_user, other_worker.id)

        assert not job.offers.filter(status='accepted').exists()
        job.refresh_from_db()
        assert job.assigned_worker_id == worker.id

    @pytest.mark.django_db(transaction=True)
    @pytest.mark.skipif(
        not connection.features.has_select_for_update, reason="backend does not lock rows"
    )
    def test_concurrent_accepts_leave_one_winner(self, client_user, job, worker, other_worker):
        services.submit_offer(job.id, worker, Decimal('950'))
        services.submit_offer(job.id, other_worker, Decimal('900'))
        barrier = threading.Barrier(2)
        outcomes = []

        def accept(worker_id):
            barrier.wait()
            try:
                services.accept_offer(job.id, client_user, worker_id)
                outcomes.append('accepted')
            except (PreconditionFailed, StateConflict, ResourceNotFound):
                outcomes.append('refused')
            finally:
                connection.close()

        threads = [threading.Thread(target=accept, args=(w.id,)) for w in (worker, other_worker)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(outcomes) == ['accepted', 'refused']
        assert Offer.objects.filter(job=job, status='accepted').count() == 1


class TestPickup:
    def test_pickup_rejects_pending_offers(self, api, job, worker, other_worker):
        services.submit_offer(job.id, other_worker, Decimal('900'))
        response = api(worker).post(reverse('job_pickup', kwargs={'job_id': job.id}))
        assert response.status_code == 200
        assert job.offers.get().status == 'rejected'

    def test_pickup_of_taken_job_is_refused(self, api, job, worker):
        services.pickup_job(job.id, worker)
        response = api(WorkerFactory()).post(reverse('job_pickup', kwargs={'job_id': job.id}))
        assert response.status_code == 409
        job.refresh_from_db()
        assert job.assigned_worker_id == worker.id
