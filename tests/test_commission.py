from decimal import Decimal

import pytest
from django.urls import reverse

from apps.jobs import services as job_services
from apps.payments import services
from apps.payments.models import CommissionEntry
from .conftest import JobFactory

pytestmark = pytest.mark.django_db


def paid_job(client_user, worker, method, budget='1000.00'):
    job = JobFactory(client=client_user, budget=Decimal(budget))
    job_services.pickup_job(job.id, worker)
    job_services.mark_work_done(job.id, worker)
    services.pay_job(job.id, client_user, method)
    return job


class TestCommissionLedger:
    def test_ledger_totals(self, api, client_user, worker):
        first = paid_job(client_user, worker, 'cash')
        paid_job(client_user, worker, 'cash', budget='450.00')
        paid_job(client_user, worker, 'upi')
        services.pay_commission(CommissionEntry.objects.get(job=first).id)

        response = api(worker).get(reverse('commission_ledger'))
        assert response.status_code == 200
        assert response.data['total_entries'] == 2
        assert response.data['total_pending'] == '45.00'
        assert response.data['total_paid'] == '100.00'

    def test_workers_cannot_read_each_others_ledger(self, api, worker, other_worker):
        response = api(other_worker).get(reverse('commission_ledger_by_worker', kwargs={'worker_id': worker.id}))
        assert response.status_code == 403

    def test_admin_reads_any_ledger(self, api, admin_user, client_user, worker):
        paid_job(client_user, worker, 'cash')
        response = api(admin_user).get(reverse('commission_ledger_by_worker', kwargs={'worker_id': worker.id}))
        assert response.status_code == 200
        assert response.data['total_pending'] == '100.00'


class TestCommissionActions:
    def test_pay_entry(self, api, admin_user, client_user, worker):
        job = paid_job(client_user, worker, 'cash')
        entry = CommissionEntry.objects.get(job=job)
        url = reverse('commission_pay', kwargs={'entry_id': entry.id})

        response = api(admin_user).post(url, {'amount': '100.00'}, format='json')
        assert response.status_code == 200
        assert response.data['status'] == 'paid'
        assert response.data['paid_amount'] == '100.00'
        assert response.data['paid_at'] is not None

        again = api(admin_user).post(url, {}, format='json')
        assert again.status_code == 409

    def test_workers_cannot_mark_paid(self, api, client_user, worker):
        job = paid_job(client_user, worker, 'cash')
        entry = CommissionEntry.objects.get(job=job)
        response = api(worker).post(reverse('commission_pay', kwargs={'entry_id': entry.id}))
        assert response.status_code == 403

    def test_add_is_refused_for_upi_jobs(self, api, admin_user, client_user, worker):
        job = paid_job(client_user, worker, 'upi')
        response = api(admin_user).post(reverse('commission_add'), {'job_id': job.id}, format='json')
        assert response.status_code == 409
        assert not CommissionEntry.objects.exists()

    def test_add_is_refused_twice(self, api, admin_user, client_user, worker):
        job = paid_job(client_user, worker, 'cash')
        response = api(admin_user).post(reverse('commission_add'), {'job_id': job.id}, format='json')
        assert response.status_code == 409
        assert response.data['code'] == 'conflict'
        assert CommissionEntry.objects.filter(job=job).count() == 1

    def test_add_is_refused_for_unpaid_jobs(self, api, admin_user, job):
        response = api(admin_user).post(reverse('commission_add'), {'job_id': job.id}, format='json')
        assert response.status_code == 409

    def test_status_by_job(self, api, client_user, worker):
        cash_job = paid_job(client_user, worker, 'cash')
        upi_job = paid_job(client_user, worker, 'upi')

        cash = api(worker).get(reverse('commission_status', kwargs={'job_id': cash_job.id})).data
        assert cash['has_commission'] is True
        assert cash['status'] == 'pending'
        assert cash['entry']['amount'] == '100.00'

        upi = api(client_user).get(reverse('commission_status', kwargs={'job_id': upi_job.id})).data
        assert upi == {'job_id': upi_job.id, 'has_commission': False, 'status': 'no_commission', 'entry': None}
