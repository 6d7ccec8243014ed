"""
PeopleHub test configuration - pytest fixtures and factories.

RUNNING TESTS:
    pytest tests/ -v
    pytest tests/test_payouts.py -v

Settings come from peoplehub.settings_test (SQLite in memory, locmem email,
no Twilio). Tests run with --nomigrations, so tables are built from the
models directly. Bulkpe is never contacted: tests patch requests.post.
"""
import hashlib
import hmac
import json
from decimal import Decimal
from unittest.mock import MagicMock

import factory
import pytest
from django.conf import settings
from django.db import transaction
from django.urls import reverse
from rest_framework.test import APIClient

from apps.jobs import services as job_services
from apps.jobs.models import Job
from apps.users.models import User
from apps.users.services import lock_wallet, post_wallet_transaction


class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = User

    username = factory.Sequence(lambda n: f'user{n}')
    email = factory.LazyAttribute(lambda o: f'{o.username}@example.com')
    phone_number = factory.Sequence(lambda n: f'+91987650{n:04d}')
    full_name = factory.Faker('name')
    role = 'client'


class WorkerFactory(UserFactory):
    role = 'worker'
    verification_status = 'approved'
    worker_public_id = factory.Sequence(lambda n: f'{10000 + n}')


class AdminFactory(UserFactory):
    role = 'admin'


class JobFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Job

    client = factory.SubFactory(UserFactory)
    title = factory.Sequence(lambda n: f'Fix kitchen tap #{n}')
    address = '12 MG Road, Bengaluru'
    pincode = '560001'
    budget = Decimal('1000.00')
    category = 'Plumbing'
    gender = 'Any'
    description = 'Leaking tap under the sink'


@pytest.fixture
def api():
    """Return an APIClient, authenticated as ``user`` when one is given."""
    def _client(user=None):
        client = APIClient()
        if user is not None:
            client.force_authenticate(user=user)
        return client
    return _client


@pytest.fixture
def client_user(db):
    return UserFactory()


@pytest.fixture
def worker(db):
    return WorkerFactory()


@pytest.fixture
def other_worker(db):
    return WorkerFactory()


@pytest.fixture
def admin_user(db):
    return AdminFactory()


@pytest.fixture
def job(client_user):
    return JobFactory(client=client_user)


@pytest.fixture
def work_done_job(job, worker):
    """A job picked up by ``worker`` whose work is reported done."""
    job_services.pickup_job(job.id, worker)
    job_services.mark_work_done(job.id, worker)
    job.refresh_from_db()
    return job


@pytest.fixture
def fund_wallet():
    def _fund(user, amount):
        with transaction.atomic():
            wallet = lock_wallet(user)
            post_wallet_transaction(wallet, 'credit', Decimal(amount), 'Test funding', earnings=True)
        return user.get_wallet()
    return _fund


@pytest.fixture
def rail_response():
    """Build a fake ``requests`` response from Bulkpe."""
    def _response(payload, status_code=200):
        response = MagicMock()
        response.status_code = status_code
        response.json.return_value = payload
        response.text = str(payload)
        return response
    return _response


def send_webhook(api, **body):
    """POST a Bulkpe callback signed with the configured webhook secret."""
    raw = json.dumps(body)
    signature = hmac.new(settings.BULKPE_WEBHOOK_SECRET.encode(), raw.encode(), hashlib.sha256).hexdigest()
    return api().post(
        reverse('bulkpe_webhook'), raw, content_type='application/json', HTTP_X_BULKPE_SIGNATURE=signature
    )
