"""
Job lifecycle and offer negotiation.

Every mutation runs inside ``transaction.atomic`` with the job row locked
(``select_for_update``), and status changes are applied as a conditional
UPDATE on the expected current status, so two concurrent requests can never
both move the same job out of a state.
"""
import logging
import math

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from core.constants import ACTIVE_JOB_STATUSES
from core.exceptions import (
    ResourceNotFound, NotOwner, PreconditionFailed, StateConflict, OfferCooldownActive,
)
from .models import Job, Offer
from .utils import send_notification

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('title', 'address', 'pincode', 'budget', 'category', 'gender', 'description')


def get_job(job_id):
    try:
        return Job.objects.select_related('client', 'assigned_worker').get(pk=job_id)
    except Job.DoesNotExist:
        raise ResourceNotFound("Job not found.")


def lock_job(job_id):
    try:
        return Job.objects.select_for_update().get(pk=job_id)
    except Job.DoesNotExist:
        raise ResourceNotFound("Job not found.")


def require_client(job, user):
    if job.client_id != user.id:
        raise NotOwner("Only the client who posted this job can do this.")


def require_assigned_worker(job, user):
    if job.assigned_worker_id != user.id:
        raise NotOwner("Only the worker assigned to this job can do this.")


def require_status(job, *statuses, message=None):
    if job.status not in statuses:
        raise PreconditionFailed(
            message or f"Job is '{job.status}', expected {' or '.join(statuses)}.",
            status=job.status,
        )


def advance_job(job, to_status, from_statuses, **fields):
    """Move ``job`` to ``to_status`` only if it is still in one of ``from_statuses``."""
    fields['updated_at'] = timezone.now()
    updated = Job.objects.filter(pk=job.pk, status__in=from_statuses).update(status=to_status, **fields)
    if not updated:
        logger.warning(f"Job {job.pk} status changed concurrently; {to_status} transition refused")
        raise StateConflict("Job was modified by another request. Reload and try again.")
    job.status = to_status
    for name, value in fields.items():
        setattr(job, name, value)
    logger.info(f"Job {job.pk} -> {to_status}")
    return job


# Queries

def list_client_jobs(client, status=None):
    jobs = Job.objects.filter(client=client).prefetch_related('offers')
    if status:
        jobs = jobs.filter(status__in=status.split(','))
    return jobs


def list_open_jobs(category=None, pincode=None):
    jobs = Job.objects.filter(status='open')
    if category:
        jobs = jobs.filter(category__iexact=category)
    if pincode:
        jobs = jobs.filter(pincode=pincode)
    return jobs


def list_assigned_jobs(worker, status=None):
    jobs = Job.objects.filter(assigned_worker=worker)
    if status:
        jobs = jobs.filter(status__in=status.split(','))
    return jobs


def has_active_jobs(user):
    return Job.objects.filter(
        Q(client=user) | Q(assigned_worker=user), status__in=ACTIVE_JOB_STATUSES
    ).exists()


# Client side

def create_job(client, data):
    job = Job.objects.create(client=client, **data)
    logger.info(f"Client {client.id} posted job {job.id}: {job.title}")
    return job


@transaction.atomic
def update_job(job_id, client, changes):
    job = lock_job(job_id)
    require_client(job, client)
    if not job.is_editable():
        raise PreconditionFailed("Job can no longer be edited once it has been assigned.", status=job.status)
    for name, value in changes.items():
        if name in EDITABLE_FIELDS:
            setattr(job, name, value)
    job.save()
    logger.info(f"Job {job.id} updated by client {client.id}: {sorted(changes)}")
    return job


@transaction.atomic
def delete_job(job_id, client):
    job = lock_job(job_id)
    require_client(job, client)
    if not job.is_editable():
        raise PreconditionFailed("Job can no longer be deleted once it has been assigned.", status=job.status)
    logger.info(f"Job {job.id} deleted by client {client.id}")
    job.delete()


@transaction.atomic
def cancel_job(job_id, client):
    job = lock_job(job_id)
    require_client(job, client)
    require_status(job, 'open', message="Only open jobs can be cancelled.")
    advance_job(job, 'cancelled', ('open',), cancelled_at=timezone.now())
    job.offers.filter(status='pending').update(status='rejected')
    return job


@transaction.atomic
def accept_offer(job_id, client, worker_id):
    """Accept one worker's offer: the offer, the rejections, the snapshot and the status move together."""
    job = lock_job(job_id)
    require_client(job, client)
    require_status(job, 'open', message="Offers can only be accepted while the job is open.")
    try:
        offer = job.offers.select_for_update().select_related('worker').get(worker_id=worker_id, status='pending')
    except Offer.DoesNotExist:
        raise ResourceNotFound("No pending offer from this worker on this job.")

    advance_job(job, 'assigned', ('open',), pickup_method='offer', **Job.worker_snapshot(offer.worker))
    offer.status = 'accepted'
    offer.save(update_fields=['status', 'updated_at'])
    rejected = job.offers.exclude(pk=offer.pk).update(status='rejected')
    logger.info(f"Job {job.id}: offer {offer.id} accepted, {rejected} other offers rejected")

    worker = offer.worker
    transaction.on_commit(lambda: send_notification(
        worker,
        f"Offer Accepted for {job.title}",
        f"Dear {worker.display_name},\n\nYour offer of {offer.amount} for job '{job.title}' has been accepted.\n"
        f"Address: {job.address} ({job.pincode})\n\nBest regards,\nPeopleHub Team",
        f"Your offer for '{job.title}' was accepted.",
    ))
    return job, offer


@transaction.atomic
def reject_offer(job_id, client, worker_id):
    job = lock_job(job_id)
    require_client(job, client)
    require_status(job, 'open', message="Offers can only be rejected while the job is open.")
    try:
        offer = job.offers.select_for_update().get(worker_id=worker_id, status='pending')
    except Offer.DoesNotExist:
        raise ResourceNotFound("No pending offer from this worker on this job.")
    offer.status = 'rejected'
    offer.save(update_fields=['status', 'updated_at'])
    logger.info(f"Job {job.id}: offer {offer.id} rejected by client {client.id}")
    return offer


# Worker side

def require_verified_worker(worker):
    if worker.verification_status != 'approved':
        raise PreconditionFailed("Your verification must be approved before taking jobs.")


def offer_cooldown_remaining(job, worker, now=None):
    """Seconds until ``worker`` may submit another offer on ``job``; 0 when allowed."""
    stamp = (job.cooldowns or {}).get(str(worker.id))
    if not stamp:
        return 0
    last_offer_at = parse_datetime(stamp)
    if last_offer_at is None:
        return 0
    elapsed = ((now or timezone.now()) - last_offer_at).total_seconds()
    return max(0.0, settings.OFFER_COOLDOWN_SECONDS - elapsed)


@transaction.atomic
def submit_offer(job_id, worker, amount, message=''):
    job = lock_job(job_id)
    require_verified_worker(worker)
    if job.client_id == worker.id:
        raise PreconditionFailed("You cannot make an offer on your own job.")
    require_status(job, 'open', message="Offers can only be made on open jobs.")

    now = timezone.now()
    remaining = offer_cooldown_remaining(job, worker, now)
    if remaining > 0:
        logger.info(f"Offer on job {job.id} by worker {worker.id} refused, cooldown {remaining:.0f}s")
        raise OfferCooldownActive(retry_after=math.ceil(remaining))

    replaced, _ = Offer.objects.filter(job=job, worker=worker).delete()
    offer = Offer.objects.create(
        job=job,
        worker=worker,
        amount=amount,
        message=message or '',
        worker_name=worker.display_name,
        worker_photo=worker.profile_photo,
        worker_public_id=worker.worker_public_id,
        submitted_at=now,
    )
    cooldowns = dict(job.cooldowns or {})
    cooldowns[str(worker.id)] = now.isoformat()
    job.cooldowns = cooldowns
    job.save(update_fields=['cooldowns', 'updated_at'])
    logger.info(f"Worker {worker.id} offered {amount} on job {job.id} (replaced {replaced})")
    return offer


@transaction.atomic
def pickup_job(job_id, worker):
    job = lock_job(job_id)
    require_verified_worker(worker)
    if job.client_id == worker.id:
        raise PreconditionFailed("You cannot pick up your own job.")
    require_status(job, 'open', message="Only open jobs can be picked up.")
    if job.has_accepted_offer():
        raise PreconditionFailed("An offer on this job has already been accepted.")

    advance_job(job, 'assigned', ('open',), pickup_method='direct', **Job.worker_snapshot(worker))
    job.offers.filter(status='pending').update(status='rejected')
    return job


@transaction.atomic
def start_job(job_id, worker):
    job = lock_job(job_id)
    require_assigned_worker(job, worker)
    require_status(job, 'assigned', message="Only assigned jobs can be started.")
    return advance_job(job, 'in_progress', ('assigned',), started_at=timezone.now())


@transaction.atomic
def mark_work_done(job_id, worker):
    job = lock_job(job_id)
    require_assigned_worker(job, worker)
    require_status(job, 'assigned', 'in_progress', message="Job must be assigned or in progress.")
    return advance_job(job, 'work_done', ('assigned', 'in_progress'), work_done_at=timezone.now())


@transaction.atomic
def mark_fully_completed(job_id, worker):
    job = lock_job(job_id)
    require_assigned_worker(job, worker)
    require_status(job, 'completed', message="Job must be paid before it can be fully completed.")
    return advance_job(job, 'fully_completed', ('completed',), fully_completed_at=timezone.now())
