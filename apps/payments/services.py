"""
Settlement of paid jobs and the commission ledger for cash-paid jobs.

Paying a job is split in two steps. The job's move to ``completed`` together
with its PaymentDetails row is the commit point. Settlement (wallet credit
for UPI, commission entry for cash) runs afterwards and is claimed through a
pending -> completed update on PaymentDetails, so it is applied at most once
per job no matter how often it is retried.
"""
import logging
import uuid
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import transaction
from django.db.models import F, Sum
from django.utils import timezone

from apps.jobs.services import lock_job, require_client, require_status, advance_job, get_job
from apps.jobs.utils import send_notification
from apps.users.services import lock_wallet, post_wallet_transaction
from core.exceptions import (
    InvalidRequest, ResourceNotFound, PreconditionFailed, StateConflict, SettlementIncomplete,
)
from .models import PaymentDetails, CommissionEntry

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
PAYMENT_METHODS = ('cash', 'upi')


def commission_rate():
    return Decimal(str(settings.PLATFORM_COMMISSION_RATE))


def split_amount(total):
    """Return ``(commission, worker_amount)`` for a job total, rounded to minor units."""
    total = Decimal(total).quantize(CENT, rounding=ROUND_HALF_UP)
    commission = (total * commission_rate()).quantize(CENT, rounding=ROUND_HALF_UP)
    return commission, total - commission


def generate_order_id(job):
    return f"ORDER_{job.pk}_{uuid.uuid4().hex[:10].upper()}"


def pay_job(job_id, client, payment_method, external_transaction_id=None):
    if payment_method not in PAYMENT_METHODS:
        raise InvalidRequest("Payment method must be 'cash' or 'upi'.")

    with transaction.atomic():
        job = lock_job(job_id)
        require_client(job, client)
        require_status(job, 'work_done', message="Job must be marked as work done before payment.")
        commission, worker_amount = split_amount(job.budget)
        advance_job(job, 'completed', ('work_done',), completed_at=timezone.now())
        payment = PaymentDetails.objects.create(
            job=job,
            order_id=generate_order_id(job),
            payment_method=payment_method,
            total_amount=job.budget,
            commission=commission,
            worker_amount=worker_amount,
            external_transaction_id=external_transaction_id,
        )
    logger.info(
        f"Job {job.id} paid by {payment_method}: total {payment.total_amount}, "
        f"commission {commission}, worker {worker_amount}"
    )

    settle_job(payment)

    worker = job.assigned_worker
    if payment_method == 'upi':
        sms = f"{worker_amount} credited to your wallet for job '{job.title}'."
    else:
        sms = f"Cash payment recorded for '{job.title}'. Commission due: {commission}."
    send_notification(
        worker,
        f"Payment Received for Job: {job.title}",
        f"Dear {worker.display_name},\n\n{sms}\n\nBest regards,\nPeopleHub Team",
        sms,
    )
    return job, payment


def settle_job(payment):
    """
    Apply the settlement for a paid job. Returns False when it was already applied.

    A failure here leaves the job ``completed`` with a pending settlement; it
    is logged and surfaced as SettlementIncomplete so it can be retried.
    """
    try:
        with transaction.atomic():
            claimed = PaymentDetails.objects.filter(pk=payment.pk, status='pending').update(
                status='completed',
                settled_at=timezone.now(),
                settlement_attempts=F('settlement_attempts') + 1,
            )
            if not claimed:
                logger.info(f"Settlement for job {payment.job_id} already applied")
                return False

            job = payment.job
            if payment.payment_method == 'upi':
                wallet = lock_wallet(job.assigned_worker)
                post_wallet_transaction(
                    wallet,
                    'credit',
                    payment.worker_amount,
                    f"Payment for job: {job.title}",
                    earnings=True,
                    job=job,
                    external_transaction_id=payment.external_transaction_id,
                    commission=payment.commission,
                    total_amount=payment.total_amount,
                )
            else:
                # Worker was paid in person: nothing moves through the wallet
                if CommissionEntry.objects.filter(job=job).exists():
                    logger.info(f"Commission for job {job.id} was already recorded by an admin")
                else:
                    record_commission(job, payment)
    except Exception as e:
        PaymentDetails.objects.filter(pk=payment.pk).update(
            settlement_attempts=F('settlement_attempts') + 1,
            last_error=str(e)[:2000],
        )
        logger.error(
            f"Settlement for job {payment.job_id} (order {payment.order_id}) failed after payment was recorded: {e}",
            exc_info=True,
        )
        raise SettlementIncomplete(job_id=payment.job_id, order_id=payment.order_id) from e

    payment.refresh_from_db()
    logger.info(f"Settlement for job {payment.job_id} applied ({payment.payment_method})")
    return True


def retry_pending_settlements():
    """Re-run settlement for every paid job whose settlement is still pending."""
    settled, failed = 0, 0
    pending = PaymentDetails.objects.filter(status='pending').select_related(
        'job', 'job__client', 'job__assigned_worker'
    )
    for payment in pending:
        try:
            if settle_job(payment):
                settled += 1
        except SettlementIncomplete:
            failed += 1
    logger.info(f"Settlement reconciliation: {settled} settled, {failed} still pending")
    return settled, failed


def payment_status(job_id, client):
    job = get_job(job_id)
    require_client(job, client)
    return getattr(job, 'payment_details', None)


# Commission ledger

def record_commission(job, payment=None):
    payment = payment or PaymentDetails.objects.filter(job=job).first()
    if payment is None or payment.payment_method != 'cash':
        raise PreconditionFailed("Commission entries are only recorded for jobs paid in cash.")
    if job.assigned_worker_id is None:
        raise PreconditionFailed("Job has no assigned worker.")
    if CommissionEntry.objects.filter(job=job).exists():
        raise StateConflict("Commission has already been recorded for this job.")

    entry = CommissionEntry.objects.create(
        worker=job.assigned_worker,
        job=job,
        job_title=job.title,
        client_name=job.client.display_name,
        amount=payment.commission,
        total_amount=payment.total_amount,
    )
    logger.info(f"Commission entry {entry.id} of {entry.amount} recorded for job {job.id}")
    return entry


def add_commission_entry(job_id):
    with transaction.atomic():
        job = lock_job(job_id)
        require_status(job, 'completed', 'fully_completed', message="Commission applies only to paid jobs.")
        payment = PaymentDetails.objects.filter(job=job).first()
        if payment is None or payment.payment_method != 'cash' or payment.status != 'pending':
            return record_commission(job, payment)

    # Settlement of this cash payment never completed: run it so it claims the payment row
    settle_job(payment)
    return CommissionEntry.objects.get(job_id=job_id)


def commission_ledger(worker):
    entries = CommissionEntry.objects.filter(worker=worker)
    totals = {
        status: (entries.filter(status=status).aggregate(total=Sum('amount'))['total'] or Decimal('0')).quantize(CENT)
        for status in ('pending', 'paid')
    }
    return entries, {
        'total_pending': totals['pending'],
        'total_paid': totals['paid'],
        'total_entries': entries.count(),
    }


@transaction.atomic
def pay_commission(entry_id, amount=None):
    try:
        entry = CommissionEntry.objects.select_for_update().get(pk=entry_id)
    except CommissionEntry.DoesNotExist:
        raise ResourceNotFound("Commission entry not found.")
    if entry.status == 'paid':
        raise PreconditionFailed("Commission already paid.")

    entry.status = 'paid'
    entry.paid_amount = entry.amount if amount is None else amount
    entry.paid_at = timezone.now()
    entry.save(update_fields=['status', 'paid_amount', 'paid_at'])
    logger.info(f"Commission entry {entry.id} paid: {entry.paid_amount}")
    return entry


def commission_status(job_id):
    entry = CommissionEntry.objects.filter(job_id=job_id).first()
    if entry is None:
        return {'has_commission': False, 'status': 'no_commission', 'entry': None}
    return {'has_commission': True, 'status': entry.status, 'entry': entry}
