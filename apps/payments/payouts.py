"""
Withdrawal requests and their reconciliation against the payout rail.

pending -> processing happens on admin approval: the wallet is debited in the
same transaction and the payout instruction is sent afterwards. The rail's
webhook (or a status poll) then settles the withdrawal as completed or
failed. A failed payout credits the amount back with a new wallet entry.
When the initiation call timed out and the rail never reports back, an admin
resolves the withdrawal by hand.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.utils import timezone

from apps.jobs.utils import send_notification
from apps.users.models import WalletTransaction
from apps.users.services import lock_wallet, post_wallet_transaction
from core.constants import PAYOUT_STATUS_MAP
from core.exceptions import InvalidRequest, ResourceNotFound, PreconditionFailed, StateConflict, PayoutRailError
from .models import Withdrawal
from .utils import initiate_payout, fetch_payout_status, generate_reference_id, PayoutInitiationUnknown

logger = logging.getLogger(__name__)

PAYOUT_DESCRIPTIONS = {
    'completed': 'Withdrawal completed - UTR: {utr}',
    'failed': 'Withdrawal failed',
    'processing': 'Withdrawal processing',
}


def _to_amount(value):
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError):
        raise InvalidRequest("Amount must be a number.")
    if amount <= 0:
        raise InvalidRequest("Amount must be greater than zero.")
    return amount


def _lock_withdrawal(withdrawal_id):
    try:
        return Withdrawal.objects.select_for_update().select_related('user').get(pk=withdrawal_id)
    except Withdrawal.DoesNotExist:
        raise ResourceNotFound("Withdrawal not found.")


def get_withdrawal(withdrawal_id):
    try:
        return Withdrawal.objects.select_related('user').get(pk=withdrawal_id)
    except Withdrawal.DoesNotExist:
        raise ResourceNotFound("Withdrawal not found.")


def list_user_withdrawals(user):
    return Withdrawal.objects.filter(user=user)


def list_withdrawals(status=None):
    withdrawals = Withdrawal.objects.select_related('user')
    if status:
        withdrawals = withdrawals.filter(status=status)
    return withdrawals


def request_withdrawal(user, amount, upi_id=None, bank_account_number=None, ifsc=None,
                       beneficiary_name='', notes=''):
    amount = _to_amount(amount)
    if not upi_id and not (bank_account_number and ifsc):
        raise InvalidRequest("Provide a UPI id or a bank account number with IFSC.")

    wallet = user.get_wallet()
    if wallet.balance < amount:
        raise PreconditionFailed(
            "Insufficient balance.", balance=str(wallet.balance), requested=str(amount)
        )

    withdrawal = Withdrawal.objects.create(
        user=user,
        amount=amount,
        upi_id=upi_id or None,
        bank_account_number=None if upi_id else bank_account_number,
        ifsc=None if upi_id else ifsc,
        beneficiary_name=beneficiary_name or user.display_name,
        reference_id=generate_reference_id(),
        notes=notes or '',
    )
    logger.info(f"Withdrawal {withdrawal.reference_id} of {amount} requested by user {user.id}")
    return withdrawal


def approve_withdrawal(withdrawal_id, admin):
    with transaction.atomic():
        withdrawal = _lock_withdrawal(withdrawal_id)
        if withdrawal.status != 'pending':
            raise PreconditionFailed(
                f"Withdrawal is already {withdrawal.status}.", status=withdrawal.status
            )
        wallet = lock_wallet(withdrawal.user)
        post_wallet_transaction(
            wallet,
            'withdrawal',
            withdrawal.amount,
            'Withdrawal processing',
            status='processing',
            withdrawal=withdrawal,
        )
        withdrawal.status = 'processing'
        withdrawal.approved_by = admin
        withdrawal.approved_at = timezone.now()
        withdrawal.save(update_fields=['status', 'approved_by', 'approved_at', 'updated_at'])
    logger.info(f"Withdrawal {withdrawal.reference_id} approved by admin {admin.id}, wallet debited")

    try:
        result = initiate_payout(withdrawal)
    except PayoutInitiationUnknown:
        # The webhook remains the source of truth; keep the debit and wait for it
        Withdrawal.objects.filter(pk=withdrawal.pk).update(
            notes='Payout initiation unknown: provider did not respond in time',
            updated_at=timezone.now(),
        )
        withdrawal.refresh_from_db()
        logger.warning(f"Payout initiation for {withdrawal.reference_id} unknown after timeout")
        return withdrawal
    except PayoutRailError as e:
        _fail_withdrawal(withdrawal.pk, str(e.detail))
        raise

    with transaction.atomic():
        Withdrawal.objects.filter(pk=withdrawal.pk).update(
            external_transaction_id=result['transaction_id'],
            payment_mode=result['payment_mode'],
            updated_at=timezone.now(),
        )
        WalletTransaction.objects.filter(withdrawal=withdrawal, type='withdrawal').update(
            external_transaction_id=result['transaction_id'],
            updated_at=timezone.now(),
        )
    logger.info(f"Payout {result['transaction_id']} initiated for {withdrawal.reference_id}")

    if PAYOUT_STATUS_MAP.get(str(result['status']).upper()) in ('completed', 'failed'):
        return apply_payout_update(result['transaction_id'], result['status'])
    withdrawal.refresh_from_db()
    return withdrawal


@transaction.atomic
def reject_withdrawal(withdrawal_id, admin, reason=''):
    withdrawal = _lock_withdrawal(withdrawal_id)
    if withdrawal.status != 'pending':
        raise PreconditionFailed(f"Withdrawal is already {withdrawal.status}.", status=withdrawal.status)
    withdrawal.status = 'rejected'
    withdrawal.failure_reason = reason or 'Rejected by admin'
    withdrawal.save(update_fields=['status', 'failure_reason', 'updated_at'])
    logger.info(f"Withdrawal {withdrawal.reference_id} rejected by admin {admin.id}")
    return withdrawal


def _reverse_debit(withdrawal):
    wallet = lock_wallet(withdrawal.user)
    post_wallet_transaction(
        wallet,
        'credit',
        withdrawal.amount,
        f"Reversal of failed withdrawal {withdrawal.reference_id}",
        withdrawal=withdrawal,
        external_transaction_id=withdrawal.external_transaction_id,
    )
    logger.info(f"Withdrawal {withdrawal.reference_id} failed; {withdrawal.amount} credited back")


def _record_outcome(withdrawal, new_status, utr=None, payment_mode=None, failure_reason=None):
    # Caller holds the withdrawal row lock
    now = timezone.now()
    withdrawal.status = new_status
    withdrawal.utr = utr or withdrawal.utr
    withdrawal.payment_mode = payment_mode or withdrawal.payment_mode
    if new_status == 'completed':
        withdrawal.completed_at = now
    elif new_status == 'failed':
        withdrawal.failure_reason = failure_reason or 'Payout failed at provider'
    withdrawal.save()

    WalletTransaction.objects.filter(withdrawal=withdrawal, type='withdrawal').update(
        status=new_status,
        utr=withdrawal.utr,
        external_transaction_id=withdrawal.external_transaction_id,
        description=PAYOUT_DESCRIPTIONS[new_status].format(utr=withdrawal.utr),
        updated_at=now,
    )
    if new_status == 'failed':
        _reverse_debit(withdrawal)

    if new_status in ('completed', 'failed'):
        user = withdrawal.user
        message = (
            f"Your withdrawal of {withdrawal.amount} has been paid. UTR: {withdrawal.utr}"
            if new_status == 'completed'
            else f"Your withdrawal of {withdrawal.amount} failed and was credited back to your wallet."
        )
        transaction.on_commit(lambda: send_notification(
            user, f"Withdrawal {new_status.title()}", message, message
        ))
    logger.info(f"Withdrawal {withdrawal.reference_id} -> {new_status} (utr {withdrawal.utr})")
    return withdrawal


@transaction.atomic
def _fail_withdrawal(withdrawal_id, reason):
    withdrawal = _lock_withdrawal(withdrawal_id)
    if withdrawal.status != 'processing':
        return withdrawal
    return _record_outcome(withdrawal, 'failed', failure_reason=reason)


def _parse_reported_amount(amount):
    if amount in (None, ''):
        return None
    try:
        return Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        return None


def find_withdrawal_for_payout(transaction_id, reference_id=None):
    if not transaction_id:
        return None
    withdrawal = Withdrawal.objects.filter(external_transaction_id=transaction_id).first()
    if withdrawal is None and reference_id:
        # Payout accepted while our initiation call timed out
        withdrawal = Withdrawal.objects.filter(
            reference_id=reference_id, external_transaction_id__isnull=True
        ).first()
    return withdrawal


def apply_payout_update(transaction_id, status, utr=None, amount=None, payment_mode=None, reference_id=None):
    """Reconcile a payout status report from the rail into the withdrawal and its wallet entry."""
    found = find_withdrawal_for_payout(transaction_id, reference_id)
    if found is None:
        logger.warning(f"Payout update for unknown transaction {transaction_id}")
        raise ResourceNotFound("Withdrawal not found.")

    new_status = PAYOUT_STATUS_MAP.get(str(status or '').upper(), 'processing')

    with transaction.atomic():
        withdrawal = _lock_withdrawal(found.pk)
        if withdrawal.is_terminal:
            if withdrawal.status != new_status:
                logger.warning(
                    f"Ignoring {status} for {withdrawal.reference_id}: already {withdrawal.status}"
                )
            return withdrawal

        if withdrawal.external_transaction_id is None:
            withdrawal.external_transaction_id = transaction_id
        reported = _parse_reported_amount(amount)
        if amount not in (None, '') and reported != withdrawal.amount:
            logger.warning(
                f"Payout amount {amount} differs from withdrawal {withdrawal.reference_id} amount {withdrawal.amount}"
            )
        return _record_outcome(withdrawal, new_status, utr=utr, payment_mode=payment_mode)


def refresh_payout_status(withdrawal_id):
    """
    Poll the rail for a processing withdrawal and apply what it reports.

    A withdrawal whose initiation timed out has no rail transaction id yet, so
    it is looked up by our reference id and adopts the id the rail returns.
    """
    withdrawal = get_withdrawal(withdrawal_id)
    if withdrawal.status in ('pending', 'rejected'):
        raise PreconditionFailed("Withdrawal has not been sent for payout.", status=withdrawal.status)
    if withdrawal.is_terminal:
        return withdrawal
    try:
        if withdrawal.external_transaction_id:
            result = fetch_payout_status(transaction_id=withdrawal.external_transaction_id)
        else:
            result = fetch_payout_status(reference_id=withdrawal.reference_id)
    except PayoutInitiationUnknown:
        raise PayoutRailError("Payout provider did not respond in time.")

    transaction_id = withdrawal.external_transaction_id or result['transaction_id']
    if not transaction_id:
        raise PayoutRailError("Payout provider has no transaction for this withdrawal yet.")
    if Withdrawal.objects.filter(external_transaction_id=transaction_id).exclude(pk=withdrawal.pk).exists():
        raise StateConflict("Transaction id already belongs to another withdrawal.")
    return apply_payout_update(
        transaction_id,
        result['status'],
        utr=result['utr'],
        amount=result['amount'],
        payment_mode=result['payment_mode'],
        reference_id=withdrawal.reference_id,
    )


@transaction.atomic
def resolve_withdrawal(withdrawal_id, admin, outcome, transaction_id=None, utr=None, reason=''):
    """Settle a processing withdrawal by hand once the admin has confirmed its fate with the rail."""
    withdrawal = _lock_withdrawal(withdrawal_id)
    if withdrawal.status != 'processing':
        raise PreconditionFailed(f"Withdrawal is already {withdrawal.status}.", status=withdrawal.status)
    if outcome not in ('completed', 'failed'):
        raise InvalidRequest("Outcome must be completed or failed.")
    if transaction_id and not withdrawal.external_transaction_id:
        if Withdrawal.objects.filter(external_transaction_id=transaction_id).exists():
            raise StateConflict("Transaction id already belongs to another withdrawal.")
        withdrawal.external_transaction_id = transaction_id
    logger.info(f"Withdrawal {withdrawal.reference_id} resolved as {outcome} by admin {admin.id}")
    return _record_outcome(
        withdrawal, outcome, utr=utr, failure_reason=reason or 'Marked failed by admin'
    )
