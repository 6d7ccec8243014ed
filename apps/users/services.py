import logging
import random
from decimal import Decimal

from django.conf import settings
from django.db import transaction, IntegrityError
from django.utils import timezone

from apps.jobs.services import has_active_jobs
from core.exceptions import PreconditionFailed, InvalidRequest, StateConflict
from .models import User, Wallet, WalletTransaction

logger = logging.getLogger(__name__)


def lock_wallet(user):
    """Return the user's wallet row locked for update. Must run inside transaction.atomic()."""
    Wallet.objects.get_or_create(user=user)
    return Wallet.objects.select_for_update().get(user=user)


def post_wallet_transaction(wallet, type, amount, description, earnings=False, **fields):
    """
    Append a wallet transaction and move the balance by the same signed amount.

    ``amount`` is always positive here; credits add to the balance, debits and
    withdrawals subtract from it. The caller must hold the wallet lock.
    """
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError("post_wallet_transaction must run inside transaction.atomic()")
    amount = Decimal(amount)
    if amount <= 0:
        raise InvalidRequest("Wallet transaction amount must be positive.")

    signed = amount if type == 'credit' else -amount
    new_balance = wallet.balance + signed
    if new_balance < 0:
        raise PreconditionFailed(
            "Insufficient wallet balance.", balance=str(wallet.balance), requested=str(amount)
        )

    wallet.balance = new_balance
    update_fields = ['balance', 'updated_at']
    if earnings and type == 'credit':
        wallet.total_earnings += amount
        update_fields.append('total_earnings')
    wallet.save(update_fields=update_fields)

    entry = WalletTransaction.objects.create(
        wallet=wallet, type=type, amount=signed, description=description, **fields
    )
    logger.info(f"Wallet {wallet.id} {type} {amount} -> balance {wallet.balance}")
    return entry


def submit_verification(user, documents):
    if user.verification_status == 'approved':
        raise PreconditionFailed("Your verification is already approved.")
    for name, value in documents.items():
        setattr(user, name, value)
    user.verification_status = 'pending'
    user.verification_submitted_at = timezone.now()
    user.save()
    logger.info(f"User {user.id} submitted verification documents")
    return user


def switch_role(user, role):
    if role not in ('client', 'worker'):
        raise InvalidRequest("Role must be 'client' or 'worker'.")
    if user.role == role:
        return user
    if has_active_jobs(user):
        raise PreconditionFailed("Finish or settle your active jobs before switching role.")
    user.role = role
    user.save(update_fields=['role'])
    logger.info(f"User {user.id} switched role to {role}")
    return user


def generate_worker_public_id():
    length = random.randint(5, 9)
    return str(random.randint(10 ** (length - 1), 10 ** length - 1))


def assign_worker_public_id(user):
    """Give ``user`` a random 5-9 digit public id, retrying when the database reports a collision."""
    if user.worker_public_id:
        return user.worker_public_id
    for attempt in range(1, settings.WORKER_ID_MAX_ATTEMPTS + 1):
        candidate = generate_worker_public_id()
        try:
            with transaction.atomic():
                User.objects.filter(pk=user.pk).update(worker_public_id=candidate)
        except IntegrityError:
            logger.warning(f"Worker id {candidate} already taken (attempt {attempt})")
            continue
        user.worker_public_id = candidate
        return candidate
    raise StateConflict("Could not allocate a unique worker id. Try again.")
