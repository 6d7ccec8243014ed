from decimal import Decimal

from django.db import models
from django.contrib.auth.models import AbstractUser
from django.utils import timezone

from core.constants import (
    USER_ROLE_CHOICES, VERIFICATION_STATUS_CHOICES, WALLET_TRANSACTION_TYPE_CHOICES,
    WALLET_TRANSACTION_STATUS_CHOICES,
)


class User(AbstractUser):
    phone_number = models.CharField(max_length=15, blank=True, null=True, db_index=True)
    role = models.CharField(max_length=10, choices=USER_ROLE_CHOICES, default='client')
    full_name = models.CharField(max_length=200, blank=True, default='')
    profile_photo = models.URLField(max_length=500, blank=True, null=True)

    verification_status = models.CharField(
        max_length=20, choices=VERIFICATION_STATUS_CHOICES, default='not_submitted'
    )
    aadhaar_front = models.URLField(max_length=500, blank=True, null=True)
    aadhaar_back = models.URLField(max_length=500, blank=True, null=True)
    pan_card = models.URLField(max_length=500, blank=True, null=True)
    address = models.CharField(max_length=300, blank=True, null=True)
    date_of_birth = models.DateField(blank=True, null=True)
    gender = models.CharField(max_length=10, blank=True, null=True)
    verification_submitted_at = models.DateTimeField(blank=True, null=True)
    verification_reviewed_at = models.DateTimeField(blank=True, null=True)

    # Public id shown to clients; uniqueness is enforced by the database
    worker_public_id = models.CharField(max_length=9, blank=True, null=True, unique=True)

    @property
    def is_client(self):
        return self.role == 'client'

    @property
    def is_worker(self):
        return self.role == 'worker'

    @property
    def display_name(self):
        return self.full_name or self.get_full_name() or self.username

    @property
    def has_submitted_documents(self):
        return bool(self.aadhaar_front)

    def get_wallet(self):
        wallet, _ = Wallet.objects.get_or_create(user=self)
        return wallet

    def __str__(self):
        return f"{self.display_name} ({self.role})"


class Wallet(models.Model):
    """In-app balance of a user; every change is mirrored by a WalletTransaction."""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='wallet')
    balance = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_earnings = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Wallet of {self.user.display_name}: {self.balance}"

    def ledger_balance(self):
        """Balance reconstructed from the transaction history."""
        total = self.transactions.aggregate(total=models.Sum('amount'))['total']
        return total or Decimal('0.00')

    def is_consistent(self):
        return self.ledger_balance() == self.balance


class WalletTransaction(models.Model):
    """
    Append-only wallet history. Credits carry a positive amount, debits and
    withdrawals a negative one. Only status, utr and description follow
    payout updates; amounts are never edited.
    """
    wallet = models.ForeignKey(Wallet, on_delete=models.CASCADE, related_name='transactions')
    type = models.CharField(max_length=20, choices=WALLET_TRANSACTION_TYPE_CHOICES)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    description = models.CharField(max_length=300)
    status = models.CharField(max_length=20, choices=WALLET_TRANSACTION_STATUS_CHOICES, default='completed')
    job = models.ForeignKey(
        'jobs.Job', on_delete=models.SET_NULL, null=True, blank=True, related_name='wallet_transactions'
    )
    withdrawal = models.ForeignKey(
        'payments.Withdrawal', on_delete=models.SET_NULL, null=True, blank=True, related_name='wallet_transactions'
    )
    external_transaction_id = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    utr = models.CharField(max_length=100, blank=True, null=True)
    commission = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.type} {self.amount} ({self.status})"
