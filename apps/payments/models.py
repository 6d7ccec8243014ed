from django.db import models
from django.conf import settings

from apps.jobs.models import Job
from core.constants import (
    PAYMENT_METHOD_CHOICES, PAYMENT_STATUS_CHOICES, WITHDRAWAL_STATUS_CHOICES, COMMISSION_STATUS_CHOICES,
    WITHDRAWAL_TERMINAL_STATUSES,
)


class PaymentDetails(models.Model):
    """How a job was paid and whether its settlement has been applied."""
    job = models.OneToOneField(Job, on_delete=models.CASCADE, related_name='payment_details')
    order_id = models.CharField(max_length=100, unique=True)
    payment_method = models.CharField(max_length=10, choices=PAYMENT_METHOD_CHOICES)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    commission = models.DecimalField(max_digits=12, decimal_places=2)
    worker_amount = models.DecimalField(max_digits=12, decimal_places=2)
    external_transaction_id = models.CharField(max_length=100, blank=True, null=True)
    status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default='pending')
    settlement_attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    settled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name_plural = 'Payment details'

    def __str__(self):
        return f"Payment {self.order_id} ({self.payment_method}, {self.status})"


class Withdrawal(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='withdrawals')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    upi_id = models.CharField(max_length=100, blank=True, null=True)
    bank_account_number = models.CharField(max_length=34, blank=True, null=True)
    ifsc = models.CharField(max_length=11, blank=True, null=True)
    beneficiary_name = models.CharField(max_length=200, blank=True, default='')
    status = models.CharField(max_length=20, choices=WITHDRAWAL_STATUS_CHOICES, default='pending', db_index=True)
    reference_id = models.CharField(max_length=64, unique=True)
    external_transaction_id = models.CharField(max_length=100, blank=True, null=True, unique=True)
    utr = models.CharField(max_length=100, blank=True, null=True)
    payment_mode = models.CharField(max_length=20, blank=True, null=True)
    failure_reason = models.TextField(blank=True, default='')
    notes = models.TextField(blank=True, default='')
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_withdrawals'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'created_at']),
        ]

    def __str__(self):
        return f"Withdrawal {self.reference_id} of {self.amount} ({self.status})"

    @property
    def destination(self):
        if self.upi_id:
            return {'type': 'upi', 'upi_id': self.upi_id}
        return {
            'type': 'bank',
            'account_number': self.bank_account_number,
            'ifsc': self.ifsc,
        }

    @property
    def is_terminal(self):
        return self.status in WITHDRAWAL_TERMINAL_STATUSES


class CommissionEntry(models.Model):
    """Commission a worker owes the platform for a job paid in cash."""
    worker = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='commission_entries')
    job = models.OneToOneField(Job, on_delete=models.CASCADE, related_name='commission_entry')
    job_title = models.CharField(max_length=200)
    client_name = models.CharField(max_length=200)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=10, choices=COMMISSION_STATUS_CHOICES, default='pending')
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name_plural = 'Commission entries'

    def __str__(self):
        return f"Commission {self.amount} on {self.job_title} ({self.status})"
