from django.db import models
from django.conf import settings
from django.utils import timezone

from core.constants import (
    JOB_STATUS_CHOICES, OFFER_STATUS_CHOICES, GENDER_PREFERENCE_CHOICES, PICKUP_METHOD_CHOICES,
)


class Job(models.Model):
    client = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='jobs')
    title = models.CharField(max_length=200)
    address = models.CharField(max_length=300)
    pincode = models.CharField(max_length=10)
    budget = models.DecimalField(max_digits=12, decimal_places=2)
    category = models.CharField(max_length=100)
    gender = models.CharField(max_length=10, choices=GENDER_PREFERENCE_CHOICES, default='Any')
    description = models.TextField(blank=True, default='')
    status = models.CharField(max_length=20, choices=JOB_STATUS_CHOICES, default='open', db_index=True)

    # Snapshot of the worker frozen at assignment time
    assigned_worker = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='assigned_jobs'
    )
    assigned_worker_name = models.CharField(max_length=200, blank=True, default='')
    assigned_worker_photo = models.URLField(max_length=500, blank=True, null=True)
    assigned_worker_public_id = models.CharField(max_length=9, blank=True, null=True)
    pickup_method = models.CharField(max_length=10, choices=PICKUP_METHOD_CHOICES, blank=True, null=True)

    # worker id (str) -> ISO timestamp of that worker's last offer
    cooldowns = models.JSONField(default=dict, blank=True)

    assigned_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    work_done_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    fully_completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['client', 'status']),
            models.Index(fields=['assigned_worker', 'status']),
        ]

    def __str__(self):
        return f"{self.title} - {self.client.username}"

    def has_accepted_offer(self):
        return self.offers.filter(status='accepted').exists()

    def is_editable(self):
        """Terms can change only while open and before any offer was accepted."""
        return self.status == 'open' and not self.has_accepted_offer()

    @staticmethod
    def worker_snapshot(worker):
        return {
            'assigned_worker': worker,
            'assigned_worker_name': worker.display_name,
            'assigned_worker_photo': worker.profile_photo,
            'assigned_worker_public_id': worker.worker_public_id,
            'assigned_at': timezone.now(),
        }


class Offer(models.Model):
    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name='offers')
    worker = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='offers')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    message = models.TextField(blank=True, default='')
    status = models.CharField(max_length=20, choices=OFFER_STATUS_CHOICES, default='pending')
    worker_name = models.CharField(max_length=200, blank=True, default='')
    worker_photo = models.URLField(max_length=500, blank=True, null=True)
    worker_public_id = models.CharField(max_length=9, blank=True, null=True)
    submitted_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-submitted_at', '-id']
        constraints = [
            # One live offer per worker per job
            models.UniqueConstraint(fields=['job', 'worker'], name='unique_offer_per_worker_per_job'),
            models.UniqueConstraint(
                fields=['job'], condition=models.Q(status='accepted'), name='single_accepted_offer_per_job'
            ),
        ]

    def __str__(self):
        return f"Offer {self.amount} by {self.worker_name} on {self.job.title} ({self.status})"
