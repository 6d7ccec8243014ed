# core/constants.py
USER_ROLE_CHOICES = (
    ('client', 'Client'),
    ('worker', 'Worker'),
    ('admin', 'Admin'),
)

VERIFICATION_STATUS_CHOICES = (
    ('not_submitted', 'Not Submitted'),
    ('pending', 'Pending'),        # Documents submitted, awaiting admin review
    ('approved', 'Approved'),
    ('rejected', 'Rejected'),
)

GENDER_PREFERENCE_CHOICES = (
    ('Male', 'Male'),
    ('Female', 'Female'),
    ('Any', 'Any'),
)

JOB_STATUS_CHOICES = (
    ('open', 'Open'),                        # Posted, accepting offers
    ('assigned', 'Assigned'),                # Offer accepted or picked up directly
    ('in_progress', 'In Progress'),          # Worker has started
    ('work_done', 'Work Done'),              # Worker reports the work finished
    ('completed', 'Completed'),              # Client has paid
    ('fully_completed', 'Fully Completed'),  # Worker confirmed completion
    ('cancelled', 'Cancelled'),
)

# Jobs in these states block a role switch for both parties
ACTIVE_JOB_STATUSES = ('assigned', 'in_progress', 'work_done', 'completed')

PICKUP_METHOD_CHOICES = (
    ('offer', 'Offer'),
    ('direct', 'Direct'),
)

OFFER_STATUS_CHOICES = (
    ('pending', 'Pending'),
    ('accepted', 'Accepted'),
    ('rejected', 'Rejected'),
)

PAYMENT_METHOD_CHOICES = (
    ('cash', 'Cash'),
    ('upi', 'UPI'),
)

PAYMENT_STATUS_CHOICES = (
    ('pending', 'Pending'),      # Job paid, settlement not yet applied
    ('completed', 'Completed'),  # Wallet credited or commission recorded
)

WALLET_TRANSACTION_TYPE_CHOICES = (
    ('credit', 'Credit'),
    ('debit', 'Debit'),
    ('withdrawal', 'Withdrawal'),
)

WALLET_TRANSACTION_STATUS_CHOICES = (
    ('completed', 'Completed'),
    ('processing', 'Processing'),
    ('failed', 'Failed'),
)

WITHDRAWAL_STATUS_CHOICES = (
    ('pending', 'Pending'),        # Requested by worker
    ('processing', 'Processing'),  # Approved, wallet debited, payout sent
    ('completed', 'Completed'),
    ('failed', 'Failed'),
    ('rejected', 'Rejected'),
)

WITHDRAWAL_TERMINAL_STATUSES = ('completed', 'failed', 'rejected')

# Payout rail status -> withdrawal status
PAYOUT_STATUS_MAP = {
    'SUCCESS': 'completed',
    'FAILED': 'failed',
    'PENDING': 'processing',
}

COMMISSION_STATUS_CHOICES = (
    ('pending', 'Pending'),
    ('paid', 'Paid'),
)
