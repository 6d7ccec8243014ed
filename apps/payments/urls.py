from django.urls import path
from .views import (
    WithdrawalView, BulkpeWebhookView, CommissionLedgerView, CommissionAddView, CommissionPayView,
    CommissionStatusView
)

urlpatterns = [
    path('withdrawals/', WithdrawalView.as_view(), name='withdrawals'),
    path('webhooks/bulkpe/', BulkpeWebhookView.as_view(), name='bulkpe_webhook'),

    # Commission
    path('commission/ledger/', CommissionLedgerView.as_view(), name='commission_ledger'),
    path('commission/ledger/<int:worker_id>/', CommissionLedgerView.as_view(), name='commission_ledger_by_worker'),
    path('commission/add/', CommissionAddView.as_view(), name='commission_add'),
    path('commission/<int:entry_id>/pay/', CommissionPayView.as_view(), name='commission_pay'),
    path('commission/status/<int:job_id>/', CommissionStatusView.as_view(), name='commission_status'),
]
