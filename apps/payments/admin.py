from django.contrib import admin
from .models import PaymentDetails, Withdrawal, CommissionEntry


@admin.register(PaymentDetails)
class PaymentDetailsAdmin(admin.ModelAdmin):
    list_display = ('order_id', 'job', 'payment_method', 'total_amount', 'worker_amount', 'status', 'settlement_attempts')
    list_filter = ('payment_method', 'status')
    search_fields = ('order_id', 'external_transaction_id')


@admin.register(Withdrawal)
class WithdrawalAdmin(admin.ModelAdmin):
    list_display = ('reference_id', 'user', 'amount', 'status', 'external_transaction_id', 'utr', 'created_at')
    list_filter = ('status', 'payment_mode')
    search_fields = ('reference_id', 'external_transaction_id', 'utr', 'user__phone_number')
    readonly_fields = ('user', 'amount', 'reference_id', 'external_transaction_id', 'approved_by')


@admin.register(CommissionEntry)
class CommissionEntryAdmin(admin.ModelAdmin):
    list_display = ('job_title', 'worker', 'amount', 'status', 'created_at', 'paid_at')
    list_filter = ('status',)
