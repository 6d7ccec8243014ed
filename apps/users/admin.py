from django.contrib import admin
from .models import User, Wallet, WalletTransaction

@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'full_name', 'phone_number', 'role', 'verification_status', 'worker_public_id')
    list_filter = ('role', 'verification_status')
    search_fields = ('username', 'full_name', 'phone_number', 'worker_public_id')

@admin.register(Wallet)
class WalletAdmin(admin.ModelAdmin):
    list_display = ('user', 'balance', 'total_earnings', 'updated_at')
    search_fields = ('user__username', 'user__phone_number')

@admin.register(WalletTransaction)
class WalletTransactionAdmin(admin.ModelAdmin):
    list_display = ('wallet', 'type', 'amount', 'status', 'external_transaction_id', 'created_at')
    list_filter = ('type', 'status')
    search_fields = ('external_transaction_id', 'utr', 'wallet__user__username')
    readonly_fields = ('wallet', 'type', 'amount', 'job', 'withdrawal', 'created_at')
