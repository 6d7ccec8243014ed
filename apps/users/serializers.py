from django.conf import settings
from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Wallet, WalletTransaction

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email', 'phone_number', 'full_name', 'display_name', 'profile_photo',
            'role', 'verification_status', 'worker_public_id', 'date_joined'
        ]
        read_only_fields = fields


class AdminUserProfileSerializer(UserSerializer):
    """Full profile for administrators, documents and wallet included."""
    wallet = serializers.SerializerMethodField()

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + [
            'aadhaar_front', 'aadhaar_back', 'pan_card', 'address', 'date_of_birth', 'gender',
            'verification_submitted_at', 'verification_reviewed_at', 'is_active', 'wallet'
        ]
        read_only_fields = fields

    def get_wallet(self, obj):
        wallet = Wallet.objects.filter(user=obj).first()
        if wallet is None:
            return None
        return {'balance': str(wallet.balance), 'total_earnings': str(wallet.total_earnings)}


class VerificationSubmitSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=200)
    aadhaar_front = serializers.URLField(max_length=500)
    aadhaar_back = serializers.URLField(max_length=500)
    pan_card = serializers.URLField(max_length=500, required=False, allow_blank=True)
    address = serializers.CharField(max_length=300)
    date_of_birth = serializers.DateField()
    gender = serializers.ChoiceField(choices=['Male', 'Female', 'Other'])
    profile_photo = serializers.URLField(max_length=500, required=False, allow_blank=True)


class VerificationStatusSerializer(serializers.ModelSerializer):
    has_submitted_documents = serializers.BooleanField(read_only=True)

    class Meta:
        model = User
        fields = [
            'verification_status', 'has_submitted_documents', 'worker_public_id',
            'verification_submitted_at', 'verification_reviewed_at'
        ]
        read_only_fields = fields


class WalletTransactionSerializer(serializers.ModelSerializer):
    job_id = serializers.IntegerField(read_only=True)
    withdrawal_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = WalletTransaction
        fields = [
            'id', 'type', 'amount', 'description', 'status', 'job_id', 'withdrawal_id',
            'external_transaction_id', 'utr', 'commission', 'total_amount', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class WalletSerializer(serializers.ModelSerializer):
    currency = serializers.SerializerMethodField()
    worker_public_id = serializers.CharField(source='user.worker_public_id', read_only=True)
    transactions = serializers.SerializerMethodField()

    class Meta:
        model = Wallet
        fields = ['balance', 'total_earnings', 'currency', 'worker_public_id', 'transactions']
        read_only_fields = fields

    def get_currency(self, obj):
        return settings.CURRENCY

    def get_transactions(self, obj):
        limit = self.context.get('limit', 20)
        return WalletTransactionSerializer(obj.transactions.all()[:limit], many=True).data


class SwitchRoleSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=['client', 'worker'])
