from decimal import Decimal

from rest_framework import serializers

from .models import PaymentDetails, Withdrawal, CommissionEntry


class PaymentDetailsSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentDetails
        fields = [
            'job', 'order_id', 'payment_method', 'total_amount', 'commission', 'worker_amount',
            'external_transaction_id', 'status', 'settlement_attempts', 'created_at', 'settled_at'
        ]
        read_only_fields = fields


class WithdrawalSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(source='user.id', read_only=True)
    user_name = serializers.CharField(source='user.display_name', read_only=True)
    phone_number = serializers.CharField(source='user.phone_number', read_only=True)
    destination = serializers.DictField(read_only=True)

    class Meta:
        model = Withdrawal
        fields = [
            'id', 'user_id', 'user_name', 'phone_number', 'amount', 'destination', 'beneficiary_name',
            'status', 'reference_id', 'external_transaction_id', 'utr', 'payment_mode',
            'failure_reason', 'notes', 'created_at', 'approved_at', 'completed_at'
        ]
        read_only_fields = fields


class WithdrawalRequestSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    upi_id = serializers.CharField(required=False, allow_blank=True, max_length=100)
    bank_account_number = serializers.CharField(required=False, allow_blank=True, max_length=34)
    ifsc = serializers.RegexField(r'^[A-Za-z]{4}0[A-Za-z0-9]{6}$', required=False, allow_blank=True)
    beneficiary_name = serializers.CharField(required=False, allow_blank=True, max_length=200)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate_upi_id(self, value):
        if value and '@' not in value:
            raise serializers.ValidationError("Enter a valid UPI id (name@bank).")
        return value

    def validate(self, data):
        if not data.get('upi_id') and not (data.get('bank_account_number') and data.get('ifsc')):
            raise serializers.ValidationError("Provide a UPI id or a bank account number with IFSC.")
        if data.get('ifsc'):
            data['ifsc'] = data['ifsc'].upper()
        return data


class WithdrawalRejectSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class WithdrawalResolveSerializer(serializers.Serializer):
    outcome = serializers.ChoiceField(choices=['completed', 'failed'])
    transaction_id = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    utr = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    reason = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if attrs['outcome'] == 'completed' and not attrs['utr']:
            raise serializers.ValidationError("A UTR is required to mark a payout completed.")
        return attrs


class PayoutWebhookSerializer(serializers.Serializer):
    transaction_id = serializers.CharField(max_length=100)
    status = serializers.CharField(max_length=20)
    utr = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    amount = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    payment_mode = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    reference_id = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def to_internal_value(self, data):
        # The rail spells it "transcation_id" in some payloads
        if 'transaction_id' not in data and 'transcation_id' in data:
            data = dict(data, transaction_id=data['transcation_id'])
        return super().to_internal_value(data)


class CommissionEntrySerializer(serializers.ModelSerializer):
    worker_id = serializers.IntegerField(source='worker.id', read_only=True)
    job_id = serializers.IntegerField(source='job.id', read_only=True)

    class Meta:
        model = CommissionEntry
        fields = [
            'id', 'worker_id', 'job_id', 'job_title', 'client_name', 'amount', 'total_amount',
            'status', 'paid_amount', 'created_at', 'paid_at'
        ]
        read_only_fields = fields


class CommissionAddSerializer(serializers.Serializer):
    job_id = serializers.IntegerField()


class CommissionPaySerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'), required=False)
