from decimal import Decimal

from rest_framework import serializers

from core.constants import GENDER_PREFERENCE_CHOICES
from .models import Job, Offer


class OfferSerializer(serializers.ModelSerializer):
    worker_id = serializers.IntegerField(source='worker.id', read_only=True)

    class Meta:
        model = Offer
        fields = [
            'id', 'worker_id', 'worker_name', 'worker_photo', 'worker_public_id',
            'amount', 'message', 'status', 'submitted_at'
        ]
        read_only_fields = fields


class AssignedWorkerSerializer(serializers.Serializer):
    id = serializers.IntegerField(source='assigned_worker_id')
    name = serializers.CharField(source='assigned_worker_name')
    photo = serializers.CharField(source='assigned_worker_photo', allow_null=True)
    public_id = serializers.CharField(source='assigned_worker_public_id', allow_null=True)
    assigned_at = serializers.DateTimeField()


class JobSerializer(serializers.ModelSerializer):
    client_id = serializers.IntegerField(source='client.id', read_only=True)
    client_name = serializers.CharField(source='client.display_name', read_only=True)
    offers = OfferSerializer(many=True, read_only=True)
    assigned_worker = serializers.SerializerMethodField()
    budget = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    gender = serializers.ChoiceField(choices=GENDER_PREFERENCE_CHOICES, default='Any')
    description = serializers.CharField(required=False, allow_blank=True, default='')

    class Meta:
        model = Job
        fields = [
            'id', 'client_id', 'client_name', 'title', 'address', 'pincode', 'budget', 'category',
            'gender', 'description', 'status', 'pickup_method', 'assigned_worker', 'offers',
            'work_done_at', 'completed_at', 'fully_completed_at', 'cancelled_at',
            'created_at', 'updated_at'
        ]
        read_only_fields = [
            'id', 'client_id', 'client_name', 'status', 'pickup_method', 'assigned_worker', 'offers',
            'work_done_at', 'completed_at', 'fully_completed_at', 'cancelled_at',
            'created_at', 'updated_at'
        ]

    def get_assigned_worker(self, obj):
        if obj.assigned_worker_id is None:
            return None
        return AssignedWorkerSerializer(obj).data

    def validate_pincode(self, value):
        value = value.strip()
        if not value.isdigit():
            raise serializers.ValidationError("Pincode must contain digits only.")
        return value


class WorkerJobSerializer(JobSerializer):
    """Job as seen by a worker: other workers' offers are left out."""
    my_offer = serializers.SerializerMethodField()

    class Meta(JobSerializer.Meta):
        fields = [name for name in JobSerializer.Meta.fields if name != 'offers'] + ['my_offer']

    def get_my_offer(self, obj):
        request = self.context.get('request')
        if request is None:
            return None
        offer = next((o for o in obj.offers.all() if o.worker_id == request.user.id), None)
        return OfferSerializer(offer).data if offer else None


class OfferCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    message = serializers.CharField(required=False, allow_blank=True, default='')


class OfferDecisionSerializer(serializers.Serializer):
    worker_id = serializers.IntegerField()


class JobPaymentSerializer(serializers.Serializer):
    payment_method = serializers.ChoiceField(choices=['cash', 'upi'])
    transaction_id = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)
