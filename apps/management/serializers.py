from rest_framework import serializers

from .models import ManagementLog


class ManagementLogSerializer(serializers.ModelSerializer):
    admin_username = serializers.CharField(source='admin.username', read_only=True)

    class Meta:
        model = ManagementLog
        fields = ['id', 'admin', 'admin_username', 'action', 'details', 'timestamp']
        read_only_fields = fields


class ReviewReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
