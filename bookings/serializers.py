from django.core.exceptions import ObjectDoesNotExist
from rest_framework import serializers

from .models import Booking
from .services import MAX_DURATION_MONTHS


class BookingSerializer(serializers.ModelSerializer):
    property_id = serializers.IntegerField(source="property.id", read_only=True)
    tenant_id = serializers.IntegerField(source="tenant.id", read_only=True)
    owner_id = serializers.IntegerField(source="owner.id", read_only=True)
    agent_id = serializers.IntegerField(source="agent.id", read_only=True, allow_null=True)
    conversation_id = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            "id", "property_id", "tenant_id", "owner_id", "agent_id", "status",
            "start_date", "end_date", "duration_months", "monthly_price", "total_price",
            "decision_reason", "conversation_id",
            "created_at", "updated_at", "confirmed_at", "cancelled_at", "activated_at", "completed_at",
        ]
        read_only_fields = fields

    def get_conversation_id(self, obj):
        try:
            return obj.conversation.id
        except ObjectDoesNotExist:
            return None


class BookingCreateSerializer(serializers.Serializer):
    # price, owner and status are never taken from the request
    property_id = serializers.IntegerField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    duration_months = serializers.IntegerField(required=False, default=1, min_value=1, max_value=MAX_DURATION_MONTHS)
    agent_id = serializers.IntegerField(required=False, allow_null=True)
    idempotency_key = serializers.CharField(required=False, allow_blank=True, max_length=255)

    def validate(self, attrs):
        if attrs["start_date"] >= attrs["end_date"]:
            raise serializers.ValidationError("start_date should be earlier than end_date.")
        return attrs


class RefuseBookingSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)
