from rest_framework import serializers
from .models import Property


class PropertySerializer(serializers.ModelSerializer):
    owner_id = serializers.IntegerField(source="owner.id", read_only=True)
    approved_by_id = serializers.IntegerField(source="approved_by.id", read_only=True, allow_null=True)

    class Meta:
        model = Property
        fields = [
            "id", "title", "description", "property_type", "city", "address",
            "monthly_price", "owner_id",
            "approval_state", "rejection_reason", "approved_by_id", "approval_decided_at",
            "is_active", "is_available",
            "created_at", "updated_at",
        ]
        # moderation fields only move through the approval endpoints
        read_only_fields = [
            "id", "owner_id",
            "approval_state", "rejection_reason", "approved_by_id", "approval_decided_at",
            "is_active",
            "created_at", "updated_at",
        ]

    def validate_monthly_price(self, value):
        if value <= 0:
            raise serializers.ValidationError("The monthly price should be > 0.")
        return value

    def create(self, validated_data):
        user = self.context["request"].user
        return Property.objects.create(
            owner=user,
            approval_state=Property.ApprovalState.PENDING,
            **validated_data,
        )


class RejectPropertySerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")
