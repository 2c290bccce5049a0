from rest_framework import serializers
from .models import Conversation, Message


class MessageSerializer(serializers.ModelSerializer):
    conversation_id = serializers.IntegerField(source="conversation.id", read_only=True)
    sender_id = serializers.IntegerField(source="sender.id", read_only=True, allow_null=True)
    receiver_id = serializers.IntegerField(source="receiver.id", read_only=True)

    class Meta:
        model = Message
        fields = [
            "id", "conversation_id", "sender_id", "receiver_id", "body",
            "is_system_generated", "system_event", "is_read", "read_at", "created_at",
        ]
        read_only_fields = fields


class ConversationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Conversation
        fields = ["id", "booking", "property", "tenant", "owner", "created_at"]
        read_only_fields = fields


class BindConversationSerializer(serializers.Serializer):
    # presence is checked by the binder so every missing field is reported together
    booking_id = serializers.IntegerField(required=False, allow_null=True)
    tenant_id = serializers.IntegerField(required=False, allow_null=True)
    owner_id = serializers.IntegerField(required=False, allow_null=True)
    property_id = serializers.IntegerField(required=False, allow_null=True)


class SystemMessageSerializer(serializers.Serializer):
    conversation_id = serializers.IntegerField(required=False, allow_null=True)
    body = serializers.CharField(required=False, allow_blank=True, default="")


class SendMessageSerializer(serializers.Serializer):
    body = serializers.CharField(required=False, allow_blank=True, default="")
