import logging

from django.utils import timezone
from rest_framework import viewsets, permissions, decorators, response, status

from bookings.models import Booking
from rental_marketplace.exceptions import BookingNotFound, ConversationNotFound, Forbidden, NotFound, ValidationError
from . import binder
from .models import Conversation, Message
from .serializers import (
    BindConversationSerializer,
    ConversationSerializer,
    MessageSerializer,
    SendMessageSerializer,
    SystemMessageSerializer,
)

logger = logging.getLogger(__name__)


def _is_admin(user):
    return getattr(user, "role", None) == "admin"


class ConversationViewSet(viewsets.GenericViewSet):
    """
    Booking conversations.

    - booking (POST /api/messaging/conversations/booking/):
      find-or-create the conversation of a booking; callers must be the booking's tenant or owner.
      Body: {"booking_id", "tenant_id", "owner_id", "property_id"} -> 201 {"conversation_id", "created"}.
    - retrieve (GET /api/messaging/conversations/{id}/): participants (or admin).
    - messages (GET /api/messaging/conversations/{id}/messages/): the thread, oldest first.
      POST {"body": "..."} sends a message from a participant to the other side -> 201 message.
    - system (POST /api/messaging/conversations/system/): admin only.
    """
    serializer_class = ConversationSerializer
    permission_classes = [permissions.IsAuthenticated]
    queryset = Conversation.objects.select_related("booking", "property")
    lookup_value_regex = r"\d+"

    def _get_conversation(self, pk) -> Conversation:
        try:
            conversation = self.queryset.get(pk=pk)
        except (Conversation.DoesNotExist, ValueError, TypeError):
            raise ConversationNotFound()
        if not (conversation.is_participant(self.request.user) or _is_admin(self.request.user)):
            logger.warning(
                "Conversation access forbidden conversation_id=%s user_id=%s",
                conversation.id,
                self.request.user.id,
            )
            raise Forbidden("No access to this conversation.")
        return conversation

    def retrieve(self, request, pk=None):
        return response.Response(ConversationSerializer(self._get_conversation(pk)).data)

    @decorators.action(detail=False, methods=["post"], serializer_class=BindConversationSerializer)
    def booking(self, request):
        payload = BindConversationSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = payload.validated_data

        booking_id = data.get("booking_id")
        if booking_id:
            booking = Booking.objects.filter(pk=booking_id).first()
            if booking is None:
                raise BookingNotFound()
            if not (booking.is_participant(request.user) or _is_admin(request.user)):
                raise Forbidden("Only the booking's participants can open its conversation.")
            mismatch = [
                name
                for name, expected in (
                    ("tenant_id", booking.tenant_id),
                    ("owner_id", booking.owner_id),
                    ("property_id", booking.property_id),
                )
                if data.get(name) and data[name] != expected
            ]
            if mismatch:
                raise ValidationError(f"Fields do not match the booking: {', '.join(mismatch)}.")

        conversation, created = binder.find_or_create_for_booking(
            booking_id, data.get("tenant_id"), data.get("owner_id"), data.get("property_id")
        )
        return response.Response(
            {"conversation_id": conversation.id, "created": created},
            status=status.HTTP_201_CREATED,
        )

    @decorators.action(detail=True, methods=["get", "post"], serializer_class=MessageSerializer)
    def messages(self, request, pk=None):
        conversation = self._get_conversation(pk)

        if request.method.lower() == "post":
            payload = SendMessageSerializer(data=request.data)
            payload.is_valid(raise_exception=True)
            msg, warnings = binder.post_user_message(conversation, request.user, payload.validated_data["body"])
            data = dict(MessageSerializer(msg).data)
            if warnings:
                data["warnings"] = warnings
            return response.Response(data, status=status.HTTP_201_CREATED)

        msgs = conversation.messages.select_related("conversation", "sender", "receiver").all()
        logger.debug(
            "Messages listed conversation_id=%s requester_id=%s count=%s",
            conversation.id,
            request.user.id,
            len(msgs),
        )
        return response.Response(MessageSerializer(msgs, many=True).data)

    @decorators.action(detail=False, methods=["post"], url_path="system", serializer_class=SystemMessageSerializer)
    def system(self, request):
        """
        Append a system message to a conversation.
        Admin only: participants write through the messages action.
        Body: {"conversation_id": <id>, "body": "..."} -> 201 message.
        """
        if not _is_admin(request.user):
            logger.warning("System message forbidden user_id=%s (not admin)", request.user.id)
            raise Forbidden("Only admins can post system messages.")
        payload = SystemMessageSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        conversation_id = payload.validated_data.get("conversation_id")
        body = payload.validated_data.get("body")
        if conversation_id and body.strip():
            self._get_conversation(conversation_id)
        msg = binder.post_system_message(conversation_id, body)
        return response.Response(MessageSerializer(msg).data, status=status.HTTP_201_CREATED)


class MessageViewSet(viewsets.GenericViewSet):
    """
    - read (POST /api/messaging/messages/{id}/read/): receiver marks a message as read.
    - unread (GET /api/messaging/messages/unread/): unread count for the current user.
    """
    serializer_class = MessageSerializer
    permission_classes = [permissions.IsAuthenticated]
    queryset = Message.objects.select_related("conversation", "sender", "receiver")
    lookup_value_regex = r"\d+"

    @decorators.action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        try:
            msg = self.queryset.get(pk=pk)
        except Message.DoesNotExist:
            raise NotFound("Message not found.")
        if msg.receiver_id != request.user.id:
            raise Forbidden("Only the receiver can mark a message as read.")
        if not msg.is_read:
            # only the first reader stamps read_at
            Message.objects.filter(pk=msg.pk, is_read=False).update(is_read=True, read_at=timezone.now())
            msg.refresh_from_db()
        return response.Response(MessageSerializer(msg).data)

    @decorators.action(detail=False, methods=["get"])
    def unread(self, request):
        count = Message.objects.filter(receiver=request.user, is_read=False).count()
        return response.Response({"unread_count": count})
