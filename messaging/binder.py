"""
Booking <-> conversation binding.

Every booking owns exactly one conversation. The binder finds it (or creates it,
relying on the unique booking column to settle concurrent retries) and narrates
each booking transition into it as system messages.

Narration is best effort: once a booking transition has been written it stands,
so failures here are logged and handed back to the caller as warnings instead of
being raised.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from rest_framework.exceptions import APIException

from rental_marketplace.exceptions import (
    ConversationNotFound,
    Forbidden,
    NotificationDeliveryFailed,
    ValidationError,
)
from .delivery import NotificationFanout
from .models import Conversation, Message

logger = logging.getLogger(__name__)

CONVERSATION_STARTED_BODY = "Conversation started for booking"

BOOKING_CREATED = "created"
BOOKING_CONFIRMED = "confirmed"
BOOKING_REFUSED = "refused"
BOOKING_CANCELLED = "cancelled"

DELIVERY_WARNING = "The message was stored but could not be pushed to the recipient in real time."
NARRATION_WARNING = "The booking was saved, but its conversation could not be updated."


def find_or_create_for_booking(booking_id, tenant_id, owner_id, property_id) -> Tuple[Conversation, bool]:
    """Return (conversation, created). Repeated calls for one booking return the same row."""
    fields = {
        "booking_id": booking_id,
        "tenant_id": tenant_id,
        "owner_id": owner_id,
        "property_id": property_id,
    }
    missing = [name for name, value in fields.items() if not value]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}.")

    existing = Conversation.objects.filter(booking_id=booking_id).first()
    if existing is not None:
        return existing, False

    try:
        with transaction.atomic():
            conversation = Conversation.objects.create(
                booking_id=booking_id,
                tenant_id=tenant_id,
                owner_id=owner_id,
                property_id=property_id,
            )
            Message.objects.create(
                conversation=conversation,
                sender=None,
                receiver_id=owner_id,
                body=CONVERSATION_STARTED_BODY,
                is_system_generated=True,
                system_event=Message.SystemEvent.CONVERSATION_STARTED,
            )
    except IntegrityError:
        # a concurrent call inserted the row first; theirs is the conversation
        conversation = Conversation.objects.filter(booking_id=booking_id).first()
        if conversation is None:
            raise
        logger.info(
            "Conversation bind raced, reusing conversation_id=%s booking_id=%s",
            conversation.id,
            booking_id,
        )
        return conversation, False

    logger.info(
        "Conversation created conversation_id=%s booking_id=%s tenant_id=%s owner_id=%s",
        conversation.id,
        booking_id,
        tenant_id,
        owner_id,
    )
    return conversation, True


def _store_system_message(conversation, body, receiver_id=None, event=Message.SystemEvent.MANUAL) -> Message:
    receiver_id = receiver_id or conversation.owner_id
    if receiver_id not in (conversation.tenant_id, conversation.owner_id):
        raise ValidationError("The receiver must take part in the conversation.")
    return Message.objects.create(
        conversation=conversation,
        sender=None,
        receiver_id=receiver_id,
        body=body,
        is_system_generated=True,
        system_event=event,
        is_read=False,
    )


def _push(message, fanout) -> Optional[str]:
    """Hand the message to the fan-out; returns a warning instead of raising."""
    try:
        fanout.deliver(message)
    except NotificationDeliveryFailed as exc:
        logger.warning(
            "Notification delivery failed message_id=%s receiver_id=%s err=%s",
            message.id,
            message.receiver_id,
            exc,
        )
        return DELIVERY_WARNING
    return None


def post_system_message(conversation_id, body, receiver_id=None, fanout=None) -> Message:
    body = (body or "").strip()
    if not conversation_id or not body:
        raise ValidationError("conversation_id and body are required.")
    try:
        conversation = Conversation.objects.get(pk=conversation_id)
    except (Conversation.DoesNotExist, ValueError, TypeError):
        raise ConversationNotFound()

    message = _store_system_message(conversation, body, receiver_id=receiver_id)
    _push(message, fanout or NotificationFanout())
    logger.info(
        "System message posted message_id=%s conversation_id=%s receiver_id=%s",
        message.id,
        conversation.id,
        message.receiver_id,
    )
    return message


def post_user_message(conversation, sender, body, fanout=None) -> Tuple[Message, List[str]]:
    """
    A participant writes to the other side of the conversation.
    The message is stored first; a failed live push only yields a warning.
    """
    body = (body or "").strip()
    if not body:
        raise ValidationError("body is required.")
    if not conversation.is_participant(sender):
        raise Forbidden("Only the conversation's participants can write to it.")

    message = Message.objects.create(
        conversation=conversation,
        sender=sender,
        receiver_id=conversation.other_participant_id(sender.id),
        body=body,
        is_system_generated=False,
    )
    logger.info(
        "Message sent message_id=%s conversation_id=%s sender_id=%s receiver_id=%s body_len=%s",
        message.id,
        conversation.id,
        sender.id,
        message.receiver_id,
        len(body),
    )
    warning = _push(message, fanout or NotificationFanout())
    return message, [warning] if warning else []


def _booking_event_messages(booking, event) -> List[Tuple[str, int, str]]:
    """(body, receiver_id, system_event) for each message a transition produces."""
    title = booking.property.title
    if event == BOOKING_CREATED:
        currency = settings.MESSAGING.get("CURRENCY", "")
        summary = (
            f'Booking request created for "{title}"\n\n'
            f"Dates: {booking.start_date.isoformat()} to {booking.end_date.isoformat()}\n"
            f"Duration: {booking.duration_months} month(s)\n"
            f"Price: {booking.monthly_price} {currency}/month (total {booking.total_price} {currency})"
        )
        return [
            (summary, booking.owner_id, Message.SystemEvent.BOOKING_CREATED),
            ("Owner will review and contact you shortly", booking.tenant_id, Message.SystemEvent.BOOKING_CREATED),
        ]
    if event == BOOKING_CONFIRMED:
        return [(
            f'The owner has confirmed your booking for "{title}".',
            booking.tenant_id,
            Message.SystemEvent.BOOKING_CONFIRMED,
        )]
    if event == BOOKING_REFUSED:
        return [(
            f'The owner has declined your booking request for "{title}". Reason: {booking.decision_reason}',
            booking.tenant_id,
            Message.SystemEvent.BOOKING_REFUSED,
        )]
    if event == BOOKING_CANCELLED:
        return [(
            f'The tenant has cancelled the booking request for "{title}".',
            booking.owner_id,
            Message.SystemEvent.BOOKING_CANCELLED,
        )]
    raise ValueError(f"Unknown booking event: {event}")


def narrate_booking_event(booking, event, fanout=None) -> List[str]:
    """
    Bind the booking's conversation and post the system messages for `event`.
    Never raises for storage or delivery problems; returns the warnings to surface.
    """
    warnings = []
    try:
        # savepoint: a storage error here must not poison the caller's transaction
        with transaction.atomic():
            conversation, _ = find_or_create_for_booking(
                booking.id, booking.tenant_id, booking.owner_id, booking.property_id
            )
            messages = [
                _store_system_message(conversation, body, receiver_id=receiver_id, event=system_event)
                for body, receiver_id, system_event in _booking_event_messages(booking, event)
            ]
    except (DatabaseError, APIException) as exc:
        logger.warning(
            "Booking narration failed booking_id=%s event=%s err=%s",
            booking.id,
            event,
            exc,
        )
        return [NARRATION_WARNING]

    fanout = fanout or NotificationFanout()
    for message in messages:
        warning = _push(message, fanout)
        if warning and warning not in warnings:
            warnings.append(warning)

    logger.info(
        "Booking narrated booking_id=%s event=%s conversation_id=%s messages=%s",
        booking.id,
        event,
        conversation.id,
        len(messages),
    )
    return warnings
