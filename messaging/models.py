from django.conf import settings
from django.db import models
from properties.models import Property


class Conversation(models.Model):
    # unique: a booking never gets a second thread, whatever the retry pattern
    booking = models.OneToOneField(
        "bookings.Booking",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="conversation",
    )
    property = models.ForeignKey(Property, on_delete=models.CASCADE, related_name="conversations")
    tenant = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="tenant_conversations")
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="owner_conversations")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Conversation #{self.id} b#{self.booking_id} ({self.tenant_id} <-> {self.owner_id})"

    def is_participant(self, user):
        return getattr(user, "id", None) in (self.tenant_id, self.owner_id)

    def other_participant_id(self, user_id):
        return self.owner_id if user_id == self.tenant_id else self.tenant_id


class Message(models.Model):
    class SystemEvent(models.TextChoices):
        CONVERSATION_STARTED = "conversation_started", "Conversation started"
        BOOKING_CREATED = "booking_created", "Booking requested"
        BOOKING_CONFIRMED = "booking_confirmed", "Booking confirmed"
        BOOKING_REFUSED = "booking_refused", "Booking refused"
        BOOKING_CANCELLED = "booking_cancelled", "Booking cancelled"
        MANUAL = "manual", "Posted through the API"

    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name="messages")
    # null for system messages
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sent_messages",
    )
    receiver = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="received_messages")
    body = models.TextField()
    is_system_generated = models.BooleanField(default=False)
    system_event = models.CharField(max_length=30, choices=SystemEvent.choices, blank=True)
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["receiver", "is_read"], name="message_receiver_unread_idx"),
        ]

    def __str__(self):
        origin = "system" if self.is_system_generated else self.sender_id
        return f"Msg c#{self.conversation_id} from {origin} to {self.receiver_id}"
