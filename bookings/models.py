from django.conf import settings
from django.db import models
from properties.models import Property


class Booking(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Awaiting owner decision"
        CONFIRMED = "confirmed", "Confirmed"
        REFUSED = "refused", "Refused"
        CANCELLED = "cancelled", "Cancelled"
        ACTIVE = "active", "Active"
        COMPLETED = "completed", "Completed"

    property = models.ForeignKey(Property, on_delete=models.CASCADE, related_name="bookings")
    tenant = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="bookings")
    # Copied from property.owner at creation and never refreshed: it records who the
    # tenant negotiated with, even if the listing changes hands later.
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="owner_bookings")
    agent = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="agent_bookings",
    )

    start_date = models.DateField()
    end_date = models.DateField()
    duration_months = models.PositiveIntegerField(default=1)
    monthly_price = models.DecimalField(max_digits=10, decimal_places=2)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    decision_reason = models.TextField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    confirmed_at = models.DateTimeField(blank=True, null=True)
    cancelled_at = models.DateTimeField(blank=True, null=True)
    activated_at = models.DateTimeField(blank=True, null=True)
    completed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "start_date"], name="booking_status_start_idx"),
            models.Index(fields=["status", "end_date"], name="booking_status_end_idx"),
        ]

    def __str__(self):
        return f"Booking #{self.id} {self.property_id} by {self.tenant_id} [{self.status}]"

    def is_participant(self, user):
        user_id = getattr(user, "id", None)
        return user_id is not None and user_id in (self.tenant_id, self.owner_id, self.agent_id)


class BookingIdempotencyKey(models.Model):
    """Maps a tenant-supplied request token to the booking it produced."""

    key = models.CharField(max_length=255)
    tenant = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="booking_keys")
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="idempotency_keys")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["tenant", "key"], name="unique_booking_idempotency_key"),
        ]

    def __str__(self):
        return f"{self.key} -> booking #{self.booking_id}"
