from django.conf import settings
from django.db import models


class Property(models.Model):
    class ApprovalState(models.TextChoices):
        PENDING = "pending", "Pending moderation"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    class PropertyType(models.TextChoices):
        APARTMENT = "apartment", "Apartment"
        VILLA = "villa", "Villa"
        STUDIO = "studio", "Studio"
        DUPLEX = "duplex", "Duplex"
        HOUSE = "house", "House"
        OTHER = "other", "Other"

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    property_type = models.CharField(max_length=20, choices=PropertyType.choices, default=PropertyType.APARTMENT)
    city = models.CharField(max_length=100)
    address = models.CharField(max_length=255, blank=True)
    monthly_price = models.DecimalField(max_digits=10, decimal_places=2)

    # who listed it; never reassigned
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="properties")

    # Moderation
    approval_state = models.CharField(
        max_length=20, choices=ApprovalState.choices, default=ApprovalState.PENDING, db_index=True
    )
    rejection_reason = models.TextField(blank=True, null=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="moderated_properties",
    )
    approval_decided_at = models.DateTimeField(null=True, blank=True)

    # Availability
    is_active = models.BooleanField(default=True)
    is_available = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "properties"

    def __str__(self):
        return f"{self.title} ({self.city}) - {self.monthly_price}/month [{self.approval_state}]"

    @property
    def is_bookable(self):
        return self.approval_state == self.ApprovalState.APPROVED and self.is_available
