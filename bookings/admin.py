from django.contrib import admin
from .models import Booking, BookingIdempotencyKey


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("id", "property", "tenant", "owner_email", "status", "start_date", "end_date", "total_price")
    list_select_related = ("property", "tenant", "owner")
    search_fields = ("property__title", "property__city", "tenant__email", "owner__email")
    list_filter = (
        "status",
        ("start_date", admin.DateFieldListFilter),
        ("end_date", admin.DateFieldListFilter),
        ("property", admin.RelatedOnlyFieldListFilter),
        ("tenant", admin.RelatedOnlyFieldListFilter),
    )
    # status only moves through bookings.services
    readonly_fields = (
        "status", "owner", "monthly_price", "total_price", "decision_reason",
        "confirmed_at", "cancelled_at", "activated_at", "completed_at",
    )
    ordering = ("-start_date",)

    @admin.display(description="Owner (email)")
    def owner_email(self, obj):
        return getattr(obj.owner, "email", None)


@admin.register(BookingIdempotencyKey)
class BookingIdempotencyKeyAdmin(admin.ModelAdmin):
    list_display = ("id", "key", "tenant", "booking", "created_at")
    list_select_related = ("tenant", "booking")
    search_fields = ("key", "tenant__email")
    ordering = ("-id",)
