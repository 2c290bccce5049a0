from django.contrib import admin, messages
from rest_framework.exceptions import APIException

from . import approval
from .models import Property


class PropertyPriceRangeFilter(admin.SimpleListFilter):
    title = "Monthly price"
    parameter_name = "price_range"

    def lookups(self, request, model_admin):
        return (
            ("<500", "< 500"),
            ("500-1000", "500–1000"),
            ("1000-2000", "1000–2000"),
            (">2000", "> 2000"),
        )

    def queryset(self, request, queryset):
        val = self.value()
        if val == "<500":
            return queryset.filter(monthly_price__lt=500)
        if val == "500-1000":
            return queryset.filter(monthly_price__gte=500, monthly_price__lte=1000)
        if val == "1000-2000":
            return queryset.filter(monthly_price__gte=1000, monthly_price__lte=2000)
        if val == ">2000":
            return queryset.filter(monthly_price__gt=2000)
        return queryset


@admin.register(Property)
class PropertyAdmin(admin.ModelAdmin):
    list_display = (
        "id", "title", "owner", "city", "monthly_price", "property_type",
        "approval_state", "is_active", "is_available", "created_at",
    )
    list_select_related = ("owner",)
    search_fields = ("title", "description", "city", "owner__email")
    list_filter = (
        "approval_state",
        PropertyPriceRangeFilter,
        "property_type",
        "is_active",
        "is_available",
        ("created_at", admin.DateFieldListFilter),
    )
    # moderation goes through the approval engine, not through the change form
    readonly_fields = ("approval_state", "rejection_reason", "approved_by", "approval_decided_at")
    ordering = ("-created_at",)
    date_hierarchy = "created_at"
    actions = ["approve_selected"]

    @admin.action(description="Approve selected properties")
    def approve_selected(self, request, queryset):
        approved = 0
        for prop in queryset:
            try:
                approval.approve_property(prop.pk, request.user)
                approved += 1
            except APIException as exc:
                self.message_user(request, f"#{prop.pk}: {exc.detail}", level=messages.WARNING)
        self.message_user(request, f"Approved {approved} properties.")
