from django.contrib import admin
from .models import Conversation, Message


class MessageInline(admin.TabularInline):
    model = Message
    extra = 0
    fields = ("created_at", "sender", "receiver", "is_system_generated", "system_event", "body", "is_read")
    readonly_fields = fields
    can_delete = False


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ("id", "booking", "property", "tenant", "owner", "created_at")
    list_select_related = ("booking", "property", "tenant", "owner")
    search_fields = ("tenant__email", "owner__email", "property__title", "booking__id")
    ordering = ("-created_at",)
    inlines = [MessageInline]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ("id", "conversation", "sender", "receiver", "is_system_generated", "system_event", "is_read", "created_at")
    list_select_related = ("conversation", "sender", "receiver")
    search_fields = ("sender__email", "receiver__email", "body")
    list_filter = (
        "is_system_generated",
        "system_event",
        "is_read",
        ("created_at", admin.DateFieldListFilter),
    )
    ordering = ("-id",)
