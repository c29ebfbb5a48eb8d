"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Conversation management
- Participant history
- Message moderation (soft deleted messages included)
"""

from django.contrib import admin

from chat.models import (
    Conversation,
    DirectConversationPair,
    Message,
    MessageReadReceipt,
    Participant,
)


class ParticipantInline(admin.TabularInline):
    model = Participant
    extra = 0
    readonly_fields = ["joined_at", "left_at", "left_voluntarily", "removed_by"]
    raw_id_fields = ["user", "removed_by"]


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "conversation_type",
        "name",
        "domain",
        "admin",
        "participant_count",
        "is_active",
        "updated_at",
    ]
    list_filter = ["conversation_type", "domain", "is_active"]
    search_fields = ["name", "id"]
    readonly_fields = [
        "created_at",
        "updated_at",
        "participant_count",
        "last_message_content",
        "last_message_sender",
        "last_message_at",
    ]
    raw_id_fields = ["admin"]
    inlines = [ParticipantInline]
    ordering = ["-updated_at"]


@admin.register(DirectConversationPair)
class DirectConversationPairAdmin(admin.ModelAdmin):
    list_display = ["conversation", "user_lower", "user_higher"]
    raw_id_fields = ["conversation", "user_lower", "user_higher"]


@admin.register(Participant)
class ParticipantAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "conversation",
        "user",
        "joined_at",
        "left_at",
        "left_voluntarily",
    ]
    list_filter = ["left_voluntarily", "joined_at"]
    search_fields = ["user__email", "conversation__name"]
    readonly_fields = ["created_at", "updated_at", "joined_at"]
    raw_id_fields = ["conversation", "user", "removed_by"]
    ordering = ["-joined_at"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Message moderation; lists deleted messages too."""

    list_display = [
        "id",
        "conversation",
        "sender",
        "message_type",
        "content_preview",
        "is_deleted",
        "created_at",
    ]
    list_filter = ["message_type", "is_deleted", "created_at"]
    search_fields = ["content", "sender__email"]
    readonly_fields = ["created_at", "updated_at", "deleted_at"]
    raw_id_fields = ["conversation", "sender"]
    ordering = ["-created_at"]

    def get_queryset(self, request):
        return Message.all_objects.select_related("conversation", "sender")

    @admin.display(description="Content Preview")
    def content_preview(self, obj: Message) -> str:
        max_length = 50
        if len(obj.content) > max_length:
            return obj.content[:max_length] + "..."
        return obj.content


@admin.register(MessageReadReceipt)
class MessageReadReceiptAdmin(admin.ModelAdmin):
    list_display = ["message", "user", "read_at"]
    raw_id_fields = ["message", "user"]
