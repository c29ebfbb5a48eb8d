"""
Serializers for the messaging API.

Read serializers:
    MessageSerializer: Message with resolved sender and read receipts
    ConversationListSerializer: List item with participants and last message
    ConversationDetailSerializer: List fields plus every visible message

Write serializers (request shape only, business rules live in services):
    DirectConversationCreateSerializer: {user_id}
    GroupConversationCreateSerializer: {name, member_ids, description?, domain?}
    GroupUpdateSerializer: {name?, description?}
    MessageCreateSerializer: {content, message_type?, attachments?}
    MemberAddSerializer: {user_id}

Design Decisions:
    - Read and write serializers are separate for clarity
    - Blank strings pass the write serializers so the service layer reports
      its own error codes (NAME_REQUIRED, EMPTY_CONTENT)
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.serializers import UserSummarySerializer
from chat.models import Conversation, GroupDomain, Message, MessageReadReceipt, MessageType
from chat.services import MessageService


# =============================================================================
# Message Serializers
# =============================================================================


class AttachmentSerializer(serializers.Serializer):
    """Metadata of a file already uploaded to external storage."""

    public_id = serializers.CharField(max_length=255)
    url = serializers.URLField(max_length=500)
    file_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    file_size = serializers.IntegerField(min_value=0, required=False)


class ReadReceiptSerializer(serializers.ModelSerializer):
    class Meta:
        model = MessageReadReceipt
        fields = ["user_id", "read_at"]
        read_only_fields = fields


class MessageSerializer(serializers.ModelSerializer):
    """
    Full message representation.

    The sender is resolved to a display profile even when they have since
    left the conversation.
    """

    sender = UserSummarySerializer(read_only=True)
    read_by = ReadReceiptSerializer(source="read_receipts", many=True, read_only=True)

    class Meta:
        model = Message
        fields = [
            "id",
            "conversation_id",
            "sender",
            "message_type",
            "content",
            "attachments",
            "is_edited",
            "edited_at",
            "read_by",
            "created_at",
        ]
        read_only_fields = fields


class MessageCreateSerializer(serializers.Serializer):
    """Request body for sending a message."""

    content = serializers.CharField(allow_blank=True, trim_whitespace=False)
    message_type = serializers.ChoiceField(
        choices=MessageType.choices,
        default=MessageType.TEXT,
    )
    attachments = AttachmentSerializer(many=True, required=False, default=list)


# =============================================================================
# Conversation Serializers
# =============================================================================


class ConversationListSerializer(serializers.ModelSerializer):
    """
    Conversation list item.

    Expects ``active_participants`` and ``unread_count`` to be loaded by
    ConversationService; falls back to queries when they are not.
    """

    participants = serializers.SerializerMethodField()
    last_message = serializers.SerializerMethodField()
    unread_count = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = [
            "id",
            "conversation_type",
            "name",
            "description",
            "domain",
            "admin_id",
            "participants",
            "last_message",
            "unread_count",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_participants(self, obj: Conversation) -> list[dict]:
        participants = getattr(obj, "active_participants", None)
        if participants is None:
            participants = obj.get_active_participants().select_related("user")
        return UserSummarySerializer(
            [participant.user for participant in participants], many=True
        ).data

    def get_last_message(self, obj: Conversation) -> dict | None:
        if not obj.has_last_message:
            return None
        return {
            "content": obj.last_message_content,
            "sender_id": obj.last_message_sender_id,
            "timestamp": serializers.DateTimeField().to_representation(
                obj.last_message_at
            ),
        }

    def get_unread_count(self, obj: Conversation) -> int:
        annotated = getattr(obj, "unread_count", None)
        if annotated is not None:
            return annotated
        request = self.context.get("request")
        if request is None:
            return 0
        return MessageService.get_unread_count(obj, request.user)


class ConversationDetailSerializer(ConversationListSerializer):
    """Conversation with every visible message in order."""

    messages = serializers.SerializerMethodField()

    class Meta(ConversationListSerializer.Meta):
        fields = ConversationListSerializer.Meta.fields + ["messages"]
        read_only_fields = fields

    def get_messages(self, obj: Conversation) -> list[dict]:
        messages = getattr(obj, "visible_messages", None)
        if messages is None:
            messages = (
                obj.messages.select_related("sender")
                .prefetch_related("read_receipts")
                .order_by("created_at", "id")
            )
        return MessageSerializer(messages, many=True).data


class DirectConversationCreateSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()


class GroupConversationCreateSerializer(serializers.Serializer):
    name = serializers.CharField(allow_blank=True, max_length=200)
    member_ids = serializers.ListField(
        child=serializers.IntegerField(),
        allow_empty=True,
    )
    description = serializers.CharField(
        required=False, allow_blank=True, default="", max_length=1000
    )
    domain = serializers.ChoiceField(
        choices=GroupDomain.choices,
        required=False,
        default=GroupDomain.GENERAL,
    )


class GroupUpdateSerializer(serializers.Serializer):
    """Partial update of group metadata; omitted fields stay unchanged."""

    name = serializers.CharField(required=False, allow_blank=True, max_length=200)
    description = serializers.CharField(
        required=False, allow_blank=True, max_length=1000
    )


class MemberAddSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
