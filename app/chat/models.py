"""
Messaging core models.

This module defines the durable system of record for conversations:
- Direct conversations between exactly two users, unique per unordered pair
- Group conversations with a single admin and descriptive metadata

Models:
    Conversation: Container for participants, messages and the last-message snapshot
    DirectConversationPair: Helper for enforcing uniqueness of direct conversations
    Participant: One membership period of a user in a conversation
    Message: Individual message within a conversation
    MessageReadReceipt: When a participant read a message

Design Decisions:
    - Messages live in their own table so concurrent sends append rows
      instead of rewriting a shared document
    - Participant order is insertion order: (joined_at, id)
    - Leaving closes the participant row; rejoining creates a new row at the
      end of the order
    - Deleted messages are soft deleted and hidden from every API response
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from core.managers import SoftDeleteManager, SoftDeleteQuerySet
from core.model_mixins import SoftDeleteMixin
from core.models import BaseModel

if TYPE_CHECKING:
    from authentication.models import User


class ConversationType(models.TextChoices):
    """
    Type of conversation.

    DIRECT: Exactly two participants, immutable membership, no metadata
    GROUP: Admin-managed membership with name, description and domain
    """

    DIRECT = "direct", "Direct Message"
    GROUP = "group", "Group"


class GroupDomain(models.TextChoices):
    """Professional domain a group conversation is about."""

    TECHNOLOGY = "technology", "Technology"
    BANKING = "banking", "Banking"
    CONSULTING = "consulting", "Consulting"
    STARTUPS = "startups", "Startups"
    GOVERNMENT = "government", "Government"
    DESIGN = "design", "Design"
    RESEARCH = "research", "Research"
    GENERAL = "general", "General"


class MessageType(models.TextChoices):
    """Type of message content."""

    TEXT = "text", "Text"
    IMAGE = "image", "Image"
    FILE = "file", "File"
    LINK = "link", "Link"


class Conversation(BaseModel):
    """
    A conversation between two or more users.

    Conversation Types:
        DIRECT: Exactly 2 participants. Unique per user pair (enforced via
                DirectConversationPair). No group metadata.

        GROUP: Created with the creator plus at least 2 members. The creator
               is the admin. Only the admin changes membership or metadata.

    Last Message Snapshot:
        last_message_content / last_message_sender / last_message_at mirror
        the newest visible message so list views never scan messages. They
        are empty only while the conversation has no visible messages.

    Fields:
        conversation_type: direct or group
        name / description / domain: Group metadata (blank for direct)
        admin: Group admin, always an active participant (null for direct)
        is_active: Inactive conversations accept no new messages
        participant_count: Cached count of active participants
    """

    conversation_type = models.CharField(
        max_length=10,
        choices=ConversationType.choices,
        default=ConversationType.GROUP,
        db_index=True,
        help_text="Type of conversation (direct or group)",
    )

    name = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Group name (empty for direct)",
    )
    description = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Group description (empty for direct)",
    )
    domain = models.CharField(
        max_length=20,
        choices=GroupDomain.choices,
        blank=True,
        default="",
        help_text="Professional domain of a group (empty for direct)",
    )
    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="administered_conversations",
        help_text="Group admin (null for direct conversations)",
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Inactive conversations are hidden and accept no messages",
    )

    participant_count = models.PositiveIntegerField(
        default=0,
        help_text="Current number of active participants (cached for performance)",
    )

    last_message_content = models.TextField(
        blank=True,
        default="",
        help_text="Content of the newest visible message",
    )
    last_message_sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Sender of the newest visible message",
    )
    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Timestamp of the newest visible message",
    )

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-updated_at", "-id"]
        indexes = [
            models.Index(
                fields=["-updated_at"],
                name="chat_conv_activity_idx",
                condition=Q(is_active=True),
            ),
        ]

    def __str__(self) -> str:
        if self.conversation_type == ConversationType.DIRECT:
            return f"Direct({self.pk})"
        if self.name:
            return f"Group: {self.name}"
        return f"Group({self.pk})"

    @property
    def is_direct(self) -> bool:
        return self.conversation_type == ConversationType.DIRECT

    @property
    def is_group(self) -> bool:
        return self.conversation_type == ConversationType.GROUP

    @property
    def has_last_message(self) -> bool:
        return self.last_message_at is not None

    def get_active_participants(self):
        """
        Get active participants in insertion order.

        Returns:
            QuerySet of Participant objects where left_at is NULL
        """
        return self.participants.filter(left_at__isnull=True).order_by(
            "joined_at", "id"
        )

    def get_active_participant_for_user(self, user: User) -> Participant | None:
        """Get the active participant record for a user, or None."""
        return self.participants.filter(user=user, left_at__isnull=True).first()

    def get_active_user_ids(self) -> list[int]:
        """Active participant user ids in insertion order."""
        return list(self.get_active_participants().values_list("user_id", flat=True))

    def is_participant(self, user: User) -> bool:
        return self.participants.filter(user=user, left_at__isnull=True).exists()

    def is_admin(self, user: User) -> bool:
        return self.is_group and self.admin_id == user.id


class DirectConversationPair(models.Model):
    """
    Enforces uniqueness of direct conversations between two users.

    Stores user pairs in canonical order (lower user_id first) so that
    whoever initiates, there is only one direct conversation per pair.

    Constraints:
        - UniqueConstraint(user_lower, user_higher): One conversation per pair
        - CheckConstraint(user_lower_id < user_higher_id): Canonical order
    """

    conversation = models.OneToOneField(
        Conversation,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="direct_pair",
    )
    user_lower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with lower ID in this conversation pair",
    )
    user_higher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with higher ID in this conversation pair",
    )

    class Meta:
        db_table = "chat_direct_conversation_pair"
        constraints = [
            models.UniqueConstraint(
                fields=["user_lower", "user_higher"],
                name="unique_direct_conversation_pair",
            ),
            models.CheckConstraint(
                condition=Q(user_lower_id__lt=F("user_higher_id")),
                name="user_lower_less_than_higher",
            ),
        ]

    def __str__(self) -> str:
        return f"DirectPair({self.user_lower_id}, {self.user_higher_id})"


class Participant(BaseModel):
    """
    One membership period of a user in a conversation.

    Membership Lifecycle:
        1. User joins: Participant created with left_at=NULL
        2. User leaves voluntarily: left_at set, left_voluntarily=True
        3. User removed: left_at set, left_voluntarily=False, removed_by set
        4. User rejoins: NEW Participant record created (end of the order)

    Closed rows keep former participants resolvable as senders of their
    historic messages.

    Constraints:
        - UniqueConstraint(conversation, user) WHERE left_at IS NULL
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="participants",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversation_participations",
    )
    joined_at = models.DateTimeField(default=timezone.now)
    left_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="When the user left (null if still active)",
    )
    left_voluntarily = models.BooleanField(
        null=True,
        blank=True,
        help_text="True if user left voluntarily, False if removed by the admin",
    )
    removed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="removed_participants",
    )

    class Meta:
        db_table = "chat_participant"
        ordering = ["joined_at", "id"]
        indexes = [
            models.Index(
                fields=["conversation", "left_at"],
                name="chat_part_conv_active_idx",
            ),
            models.Index(
                fields=["user", "left_at"],
                name="chat_part_user_active_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                condition=Q(left_at__isnull=True),
                name="unique_active_participation",
            ),
        ]

    def __str__(self) -> str:
        status = "active" if self.is_active else "left"
        return f"Participant: {self.user_id} in {self.conversation_id} [{status}]"

    @property
    def is_active(self) -> bool:
        return self.left_at is None


class Message(SoftDeleteMixin, BaseModel):
    """
    A message within a conversation.

    Soft Delete Behavior:
        Only the sender may delete. The row and its content are kept for
        audit; the default manager hides it from every query so API
        responses, unread counts and the last-message snapshot ignore it.

    Fields:
        conversation: Conversation this message belongs to
        sender: Current or former participant who sent the message
        message_type: text, image, file or link
        content: 1..1000 characters
        attachments: List of {public_id, url, file_name, file_size}
        is_edited / edited_at: Edit markers
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="sent_messages",
    )
    message_type = models.CharField(
        max_length=10,
        choices=MessageType.choices,
        default=MessageType.TEXT,
    )
    content = models.CharField(max_length=1000)
    attachments = models.JSONField(
        default=list,
        blank=True,
        help_text="Attachment metadata: [{public_id, url, file_name, file_size}]",
    )
    is_edited = models.BooleanField(default=False)
    edited_at = models.DateTimeField(null=True, blank=True)

    objects = SoftDeleteManager()
    all_objects = SoftDeleteQuerySet.as_manager()

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["conversation", "created_at", "id"],
                name="chat_msg_conv_order_idx",
            ),
            models.Index(
                fields=["sender", "-created_at"],
                name="chat_msg_sender_idx",
            ),
        ]

    def __str__(self) -> str:
        preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        deleted_str = " [deleted]" if self.is_deleted else ""
        return f"User {self.sender_id}: {preview}{deleted_str}"


class MessageReadReceipt(models.Model):
    """
    Records that a user read a message.

    Never created for the message's own sender; at most one per
    (message, user).
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="read_receipts",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="message_read_receipts",
    )
    read_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "chat_message_read_receipt"
        ordering = ["read_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user"],
                name="unique_message_read_receipt",
            ),
        ]

    def __str__(self) -> str:
        return f"Read({self.message_id} by {self.user_id})"
