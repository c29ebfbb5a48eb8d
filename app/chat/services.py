"""
Messaging core service layer.

This module provides the business logic for conversations, encapsulating
all operations on conversations, participants, messages and presence.

Services:
    ConversationService: Conversation lifecycle (list, get, create, update group)
    ParticipantService: Group membership (add, remove, leave, admin handoff)
    MessageService: Message operations (send, delete, mark as read)
    PresenceService: Durable presence fields on the user record

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure() with an error code
    - Unexpected failures raise exceptions
    - Mutations lock the conversation row (select_for_update) inside a
      transaction, so concurrent sends and membership changes serialize
      per conversation
    - Realtime fan-out goes through an explicitly passed notifier and runs
      only after the transaction commits

Usage:
    from chat.services import ConversationService, MessageService

    result = ConversationService.create_direct(user, other_user.id)
    if result.success:
        conversation, created = result.data

    result = MessageService.send_message(
        conversation_id=conversation.id,
        sender=user,
        content="Hello!",
        notifier=notifier,
    )
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Count, F, IntegerField, OuterRef, Prefetch, Subquery
from django.db.models.functions import Coalesce
from django.utils import timezone

from core.services import BaseService, ServiceResult

from chat.constants import GROUP_CONFIG, MESSAGE_CONFIG
from chat.models import (
    Conversation,
    ConversationType,
    DirectConversationPair,
    GroupDomain,
    Message,
    MessageReadReceipt,
    MessageType,
    Participant,
)

if TYPE_CHECKING:
    from datetime import datetime

    from django.db.models import QuerySet

    from authentication.models import User
    from chat.notifier import ChannelLayerNotifier


def _unread_count_subquery(user: User) -> Subquery:
    """Count of visible messages in OuterRef("pk") the user has not read."""
    unread = (
        Message.objects.filter(conversation=OuterRef("pk"))
        .exclude(sender=user)
        .exclude(read_receipts__user=user)
        .order_by()
        .values("conversation")
        .annotate(total=Count("id"))
        .values("total")
    )
    return Coalesce(Subquery(unread, output_field=IntegerField()), 0)


def _active_participants_prefetch() -> Prefetch:
    return Prefetch(
        "participants",
        queryset=Participant.objects.filter(left_at__isnull=True)
        .select_related("user")
        .order_by("joined_at", "id"),
        to_attr="active_participants",
    )


class ConversationService(BaseService):
    """
    Service for conversation lifecycle operations.

    Methods:
        list_for_user: Active conversations of a user, most recent activity first
        get_for_user: One conversation, for a participant only
        get_detail: Conversation with participants, messages and receipts loaded
        create_direct: Create or retrieve direct conversation between two users
        create_group: Create a new group conversation
        update_group: Change group name and/or description
    """

    @classmethod
    def list_for_user(cls, user: User) -> QuerySet[Conversation]:
        """
        List active conversations where user is an active participant.

        Participants (with user profiles) are prefetched into
        ``active_participants`` and each conversation is annotated with the
        caller's ``unread_count``. Ordered by updated_at descending.
        """
        return (
            Conversation.objects.filter(
                is_active=True,
                participants__user=user,
                participants__left_at__isnull=True,
            )
            .select_related("admin", "last_message_sender")
            .prefetch_related(_active_participants_prefetch())
            .annotate(unread_count=_unread_count_subquery(user))
            .order_by("-updated_at", "-id")
        )

    @classmethod
    def get_for_user(
        cls,
        user: User,
        conversation_id: int,
    ) -> ServiceResult[Conversation]:
        """
        Fetch a conversation the user participates in.

        Error codes:
            CONVERSATION_NOT_FOUND: No conversation with this id
            NOT_PARTICIPANT: User is not an active participant
        """
        conversation = Conversation.objects.filter(pk=conversation_id).first()
        if conversation is None:
            return ServiceResult.failure(
                "Conversation not found",
                error_code="CONVERSATION_NOT_FOUND",
            )
        if not conversation.is_participant(user):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )
        return ServiceResult.success(conversation)

    @classmethod
    def get_detail(
        cls,
        user: User,
        conversation_id: int,
    ) -> ServiceResult[Conversation]:
        """
        Fetch full conversation detail for a participant.

        Loads active participants, every visible message with its sender and
        read receipts, and the caller's unread count.
        """
        result = cls.get_for_user(user, conversation_id)
        if not result.success:
            return result

        conversation = (
            Conversation.objects.filter(pk=conversation_id)
            .select_related("admin", "last_message_sender")
            .prefetch_related(
                _active_participants_prefetch(),
                Prefetch(
                    "messages",
                    queryset=Message.objects.select_related("sender")
                    .prefetch_related("read_receipts")
                    .order_by("created_at", "id"),
                    to_attr="visible_messages",
                ),
            )
            .annotate(unread_count=_unread_count_subquery(user))
            .get()
        )
        return ServiceResult.success(conversation)

    @classmethod
    def create_direct(
        cls,
        user: User,
        other_user_id: int,
    ) -> ServiceResult[tuple[Conversation, bool]]:
        """
        Create or retrieve a direct conversation between two users.

        Direct conversations are unique per unordered user pair. Calling
        this with (a, b) or (b, a) any number of times yields the same
        conversation.

        Returns:
            ServiceResult with (conversation, created)

        Error codes:
            SAME_USER: Cannot create direct conversation with yourself
            USER_NOT_FOUND: Other user does not exist or is inactive
        """
        if user.id == other_user_id:
            return ServiceResult.failure(
                "Cannot create a direct conversation with yourself",
                error_code="SAME_USER",
            )

        other_user = (
            get_user_model().objects.filter(pk=other_user_id, is_active=True).first()
        )
        if other_user is None:
            return ServiceResult.failure(
                "User not found",
                error_code="USER_NOT_FOUND",
            )

        user_lower, user_higher = (
            (user, other_user) if user.id < other_user.id else (other_user, user)
        )

        existing = cls._find_direct(user_lower, user_higher)
        if existing is not None:
            cls.get_logger().debug(
                f"Found existing direct conversation {existing.id} "
                f"between users {user_lower.id} and {user_higher.id}"
            )
            return ServiceResult.success((existing, False))

        try:
            with cls.atomic():
                conversation = Conversation.objects.create(
                    conversation_type=ConversationType.DIRECT,
                    participant_count=2,
                )
                DirectConversationPair.objects.create(
                    conversation=conversation,
                    user_lower=user_lower,
                    user_higher=user_higher,
                )
                # Initiator first
                Participant.objects.create(conversation=conversation, user=user)
                Participant.objects.create(conversation=conversation, user=other_user)
        except IntegrityError:
            # Lost a race with a concurrent create for the same pair
            existing = cls._find_direct(user_lower, user_higher)
            if existing is None:
                raise
            return ServiceResult.success((existing, False))

        cls.get_logger().info(
            f"Created direct conversation {conversation.id} "
            f"between users {user_lower.id} and {user_higher.id}"
        )
        return ServiceResult.success((conversation, True))

    @staticmethod
    def _find_direct(user_lower: User, user_higher: User) -> Conversation | None:
        pair = (
            DirectConversationPair.objects.select_related("conversation")
            .filter(user_lower=user_lower, user_higher=user_higher)
            .first()
        )
        return pair.conversation if pair else None

    @classmethod
    def create_group(
        cls,
        creator: User,
        name: str,
        member_ids: list[int],
        description: str = "",
        domain: str = "",
    ) -> ServiceResult[Conversation]:
        """
        Create a new group conversation.

        Members join in the given order (duplicates and the creator are
        dropped), then the creator is appended and becomes the admin.

        Args:
            creator: User creating the group (becomes admin)
            name: Required group name
            member_ids: Ids of at least 2 other users
            description: Optional description
            domain: Optional GroupDomain value

        Error codes:
            NAME_REQUIRED: Group name cannot be empty
            NAME_TOO_LONG / DESCRIPTION_TOO_LONG: Metadata exceeds limits
            INVALID_DOMAIN: Unknown domain
            NOT_ENOUGH_MEMBERS: Fewer than 2 members besides the creator
            USER_NOT_FOUND: A member id does not resolve to an active user
        """
        name = (name or "").strip()
        description = (description or "").strip()

        failure = cls._validate_group_metadata(name=name, description=description)
        if failure is not None:
            return failure

        if domain and domain not in GroupDomain.values:
            return ServiceResult.failure(
                f"Unknown domain '{domain}'",
                error_code="INVALID_DOMAIN",
            )

        ordered_ids = []
        for member_id in member_ids:
            if member_id != creator.id and member_id not in ordered_ids:
                ordered_ids.append(member_id)

        if len(ordered_ids) < GROUP_CONFIG.MIN_INITIAL_MEMBERS:
            return ServiceResult.failure(
                f"A group needs at least {GROUP_CONFIG.MIN_INITIAL_MEMBERS} "
                "members besides the creator",
                error_code="NOT_ENOUGH_MEMBERS",
            )

        users_by_id = get_user_model().objects.filter(
            pk__in=ordered_ids, is_active=True
        ).in_bulk()
        missing = [member_id for member_id in ordered_ids if member_id not in users_by_id]
        if missing:
            return ServiceResult.failure(
                "One or more members were not found",
                error_code="USER_NOT_FOUND",
                errors={"member_ids": [str(member_id) for member_id in missing]},
            )

        with cls.atomic():
            conversation = Conversation.objects.create(
                conversation_type=ConversationType.GROUP,
                name=name,
                description=description,
                domain=domain or GroupDomain.GENERAL,
                admin=creator,
                participant_count=len(ordered_ids) + 1,
            )
            for member_id in ordered_ids:
                Participant.objects.create(
                    conversation=conversation,
                    user=users_by_id[member_id],
                )
            Participant.objects.create(conversation=conversation, user=creator)

        cls.get_logger().info(
            f"User {creator.id} created group conversation {conversation.id} "
            f"with {len(ordered_ids)} members"
        )
        return ServiceResult.success(conversation)

    @classmethod
    def update_group(
        cls,
        conversation_id: int,
        user: User,
        name: str | None = None,
        description: str | None = None,
        notifier: ChannelLayerNotifier | None = None,
    ) -> ServiceResult[Conversation]:
        """
        Update group name and/or description (admin only).

        Fields left as None are unchanged.

        Error codes:
            CONVERSATION_NOT_FOUND, NOT_GROUP, NOT_PARTICIPANT, NOT_ADMIN,
            NAME_REQUIRED, NAME_TOO_LONG, DESCRIPTION_TOO_LONG
        """
        if name is not None:
            name = name.strip()
        if description is not None:
            description = description.strip()

        with cls.atomic():
            result = _lock_group_for_admin(conversation_id, user)
            if not result.success:
                return result
            conversation = result.data

            failure = cls._validate_group_metadata(
                name=name, description=description, name_required=name is not None
            )
            if failure is not None:
                return failure

            update_fields = ["updated_at"]
            if name is not None:
                conversation.name = name
                update_fields.append("name")
            if description is not None:
                conversation.description = description
                update_fields.append("description")
            conversation.save(update_fields=update_fields)

            recipients = conversation.get_active_user_ids()

        cls.get_logger().info(
            f"User {user.id} updated group {conversation.id} ({', '.join(update_fields[1:]) or 'no fields'})"
        )

        if notifier is not None:
            payload = {
                "conversation_id": conversation.id,
                "name": conversation.name,
                "description": conversation.description,
                "updated_by": user.id,
            }
            transaction.on_commit(
                lambda: notifier.push_group_updated(recipients, payload)
            )
        return ServiceResult.success(conversation)

    @staticmethod
    def _validate_group_metadata(
        name: str | None,
        description: str | None,
        name_required: bool = True,
    ) -> ServiceResult | None:
        if name_required and not name:
            return ServiceResult.failure(
                "Group name is required",
                error_code="NAME_REQUIRED",
            )
        if name and len(name) > GROUP_CONFIG.MAX_NAME_LENGTH:
            return ServiceResult.failure(
                f"Group name cannot exceed {GROUP_CONFIG.MAX_NAME_LENGTH} characters",
                error_code="NAME_TOO_LONG",
            )
        if description and len(description) > GROUP_CONFIG.MAX_DESCRIPTION_LENGTH:
            return ServiceResult.failure(
                "Group description cannot exceed "
                f"{GROUP_CONFIG.MAX_DESCRIPTION_LENGTH} characters",
                error_code="DESCRIPTION_TOO_LONG",
            )
        return None


def _lock_conversation(conversation_id: int) -> Conversation | None:
    """Fetch and row-lock a conversation. Must run inside a transaction."""
    return Conversation.objects.select_for_update().filter(pk=conversation_id).first()


def _lock_group_for_admin(conversation_id: int, user: User) -> ServiceResult[Conversation]:
    """Lock a group conversation and check user is its admin."""
    conversation = _lock_conversation(conversation_id)
    if conversation is None:
        return ServiceResult.failure(
            "Conversation not found",
            error_code="CONVERSATION_NOT_FOUND",
        )
    if not conversation.is_group:
        return ServiceResult.failure(
            "This operation is only available for group conversations",
            error_code="NOT_GROUP",
        )
    if not conversation.is_participant(user):
        return ServiceResult.failure(
            "You are not a participant in this conversation",
            error_code="NOT_PARTICIPANT",
        )
    if not conversation.is_admin(user):
        return ServiceResult.failure(
            "Only the group admin can do this",
            error_code="NOT_ADMIN",
        )
    return ServiceResult.success(conversation)


class ParticipantService(BaseService):
    """
    Service for group membership operations.

    Methods:
        add_member: Admin adds a user to the group
        remove_member: Admin removes a participant
        leave_group: Participant leaves; admin role hands off if needed

    Invariant:
        A group never drops below GROUP_CONFIG.MIN_PARTICIPANTS active
        participants, and its admin is always an active participant.
    """

    @classmethod
    def add_member(
        cls,
        conversation_id: int,
        added_by: User,
        user_id: int,
        notifier: ChannelLayerNotifier | None = None,
    ) -> ServiceResult[Participant]:
        """
        Add a user to a group conversation (admin only).

        The new participant goes to the end of the participant order.

        Error codes:
            CONVERSATION_NOT_FOUND, NOT_GROUP, NOT_PARTICIPANT, NOT_ADMIN
            CONVERSATION_INACTIVE: Group has been deactivated
            USER_NOT_FOUND: User does not exist or is inactive
            ALREADY_PARTICIPANT: User is already in this conversation
        """
        user_to_add = get_user_model().objects.filter(pk=user_id, is_active=True).first()

        with cls.atomic():
            result = _lock_group_for_admin(conversation_id, added_by)
            if not result.success:
                return result
            conversation = result.data

            if not conversation.is_active:
                return ServiceResult.failure(
                    "This conversation is no longer active",
                    error_code="CONVERSATION_INACTIVE",
                )
            if user_to_add is None:
                return ServiceResult.failure(
                    "User not found",
                    error_code="USER_NOT_FOUND",
                )
            if conversation.is_participant(user_to_add):
                return ServiceResult.failure(
                    "User is already a participant in this conversation",
                    error_code="ALREADY_PARTICIPANT",
                )

            participant = Participant.objects.create(
                conversation=conversation,
                user=user_to_add,
            )
            conversation.participant_count = F("participant_count") + 1
            conversation.save(update_fields=["participant_count", "updated_at"])
            conversation.refresh_from_db()
            recipients = conversation.get_active_user_ids()

        cls.get_logger().info(
            f"Added user {user_to_add.id} to conversation {conversation.id} "
            f"by user {added_by.id}"
        )

        if notifier is not None:
            payload = {
                "conversation_id": conversation.id,
                "user_id": user_to_add.id,
                "added_by": added_by.id,
            }
            transaction.on_commit(
                lambda: notifier.push_member_added(recipients, payload)
            )
        return ServiceResult.success(participant)

    @classmethod
    def remove_member(
        cls,
        conversation_id: int,
        removed_by: User,
        user_id: int,
        notifier: ChannelLayerNotifier | None = None,
    ) -> ServiceResult[Conversation]:
        """
        Remove a participant from a group conversation (admin only).

        Error codes:
            CONVERSATION_NOT_FOUND, NOT_GROUP, NOT_PARTICIPANT, NOT_ADMIN
            CANNOT_REMOVE_SELF: Admin must use leave_group instead
            NOT_MEMBER: Target is not an active participant
            GROUP_MINIMUM_SIZE: Removal would leave fewer than 2 participants
        """
        with cls.atomic():
            result = _lock_group_for_admin(conversation_id, removed_by)
            if not result.success:
                return result
            conversation = result.data

            if user_id == removed_by.id:
                return ServiceResult.failure(
                    "Use leave to exit a group you administer",
                    error_code="CANNOT_REMOVE_SELF",
                )

            participant = conversation.participants.filter(
                user_id=user_id, left_at__isnull=True
            ).first()
            if participant is None:
                return ServiceResult.failure(
                    "User is not a participant in this conversation",
                    error_code="NOT_MEMBER",
                )

            failure = cls._check_minimum_size(conversation)
            if failure is not None:
                return failure

            cls._close_participation(participant, removed_by=removed_by)
            conversation.participant_count = F("participant_count") - 1
            conversation.save(update_fields=["participant_count", "updated_at"])
            conversation.refresh_from_db()
            recipients = conversation.get_active_user_ids() + [user_id]

        cls.get_logger().info(
            f"User {removed_by.id} removed user {user_id} "
            f"from conversation {conversation.id}"
        )

        if notifier is not None:
            payload = {
                "conversation_id": conversation.id,
                "user_id": user_id,
                "removed_by": removed_by.id,
            }
            transaction.on_commit(
                lambda: notifier.push_member_removed(recipients, payload)
            )
        return ServiceResult.success(conversation)

    @classmethod
    def leave_group(
        cls,
        conversation_id: int,
        user: User,
        notifier: ChannelLayerNotifier | None = None,
    ) -> ServiceResult[Conversation]:
        """
        User voluntarily leaves a group conversation.

        If the departing user is the admin, the admin role passes to the
        first remaining participant in participant order (joined_at, id).
        Direct conversations cannot be left.

        Error codes:
            CONVERSATION_NOT_FOUND, NOT_GROUP, NOT_PARTICIPANT
            GROUP_MINIMUM_SIZE: Leaving would leave fewer than 2 participants
        """
        with cls.atomic():
            conversation = _lock_conversation(conversation_id)
            if conversation is None:
                return ServiceResult.failure(
                    "Conversation not found",
                    error_code="CONVERSATION_NOT_FOUND",
                )
            if not conversation.is_group:
                return ServiceResult.failure(
                    "Only group conversations can be left",
                    error_code="NOT_GROUP",
                )

            participant = conversation.get_active_participant_for_user(user)
            if participant is None:
                return ServiceResult.failure(
                    "You are not a participant in this conversation",
                    error_code="NOT_PARTICIPANT",
                )

            failure = cls._check_minimum_size(conversation)
            if failure is not None:
                return failure

            cls._close_participation(participant)
            update_fields = ["participant_count", "updated_at"]
            if conversation.admin_id == user.id:
                conversation.admin = cls._handoff_admin(conversation, departing=user)
                update_fields.append("admin")

            conversation.participant_count = F("participant_count") - 1
            conversation.save(update_fields=update_fields)
            conversation.refresh_from_db()
            recipients = conversation.get_active_user_ids()

        cls.get_logger().info(f"User {user.id} left conversation {conversation.id}")

        if notifier is not None:
            payload = {
                "conversation_id": conversation.id,
                "user_id": user.id,
                "removed_by": None,
                "admin_id": conversation.admin_id,
            }
            transaction.on_commit(
                lambda: notifier.push_member_removed(recipients, payload)
            )
        return ServiceResult.success(conversation)

    @staticmethod
    def _check_minimum_size(conversation: Conversation) -> ServiceResult | None:
        active_count = conversation.get_active_participants().count()
        if active_count - 1 < GROUP_CONFIG.MIN_PARTICIPANTS:
            return ServiceResult.failure(
                f"A group must keep at least {GROUP_CONFIG.MIN_PARTICIPANTS} participants",
                error_code="GROUP_MINIMUM_SIZE",
            )
        return None

    @staticmethod
    def _close_participation(
        participant: Participant,
        removed_by: User | None = None,
    ) -> None:
        participant.left_at = timezone.now()
        participant.left_voluntarily = removed_by is None
        participant.removed_by = removed_by
        participant.save(
            update_fields=["left_at", "left_voluntarily", "removed_by", "updated_at"]
        )

    @classmethod
    def _handoff_admin(cls, conversation: Conversation, departing: User) -> User:
        """
        Pick the new admin after the admin departs.

        Always index 0 of the remaining participant order; seniority or
        activity play no part. Called within the locking transaction, after
        the departing participation is closed.
        """
        successor = (
            conversation.get_active_participants()
            .exclude(user=departing)
            .select_related("user")
            .first()
        )
        cls.get_logger().info(
            f"Admin of conversation {conversation.id} passed from user "
            f"{departing.id} to user {successor.user_id}"
        )
        return successor.user


class MessageService(BaseService):
    """
    Service for message operations.

    Methods:
        send_message: Append a message and refresh the last-message snapshot
        delete_message: Soft delete the caller's own message
        mark_as_read: Add read receipts for every unread message
        get_unread_count: Count of messages the user has not read
    """

    @classmethod
    def validate_content(
        cls,
        content: str | None,
        message_type: str = MessageType.TEXT,
        attachments: list[dict] | None = None,
    ) -> ServiceResult[str]:
        """
        Validate message input, returning the stripped content.

        Error codes:
            EMPTY_CONTENT, CONTENT_TOO_LONG, INVALID_MESSAGE_TYPE,
            TOO_MANY_ATTACHMENTS
        """
        content = content.strip() if content else ""
        if not content:
            return ServiceResult.failure(
                "Message content cannot be empty",
                error_code="EMPTY_CONTENT",
            )
        if len(content) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            return ServiceResult.failure(
                f"Message cannot exceed {MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
                error_code="CONTENT_TOO_LONG",
            )
        if message_type not in MessageType.values:
            return ServiceResult.failure(
                f"Unknown message type '{message_type}'",
                error_code="INVALID_MESSAGE_TYPE",
            )
        if attachments and len(attachments) > MESSAGE_CONFIG.MAX_ATTACHMENTS_PER_MESSAGE:
            return ServiceResult.failure(
                "Too many attachments",
                error_code="TOO_MANY_ATTACHMENTS",
            )
        return ServiceResult.success(content)

    @classmethod
    def send_message(
        cls,
        conversation_id: int,
        sender: User,
        content: str,
        message_type: str = MessageType.TEXT,
        attachments: list[dict] | None = None,
        notifier: ChannelLayerNotifier | None = None,
    ) -> ServiceResult[Message]:
        """
        Send a message to a conversation.

        Appends the message, then sets the conversation's last-message
        snapshot to it and bumps updated_at. Once committed, the message is
        pushed to every other active participant (best effort).

        Args:
            conversation_id: Target conversation
            sender: User sending the message (must be an active participant)
            content: Message text, 1..1000 characters after stripping
            message_type: One of MessageType
            attachments: Optional attachment metadata
            notifier: Realtime fan-out; None skips the push

        Error codes:
            EMPTY_CONTENT, CONTENT_TOO_LONG, INVALID_MESSAGE_TYPE,
            TOO_MANY_ATTACHMENTS, CONVERSATION_NOT_FOUND, NOT_PARTICIPANT,
            CONVERSATION_INACTIVE
        """
        with cls.atomic():
            conversation = _lock_conversation(conversation_id)
            if conversation is None:
                return ServiceResult.failure(
                    "Conversation not found",
                    error_code="CONVERSATION_NOT_FOUND",
                )
            if not conversation.is_participant(sender):
                return ServiceResult.failure(
                    "You are not a participant in this conversation",
                    error_code="NOT_PARTICIPANT",
                )
            if not conversation.is_active:
                return ServiceResult.failure(
                    "This conversation is no longer active",
                    error_code="CONVERSATION_INACTIVE",
                )

            validation = cls.validate_content(content, message_type, attachments)
            if not validation.success:
                return validation
            content = validation.data

            message = Message.objects.create(
                conversation=conversation,
                sender=sender,
                message_type=message_type,
                content=content,
                attachments=attachments or [],
            )
            cls._set_last_message(conversation, message)
            conversation.save(
                update_fields=[
                    "last_message_content",
                    "last_message_sender",
                    "last_message_at",
                    "updated_at",
                ]
            )
            recipients = [
                user_id
                for user_id in conversation.get_active_user_ids()
                if user_id != sender.id
            ]

        cls.get_logger().debug(
            f"User {sender.id} sent message {message.id} "
            f"to conversation {conversation.id}"
        )

        if notifier is not None:
            transaction.on_commit(
                lambda: notifier.push_new_message(message, recipients)
            )
        return ServiceResult.success(message)

    @classmethod
    def delete_message(
        cls,
        conversation_id: int,
        message_id: int,
        user: User,
        notifier: ChannelLayerNotifier | None = None,
    ) -> ServiceResult[None]:
        """
        Soft delete a message. Only its sender may delete it.

        A deleted message is hidden everywhere, so deleting it again fails
        with MESSAGE_NOT_FOUND. The last-message snapshot falls back to the
        newest remaining visible message.

        Error codes:
            CONVERSATION_NOT_FOUND
            MESSAGE_NOT_FOUND: No visible message with this id in the conversation
            NOT_SENDER: Only the sender can delete
        """
        with cls.atomic():
            conversation = _lock_conversation(conversation_id)
            if conversation is None:
                return ServiceResult.failure(
                    "Conversation not found",
                    error_code="CONVERSATION_NOT_FOUND",
                )

            message = Message.objects.filter(
                pk=message_id, conversation=conversation
            ).first()
            if message is None:
                return ServiceResult.failure(
                    "Message not found",
                    error_code="MESSAGE_NOT_FOUND",
                )
            if message.sender_id != user.id:
                return ServiceResult.failure(
                    "You can only delete your own messages",
                    error_code="NOT_SENDER",
                )

            message.soft_delete()

            latest = (
                Message.objects.filter(conversation=conversation)
                .order_by("-created_at", "-id")
                .first()
            )
            cls._set_last_message(conversation, latest)
            # Deletion is not activity, updated_at stays put
            conversation.save(
                update_fields=[
                    "last_message_content",
                    "last_message_sender",
                    "last_message_at",
                ]
            )
            recipients = [
                user_id
                for user_id in conversation.get_active_user_ids()
                if user_id != user.id
            ]

        cls.get_logger().info(
            f"User {user.id} deleted message {message_id} "
            f"in conversation {conversation.id}"
        )

        if notifier is not None:
            payload = {"conversation_id": conversation.id, "message_id": message_id}
            transaction.on_commit(
                lambda: notifier.push_message_deleted(recipients, payload)
            )
        return ServiceResult.success(None)

    @classmethod
    def mark_as_read(
        cls,
        conversation_id: int,
        user: User,
    ) -> ServiceResult[int]:
        """
        Mark every unread message in a conversation as read by user.

        Adds a receipt for each visible message not sent by the user and not
        already read by them. Idempotent: a second call adds nothing.

        Returns:
            ServiceResult with the number of newly read messages

        Error codes:
            CONVERSATION_NOT_FOUND, NOT_PARTICIPANT
        """
        result = ConversationService.get_for_user(user, conversation_id)
        if not result.success:
            return result
        conversation = result.data

        unread_ids = list(
            Message.objects.filter(conversation=conversation)
            .exclude(sender=user)
            .exclude(read_receipts__user=user)
            .values_list("id", flat=True)
        )
        now = timezone.now()
        MessageReadReceipt.objects.bulk_create(
            [
                MessageReadReceipt(message_id=message_id, user=user, read_at=now)
                for message_id in unread_ids
            ],
            ignore_conflicts=True,
        )

        cls.get_logger().debug(
            f"User {user.id} read {len(unread_ids)} messages "
            f"in conversation {conversation.id}"
        )
        return ServiceResult.success(len(unread_ids))

    @classmethod
    def get_unread_count(cls, conversation: Conversation, user: User) -> int:
        return (
            Message.objects.filter(conversation=conversation)
            .exclude(sender=user)
            .exclude(read_receipts__user=user)
            .count()
        )

    @staticmethod
    def _set_last_message(conversation: Conversation, message: Message | None) -> None:
        if message is None:
            conversation.last_message_content = ""
            conversation.last_message_sender = None
            conversation.last_message_at = None
            return
        conversation.last_message_content = message.content[
            : MESSAGE_CONFIG.LAST_MESSAGE_PREVIEW_LENGTH
        ]
        conversation.last_message_sender = message.sender
        conversation.last_message_at = message.created_at


class PresenceService(BaseService):
    """
    Durable presence on the user record.

    The realtime gateway is the only caller: it writes online on connect,
    the client's chosen status on set_online_status, and offline on
    disconnect. The stale sweep catches sessions whose process died before
    the disconnect hook ran.

    Methods:
        set_status: Persist online_status and last_seen
        touch: Refresh last_seen (heartbeat)
        sweep_stale: Mark users offline whose last_seen is too old
    """

    @classmethod
    def set_status(cls, user_id: int, status: str) -> ServiceResult[dict]:
        """
        Persist a user's presence status.

        Returns:
            ServiceResult with the user_status_change payload
            {"user_id", "status", "last_seen"}

        Error codes:
            INVALID_STATUS: status is not online, away or offline
            USER_NOT_FOUND
        """
        User = get_user_model()
        if status not in User.OnlineStatus.values:
            return ServiceResult.failure(
                f"Unknown status '{status}'",
                error_code="INVALID_STATUS",
            )

        now = timezone.now()
        updated = User.objects.filter(pk=user_id).update(
            online_status=status,
            last_seen=now,
        )
        if not updated:
            return ServiceResult.failure(
                "User not found",
                error_code="USER_NOT_FOUND",
            )

        cls.get_logger().debug(f"User {user_id} is now {status}")
        return ServiceResult.success(
            {"user_id": user_id, "status": status, "last_seen": now.isoformat()}
        )

    @classmethod
    def touch(cls, user_id: int) -> datetime:
        """Refresh last_seen without changing the status."""
        now = timezone.now()
        get_user_model().objects.filter(pk=user_id).update(last_seen=now)
        return now

    @classmethod
    def sweep_stale(cls, stale_after_seconds: int) -> list[int]:
        """
        Mark users offline whose last_seen is older than the threshold.

        Returns:
            Ids of the users that were swept
        """
        User = get_user_model()
        cutoff = timezone.now() - timedelta(seconds=stale_after_seconds)
        stale = User.objects.exclude(online_status=User.OnlineStatus.OFFLINE).filter(
            last_seen__lt=cutoff
        )
        user_ids = list(stale.values_list("id", flat=True))
        if user_ids:
            User.objects.filter(pk__in=user_ids).update(
                online_status=User.OnlineStatus.OFFLINE
            )
            cls.get_logger().info(f"Marked {len(user_ids)} stale users offline")
        return user_ids
