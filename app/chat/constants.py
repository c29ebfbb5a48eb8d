"""
Constants and configuration for the messaging core.

This module centralizes configuration values for:
- Message content limits
- Group conversation metadata limits
- Presence (heartbeat and stale sweep)
- Realtime event names and channel-layer group naming

Import example:
    from chat.constants import MESSAGE_CONFIG, GROUP_CONFIG
"""

from typing import Final

from django.conf import settings


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    MAX_CONTENT_LENGTH: Final[int] = 1000  # Characters
    MAX_ATTACHMENTS_PER_MESSAGE: Final[int] = 10

    # Preview stored on the conversation for list views
    LAST_MESSAGE_PREVIEW_LENGTH: Final[int] = 1000


# =============================================================================
# Group Configuration
# =============================================================================


class GROUP_CONFIG:
    """Configuration for group conversations."""

    MAX_NAME_LENGTH: Final[int] = 100
    MAX_DESCRIPTION_LENGTH: Final[int] = 500

    # Members required besides the creator when a group is created
    MIN_INITIAL_MEMBERS: Final[int] = 2

    # Fewest participants a group may be left with after a membership change
    MIN_PARTICIPANTS: Final[int] = 2


# =============================================================================
# Presence Configuration
# =============================================================================


class PRESENCE_CONFIG:
    """Configuration for presence tracking."""

    # Open sockets refresh last_seen this often; keep well under STALE_AFTER_SECONDS
    KEEPALIVE_INTERVAL_SECONDS: Final[float] = 60

    # Users whose last_seen is older than this are swept offline
    STALE_AFTER_SECONDS: Final[int] = getattr(
        settings, "PRESENCE_STALE_AFTER_SECONDS", 300
    )


# =============================================================================
# Realtime Configuration
# =============================================================================


class REALTIME_EVENTS:
    """Event names exchanged over the realtime socket."""

    # Inbound (client -> server)
    SEND_MESSAGE: Final[str] = "send_message"
    TYPING_START: Final[str] = "typing_start"
    TYPING_STOP: Final[str] = "typing_stop"
    SET_ONLINE_STATUS: Final[str] = "set_online_status"
    HEARTBEAT: Final[str] = "heartbeat"

    # Outbound (server -> client)
    NEW_MESSAGE: Final[str] = "new_message"
    MESSAGE_DELETED: Final[str] = "message_deleted"
    USER_TYPING: Final[str] = "user_typing"
    USER_STOP_TYPING: Final[str] = "user_stop_typing"
    USER_STATUS_CHANGE: Final[str] = "user_status_change"
    NEW_NOTIFICATION: Final[str] = "new_notification"
    GROUP_UPDATED: Final[str] = "group_updated"
    MEMBER_ADDED: Final[str] = "member_added"
    MEMBER_REMOVED: Final[str] = "member_removed"
    HEARTBEAT_ACK: Final[str] = "heartbeat_ack"
    ERROR: Final[str] = "error"


class REALTIME_CONFIG:
    """Channel-layer group naming and socket close codes."""

    USER_GROUP_PREFIX: Final[str] = "user_"
    COLLEGE_GROUP_PREFIX: Final[str] = "college_"
    PRESENCE_GROUP: Final[str] = "presence"

    # Channel-layer type dispatched to RealtimeConsumer.realtime_event
    DISPATCH_TYPE: Final[str] = "realtime.event"

    CLOSE_CODE_UNAUTHENTICATED: Final[int] = 4001
