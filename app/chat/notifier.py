"""
Realtime notification fan-out over the Channels layer.

ChannelLayerNotifier is the capability other subsystems use to push events
to connected sockets. It is constructed explicitly around a channel layer
and handed to whoever needs it; nothing here is a process-wide hook.

Delivery is best-effort:
    - A user with no connected socket has an empty group, so the event
      is dropped silently (no queue, no retry)
    - Channel-layer failures are logged and never propagate to the caller,
      the database write that triggered the push has already committed

Group naming:
    user_<id>         every socket of one user
    college_<slug>    every socket of users from one college
    presence          every connected socket

Usage:
    from chat.notifier import get_notifier

    notifier = get_notifier()
    notifier.push_to_user(user.id, {"kind": "referral_request", "id": 7})
    notifier.broadcast_to_college("State University", "event_posted", {...})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils.text import slugify

from chat.constants import REALTIME_CONFIG, REALTIME_EVENTS
from chat.serializers import MessageSerializer

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any

    from chat.models import Message

logger = logging.getLogger(__name__)


def user_group(user_id) -> str:
    return f"{REALTIME_CONFIG.USER_GROUP_PREFIX}{user_id}"


def college_group(college: str) -> str | None:
    """Group name for a college, None when the name has no usable characters."""
    slug = slugify(college or "")[:80]
    if not slug:
        return None
    return f"{REALTIME_CONFIG.COLLEGE_GROUP_PREFIX}{slug}"


def build_envelope(event: str, data: dict[str, Any], **extra: Any) -> dict[str, Any]:
    """
    Channel-layer message dispatched to RealtimeConsumer.realtime_event.

    Extra keys (for example exclude_channel) steer delivery and are never
    forwarded to the client.
    """
    return {"type": REALTIME_CONFIG.DISPATCH_TYPE, "event": event, "data": data, **extra}


class ChannelLayerNotifier:
    """
    Pushes events to connected sockets through a channel layer.

    Methods are synchronous so services and views can call them from
    request handlers; async code should use the layer directly with
    build_envelope().
    """

    def __init__(self, channel_layer):
        self.channel_layer = channel_layer

    def _send(self, group: str, envelope: dict[str, Any]) -> bool:
        if self.channel_layer is None:
            logger.warning(f"No channel layer configured, dropped {envelope['event']}")
            return False
        try:
            async_to_sync(self.channel_layer.group_send)(group, envelope)
        except Exception:
            logger.warning(
                f"Failed to deliver {envelope['event']} to {group}", exc_info=True
            )
            return False
        return True

    def push_to_user(self, user_id, payload: dict[str, Any]) -> bool:
        """Deliver a new_notification event to every socket of one user."""
        return self._send(
            user_group(user_id),
            build_envelope(REALTIME_EVENTS.NEW_NOTIFICATION, payload),
        )

    def push_to_users(
        self,
        user_ids: Iterable[int],
        event: str,
        payload: dict[str, Any],
    ) -> int:
        """Deliver one event to several users. Returns how many sends succeeded."""
        envelope = build_envelope(event, payload)
        return sum(self._send(user_group(user_id), envelope) for user_id in user_ids)

    def broadcast_to_college(
        self,
        college: str,
        event: str,
        payload: dict[str, Any],
    ) -> bool:
        """Deliver an event to every connected user of a college."""
        group = college_group(college)
        if group is None:
            logger.debug(f"Skipped {event} broadcast for empty college name")
            return False
        return self._send(group, build_envelope(event, payload))

    def broadcast_presence(self, payload: dict[str, Any]) -> bool:
        """Deliver a user_status_change to every connected socket."""
        return self._send(
            REALTIME_CONFIG.PRESENCE_GROUP,
            build_envelope(REALTIME_EVENTS.USER_STATUS_CHANGE, payload),
        )

    def push_new_message(self, message: Message, recipient_ids: Iterable[int]) -> int:
        payload = {
            "conversation_id": message.conversation_id,
            "message": dict(MessageSerializer(message).data),
        }
        return self.push_to_users(recipient_ids, REALTIME_EVENTS.NEW_MESSAGE, payload)

    def push_message_deleted(
        self, recipient_ids: Iterable[int], payload: dict[str, Any]
    ) -> int:
        return self.push_to_users(
            recipient_ids, REALTIME_EVENTS.MESSAGE_DELETED, payload
        )

    def push_group_updated(
        self, recipient_ids: Iterable[int], payload: dict[str, Any]
    ) -> int:
        return self.push_to_users(recipient_ids, REALTIME_EVENTS.GROUP_UPDATED, payload)

    def push_member_added(
        self, recipient_ids: Iterable[int], payload: dict[str, Any]
    ) -> int:
        return self.push_to_users(recipient_ids, REALTIME_EVENTS.MEMBER_ADDED, payload)

    def push_member_removed(
        self, recipient_ids: Iterable[int], payload: dict[str, Any]
    ) -> int:
        return self.push_to_users(
            recipient_ids, REALTIME_EVENTS.MEMBER_REMOVED, payload
        )


def get_notifier() -> ChannelLayerNotifier:
    """Build a notifier around the configured default channel layer."""
    return ChannelLayerNotifier(get_channel_layer())
