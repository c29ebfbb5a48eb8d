"""
Typed client events for the realtime socket.

Every inbound frame is a JSON object {"type": <event>, ...fields}. The frame
is validated by the serializer registered for its type and turned into one
of a closed set of dataclasses before any handler runs. Unknown types and
malformed payloads raise core.exceptions.ValidationError, which the consumer
answers with an error event.

Usage:
    event = parse_client_event({"type": "typing_start", "conversation_id": 4})
    if isinstance(event, TypingEvent) and event.is_typing:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from rest_framework import serializers

from core.exceptions import ValidationError

from chat.constants import MESSAGE_CONFIG, REALTIME_EVENTS
from chat.models import MessageType

if TYPE_CHECKING:
    from typing import Any


@dataclass(frozen=True)
class SendMessageEvent:
    """Relay of a message the client already persisted over HTTP."""

    conversation_id: int
    content: str
    message_type: str = MessageType.TEXT
    message_id: int | None = None


@dataclass(frozen=True)
class TypingEvent:
    conversation_id: int
    is_typing: bool


@dataclass(frozen=True)
class SetOnlineStatusEvent:
    status: str


@dataclass(frozen=True)
class HeartbeatEvent:
    pass


ClientEvent = Union[SendMessageEvent, TypingEvent, SetOnlineStatusEvent, HeartbeatEvent]


class _SendMessageSerializer(serializers.Serializer):
    conversation_id = serializers.IntegerField(min_value=1)
    content = serializers.CharField(max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH)
    message_type = serializers.ChoiceField(
        choices=MessageType.choices, default=MessageType.TEXT
    )
    message_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)


class _ConversationRefSerializer(serializers.Serializer):
    conversation_id = serializers.IntegerField(min_value=1)


class _SetOnlineStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=["online", "away", "offline"])


class _EmptySerializer(serializers.Serializer):
    pass


def _build_typing(is_typing: bool):
    return lambda data: TypingEvent(data["conversation_id"], is_typing=is_typing)


_EVENT_PARSERS = {
    REALTIME_EVENTS.SEND_MESSAGE: (
        _SendMessageSerializer,
        lambda data: SendMessageEvent(**data),
    ),
    REALTIME_EVENTS.TYPING_START: (_ConversationRefSerializer, _build_typing(True)),
    REALTIME_EVENTS.TYPING_STOP: (_ConversationRefSerializer, _build_typing(False)),
    REALTIME_EVENTS.SET_ONLINE_STATUS: (
        _SetOnlineStatusSerializer,
        lambda data: SetOnlineStatusEvent(**data),
    ),
    REALTIME_EVENTS.HEARTBEAT: (_EmptySerializer, lambda data: HeartbeatEvent()),
}


def parse_client_event(payload: Any) -> ClientEvent:
    """
    Validate a raw socket frame and build its typed event.

    Raises:
        ValidationError: Frame is not an object, type is unknown, or fields
            are missing or malformed
    """
    if not isinstance(payload, dict):
        raise ValidationError("Event must be a JSON object", error_code="INVALID_EVENT")

    event_type = payload.get("type")
    parser = _EVENT_PARSERS.get(event_type) if isinstance(event_type, str) else None
    if parser is None:
        raise ValidationError(
            f"Unknown event type: {event_type}",
            error_code="UNKNOWN_EVENT",
            details={"type": event_type},
        )

    serializer_class, build = parser
    serializer = serializer_class(data=payload)
    if not serializer.is_valid():
        raise ValidationError(
            f"Invalid {event_type} payload",
            error_code="INVALID_PAYLOAD",
            details=serializer.errors,
        )
    return build(serializer.validated_data)
