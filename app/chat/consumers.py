"""
WebSocket consumer for the realtime gateway.

One RealtimeConsumer instance serves one socket of one authenticated user.
The socket is a best-effort overlay: it relays ephemeral events and receives
pushes, while every durable write goes through the service layer.

Lifecycle:
    Connecting: JWTAuthMiddleware resolved scope["user"]; anonymous sockets
        are closed with 4001 before joining any group and nothing is broadcast.
    Connected: joins user_<id>, college_<slug> (when the user has a college)
        and presence; the user is marked online and the change broadcast.
    Disconnected: the user is marked offline with last_seen=now and the change
        broadcast. Runs for every close, clean or not.

Message Types (from client):
    - send_message: Relay an already persisted message to the other participants
    - typing_start / typing_stop: Relay typing state to the other participants
    - set_online_status: Persist presence and broadcast it
    - heartbeat: Refresh last_seen (open sockets also refresh it periodically)

Message Types (to client), shaped {"type": <event>, "data": {...}}:
    - new_message, message_deleted, user_typing, user_stop_typing,
      user_status_change, new_notification, group_updated, member_added,
      member_removed, heartbeat_ack, error
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.db import DatabaseError
from django.utils import timezone

from core.exceptions import (
    BaseApplicationError,
    PermissionDeniedError,
    ValidationError,
    exception_for_error_code,
)

from chat.constants import PRESENCE_CONFIG, REALTIME_CONFIG, REALTIME_EVENTS
from chat.events import (
    HeartbeatEvent,
    SendMessageEvent,
    SetOnlineStatusEvent,
    TypingEvent,
    parse_client_event,
)
from chat.middleware import JWT_SUBPROTOCOL
from chat.models import Conversation
from chat.notifier import build_envelope, college_group, user_group
from chat.services import PresenceService

logger = logging.getLogger(__name__)


class RealtimeConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for presence, typing relays and pushed notifications.

    Attributes:
        user: Authenticated user bound to this socket (None until accepted)
        joined_groups: Channel-layer groups this socket belongs to
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = None
        self.joined_groups: list[str] = []
        self.keepalive: asyncio.Task | None = None

    async def connect(self):
        """
        Handle WebSocket connection.

        Rejects unauthenticated sockets before any group join. On success,
        joins the user, college and presence groups, accepts, and announces
        the user as online.
        """
        user = self.scope.get("user")
        if user is None or not user.is_authenticated:
            logger.warning("Rejected unauthenticated realtime connection")
            await self.close(code=REALTIME_CONFIG.CLOSE_CODE_UNAUTHENTICATED)
            return

        self.user = user
        self.joined_groups = [user_group(user.id)]
        college = college_group(user.college)
        if college:
            self.joined_groups.append(college)
        self.joined_groups.append(REALTIME_CONFIG.PRESENCE_GROUP)

        for group in self.joined_groups:
            await self.channel_layer.group_add(group, self.channel_name)

        subprotocols = self.scope.get("subprotocols") or []
        await self.accept(
            subprotocol=JWT_SUBPROTOCOL if JWT_SUBPROTOCOL in subprotocols else None
        )
        logger.info(f"User {user.id} connected to realtime gateway")

        result = await database_sync_to_async(PresenceService.set_status)(
            user.id, "online"
        )
        if result.success:
            await self._broadcast_presence(result.data)
        self.keepalive = asyncio.create_task(self._keep_presence_fresh())

    async def disconnect(self, close_code):
        """
        Handle WebSocket disconnection.

        Durably marks the user offline before anything else so the presence
        write happens even if the channel layer is unavailable.
        """
        if self.user is None:
            return

        if self.keepalive is not None:
            self.keepalive.cancel()
            with suppress(asyncio.CancelledError):
                await self.keepalive
            self.keepalive = None

        try:
            result = await database_sync_to_async(PresenceService.set_status)(
                self.user.id, "offline"
            )
            if result.success:
                await self._broadcast_presence(result.data)
        finally:
            for group in self.joined_groups:
                await self.channel_layer.group_discard(group, self.channel_name)
            self.joined_groups = []
            logger.info(
                f"User {self.user.id} disconnected from realtime gateway "
                f"(code {close_code})"
            )

    async def receive(self, text_data=None, bytes_data=None, **kwargs):
        """
        Decode a text frame and dispatch it to receive_json.

        Binary frames and text that is not JSON are answered with an error
        event; the connection stays open.
        """
        if text_data is None:
            await self._send_event(
                REALTIME_EVENTS.ERROR,
                ValidationError(
                    "Binary frames are not supported", error_code="INVALID_FRAME"
                ).to_dict(),
            )
            return
        try:
            content = await self.decode_json(text_data)
        except ValueError:
            logger.debug(f"Undecodable frame from user {self.user.id}")
            await self._send_event(
                REALTIME_EVENTS.ERROR,
                ValidationError(
                    "Frame is not valid JSON", error_code="INVALID_JSON"
                ).to_dict(),
            )
            return
        await self.receive_json(content, **kwargs)

    async def receive_json(self, content, **kwargs):
        """
        Handle an inbound client event.

        Failures are reported to this socket only as an error event; the
        connection stays open.
        """
        try:
            event = parse_client_event(content)
            if isinstance(event, SendMessageEvent):
                await self._handle_send_message(event)
            elif isinstance(event, TypingEvent):
                await self._handle_typing(event)
            elif isinstance(event, SetOnlineStatusEvent):
                await self._handle_set_online_status(event)
            elif isinstance(event, HeartbeatEvent):
                await self._handle_heartbeat()
        except BaseApplicationError as exc:
            logger.debug(f"Realtime event from user {self.user.id} refused: {exc}")
            await self._send_event(REALTIME_EVENTS.ERROR, exc.to_dict())
        except Exception:
            logger.exception(f"Realtime event from user {self.user.id} failed")
            await self._send_event(
                REALTIME_EVENTS.ERROR,
                {"error": "Internal server error", "error_code": "INTERNAL_ERROR"},
            )

    async def _handle_send_message(self, event: SendMessageEvent):
        """
        Relay a message to the other participants without persisting it.

        The client has already stored the message through the HTTP API.
        """
        recipients = await self._other_participants(event.conversation_id)
        payload = {
            "conversation_id": event.conversation_id,
            "message": {
                "id": event.message_id,
                "content": event.content,
                "message_type": event.message_type,
                "sender": self._sender_summary(),
                "created_at": timezone.now().isoformat(),
            },
        }
        await self._send_to_users(recipients, REALTIME_EVENTS.NEW_MESSAGE, payload)

    async def _handle_typing(self, event: TypingEvent):
        recipients = await self._other_participants(event.conversation_id)
        if event.is_typing:
            name, payload = REALTIME_EVENTS.USER_TYPING, {
                "conversation_id": event.conversation_id,
                "user_id": self.user.id,
                "user_name": self.user.get_full_name(),
            }
        else:
            name, payload = REALTIME_EVENTS.USER_STOP_TYPING, {
                "conversation_id": event.conversation_id,
                "user_id": self.user.id,
            }
        await self._send_to_users(recipients, name, payload)

    async def _handle_set_online_status(self, event: SetOnlineStatusEvent):
        result = await database_sync_to_async(PresenceService.set_status)(
            self.user.id, event.status
        )
        if not result.success:
            raise exception_for_error_code(result.error, result.error_code)
        await self._broadcast_presence(result.data)

    async def _handle_heartbeat(self):
        last_seen = await database_sync_to_async(PresenceService.touch)(self.user.id)
        await self._send_event(
            REALTIME_EVENTS.HEARTBEAT_ACK, {"last_seen": last_seen.isoformat()}
        )

    async def _keep_presence_fresh(self):
        """
        Refresh last_seen while the socket is open.

        Keeps connected users out of the stale presence sweep even when the
        client never sends heartbeat events. Cancelled on disconnect.
        """
        while True:
            await asyncio.sleep(PRESENCE_CONFIG.KEEPALIVE_INTERVAL_SECONDS)
            try:
                await database_sync_to_async(PresenceService.touch)(self.user.id)
            except DatabaseError:
                logger.warning(
                    f"Could not refresh last_seen for user {self.user.id}",
                    exc_info=True,
                )

    async def realtime_event(self, event):
        """
        Handle realtime.event messages from the channel layer.

        Forwards the event to the client unless it originated on this socket.
        """
        if event.get("exclude_channel") == self.channel_name:
            return
        await self._send_event(event["event"], event["data"])

    async def _send_event(self, name: str, data: dict):
        await self.send_json({"type": name, "data": data})

    async def _send_to_users(self, user_ids: list[int], name: str, payload: dict):
        envelope = build_envelope(name, payload)
        for user_id in user_ids:
            await self.channel_layer.group_send(user_group(user_id), envelope)

    async def _broadcast_presence(self, payload: dict):
        await self.channel_layer.group_send(
            REALTIME_CONFIG.PRESENCE_GROUP,
            build_envelope(
                REALTIME_EVENTS.USER_STATUS_CHANGE,
                payload,
                exclude_channel=self.channel_name,
            ),
        )

    def _sender_summary(self) -> dict:
        return {
            "id": self.user.id,
            "full_name": self.user.get_full_name(),
            "profile_image_url": self.user.profile_image_url,
        }

    @database_sync_to_async
    def _other_participants(self, conversation_id: int) -> list[int]:
        """
        Active participants of a conversation other than this user.

        Raises:
            PermissionDeniedError: This user is not an active participant
        """
        conversation = Conversation.objects.filter(pk=conversation_id).first()
        if conversation is None or not conversation.is_participant(self.user):
            raise PermissionDeniedError(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
                details={"conversation_id": conversation_id},
            )
        return [
            user_id
            for user_id in conversation.get_active_user_ids()
            if user_id != self.user.id
        ]
