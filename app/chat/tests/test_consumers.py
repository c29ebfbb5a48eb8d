"""
Tests for the realtime WebSocket gateway.

Drives RealtimeConsumer through JWTAuthMiddleware with
channels.testing.WebsocketCommunicator over the in-memory channel layer.

Covers:
- Handshake authentication (query token, subprotocol, expired, missing)
- Group joins and presence broadcasts on connect/disconnect
- Typing and send_message relays to other participants
- set_online_status, heartbeat and error events
- Events pushed from the service layer through the notifier
"""

import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio
from asgiref.sync import sync_to_async
from channels.db import database_sync_to_async
from channels.layers import get_channel_layer
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.utils import timezone
from rest_framework_simplejwt.tokens import AccessToken

from authentication.models import User
from chat.constants import PRESENCE_CONFIG
from chat.middleware import JWTAuthMiddleware
from chat.notifier import get_notifier
from chat.routing import websocket_urlpatterns
from chat.tasks import mark_stale_users_offline

pytestmark = [pytest.mark.asyncio, pytest.mark.django_db(transaction=True)]

application = JWTAuthMiddleware(URLRouter(websocket_urlpatterns))


def token_for(user) -> str:
    return str(AccessToken.for_user(user))


def expired_token_for(user) -> str:
    token = AccessToken.for_user(user)
    token.set_exp(from_time=timezone.now() - timedelta(hours=2))
    return str(token)


async def connect(user=None, token=None, **kwargs):
    if token is None and user is not None:
        token = token_for(user)
    path = f"/ws/realtime/?token={token}" if token else "/ws/realtime/"
    communicator = WebsocketCommunicator(application, path, **kwargs)
    connected, subprotocol_or_code = await communicator.connect()
    return communicator, connected, subprotocol_or_code


async def receive_event(communicator, event_type, timeout=1):
    """Receive frames until one of the given type arrives."""
    while True:
        frame = await communicator.receive_json_from(timeout=timeout)
        if frame["type"] == event_type:
            return frame["data"]


@pytest_asyncio.fixture
async def channel_layer():
    layer = get_channel_layer()
    yield layer
    await layer.flush()


@database_sync_to_async
def fetch_user(user_id):
    return User.objects.get(pk=user_id)


# =============================================================================
# Handshake
# =============================================================================


class TestHandshake:
    async def test_valid_token_connects_and_marks_online(self, alice, channel_layer):
        communicator, connected, _ = await connect(alice)

        assert connected is True
        assert (await fetch_user(alice.id)).online_status == "online"
        await communicator.disconnect()

    async def test_subprotocol_token_connects(self, alice, channel_layer):
        communicator = WebsocketCommunicator(
            application, "/ws/realtime/", subprotocols=["jwt", token_for(alice)]
        )

        connected, subprotocol = await communicator.connect()

        assert connected is True
        assert subprotocol == "jwt"
        await communicator.disconnect()

    async def test_missing_token_is_rejected(self, db, channel_layer):
        communicator, connected, code = await connect()

        assert connected is False
        assert code == 4001

    async def test_garbage_token_is_rejected(self, db, channel_layer):
        communicator, connected, code = await connect(token="not-a-jwt")

        assert connected is False
        assert code == 4001

    async def test_expired_token_is_rejected_before_joining_or_broadcasting(
        self, alice, bob, channel_layer
    ):
        listener = await channel_layer.new_channel()
        await channel_layer.group_add("presence", listener)

        _, connected, code = await connect(token=expired_token_for(alice))

        assert connected is False
        assert code == 4001
        assert f"user_{alice.id}" not in channel_layer.groups
        assert set(channel_layer.groups["presence"]) == {listener}
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(channel_layer.receive(listener), timeout=0.2)
        assert (await fetch_user(alice.id)).online_status == "offline"

    async def test_inactive_user_is_rejected(self, alice, channel_layer):
        token = token_for(alice)
        await database_sync_to_async(
            User.objects.filter(pk=alice.id).update
        )(is_active=False)

        _, connected, code = await connect(token=token)

        assert connected is False
        assert code == 4001


# =============================================================================
# Presence
# =============================================================================


class TestPresence:
    async def test_connect_joins_user_college_and_presence_groups(
        self, alice, channel_layer
    ):
        communicator, _, _ = await connect(alice)

        assert f"user_{alice.id}" in channel_layer.groups
        assert "college_state-university" in channel_layer.groups
        assert "presence" in channel_layer.groups
        await communicator.disconnect()

    async def test_connect_is_broadcast_to_others_not_self(
        self, alice, bob, channel_layer
    ):
        alice_socket, _, _ = await connect(alice)
        bob_socket, _, _ = await connect(bob)

        change = await receive_event(alice_socket, "user_status_change")

        assert change["user_id"] == bob.id
        assert change["status"] == "online"
        assert await bob_socket.receive_nothing(timeout=0.2)
        await alice_socket.disconnect()
        await bob_socket.disconnect()

    async def test_set_online_status_persists_and_broadcasts(
        self, alice, bob, channel_layer
    ):
        alice_socket, _, _ = await connect(alice)
        bob_socket, _, _ = await connect(bob)
        await receive_event(alice_socket, "user_status_change")

        await bob_socket.send_json_to(
            {"type": "set_online_status", "status": "away"}
        )
        change = await receive_event(alice_socket, "user_status_change")

        assert change["user_id"] == bob.id
        assert change["status"] == "away"
        assert (await fetch_user(bob.id)).online_status == "away"
        await alice_socket.disconnect()
        await bob_socket.disconnect()

    async def test_disconnect_marks_offline_and_broadcasts(
        self, alice, bob, channel_layer
    ):
        alice_socket, _, _ = await connect(alice)
        bob_socket, _, _ = await connect(bob)
        await receive_event(alice_socket, "user_status_change")

        await bob_socket.disconnect()
        change = await receive_event(alice_socket, "user_status_change")

        assert change == {
            "user_id": bob.id,
            "status": "offline",
            "last_seen": change["last_seen"],
        }
        bob_now = await fetch_user(bob.id)
        assert bob_now.online_status == "offline"
        assert bob_now.last_seen is not None
        assert f"user_{bob.id}" not in channel_layer.groups
        await alice_socket.disconnect()

    async def test_heartbeat_is_acknowledged(self, alice, channel_layer):
        communicator, _, _ = await connect(alice)

        await communicator.send_json_to({"type": "heartbeat"})
        ack = await receive_event(communicator, "heartbeat_ack")

        assert "last_seen" in ack
        await communicator.disconnect()

    async def test_open_socket_keeps_user_out_of_stale_sweep(
        self, bob, channel_layer, monkeypatch
    ):
        monkeypatch.setattr(PRESENCE_CONFIG, "KEEPALIVE_INTERVAL_SECONDS", 0.05)
        communicator, _, _ = await connect(bob)
        await communicator.send_json_to({"type": "heartbeat"})
        await receive_event(communicator, "heartbeat_ack")

        await database_sync_to_async(
            User.objects.filter(pk=bob.id).update
        )(last_seen=timezone.now() - timedelta(seconds=400))
        await asyncio.sleep(0.3)
        swept = await database_sync_to_async(mark_stale_users_offline)(
            stale_after_seconds=300
        )

        assert swept == 0
        assert (await fetch_user(bob.id)).online_status == "online"
        await communicator.disconnect()


# =============================================================================
# Relays
# =============================================================================


class TestRelays:
    async def test_typing_is_relayed_to_other_participants(
        self, alice, bob, direct, channel_layer
    ):
        alice_socket, _, _ = await connect(alice)
        bob_socket, _, _ = await connect(bob)

        await alice_socket.send_json_to(
            {"type": "typing_start", "conversation_id": direct.id}
        )
        typing = await receive_event(bob_socket, "user_typing")
        await alice_socket.send_json_to(
            {"type": "typing_stop", "conversation_id": direct.id}
        )
        stopped = await receive_event(bob_socket, "user_stop_typing")

        assert typing == {
            "conversation_id": direct.id,
            "user_id": alice.id,
            "user_name": "Alice Anders",
        }
        assert stopped == {"conversation_id": direct.id, "user_id": alice.id}
        await alice_socket.disconnect()
        await bob_socket.disconnect()

    async def test_send_message_is_relayed_without_persisting(
        self, alice, bob, direct, channel_layer
    ):
        alice_socket, _, _ = await connect(alice)
        bob_socket, _, _ = await connect(bob)

        await alice_socket.send_json_to(
            {
                "type": "send_message",
                "conversation_id": direct.id,
                "content": "hi bob",
                "message_id": 42,
            }
        )
        relayed = await receive_event(bob_socket, "new_message")

        assert relayed["conversation_id"] == direct.id
        assert relayed["message"]["id"] == 42
        assert relayed["message"]["content"] == "hi bob"
        assert relayed["message"]["sender"]["id"] == alice.id
        assert await database_sync_to_async(direct.messages.count)() == 0
        await alice_socket.disconnect()
        await bob_socket.disconnect()

    async def test_non_participant_gets_error_and_stays_connected(
        self, outsider, direct, channel_layer
    ):
        communicator, _, _ = await connect(outsider)

        await communicator.send_json_to(
            {"type": "typing_start", "conversation_id": direct.id}
        )
        error = await receive_event(communicator, "error")
        await communicator.send_json_to({"type": "heartbeat"})

        assert error["error_code"] == "NOT_PARTICIPANT"
        assert await receive_event(communicator, "heartbeat_ack")
        await communicator.disconnect()


# =============================================================================
# Errors
# =============================================================================


class TestErrors:
    async def test_non_json_frame_keeps_socket_open(self, alice, channel_layer):
        communicator, _, _ = await connect(alice)

        await communicator.send_to(text_data="{not json")
        error = await receive_event(communicator, "error")
        await communicator.send_json_to({"type": "heartbeat"})
        await receive_event(communicator, "heartbeat_ack")

        assert error["error_code"] == "INVALID_JSON"
        await communicator.disconnect()
        assert (await fetch_user(alice.id)).online_status == "offline"

    async def test_binary_frame_is_refused(self, alice, channel_layer):
        communicator, _, _ = await connect(alice)

        await communicator.send_to(bytes_data=b"\x00\x01")
        error = await receive_event(communicator, "error")

        assert error["error_code"] == "INVALID_FRAME"
        await communicator.disconnect()

    async def test_unknown_event_type(self, alice, channel_layer):
        communicator, _, _ = await connect(alice)

        await communicator.send_json_to({"type": "launch_rockets"})
        error = await receive_event(communicator, "error")

        assert error["error_code"] == "UNKNOWN_EVENT"
        await communicator.disconnect()

    async def test_malformed_payload(self, alice, channel_layer):
        communicator, _, _ = await connect(alice)

        await communicator.send_json_to({"type": "typing_start"})
        error = await receive_event(communicator, "error")

        assert error["error_code"] == "INVALID_PAYLOAD"
        assert "conversation_id" in error["details"]
        await communicator.disconnect()

    async def test_invalid_status(self, alice, channel_layer):
        communicator, _, _ = await connect(alice)

        await communicator.send_json_to(
            {"type": "set_online_status", "status": "invisible"}
        )
        error = await receive_event(communicator, "error")

        assert error["error_code"] == "INVALID_PAYLOAD"
        await communicator.disconnect()


# =============================================================================
# Pushed events
# =============================================================================


class TestPushedEvents:
    async def test_push_to_user_reaches_every_socket_of_that_user(
        self, alice, channel_layer
    ):
        phone, _, _ = await connect(alice)
        laptop, _, _ = await connect(alice)

        await sync_to_async(get_notifier().push_to_user)(
            alice.id, {"kind": "referral_request", "id": 7}
        )

        for socket in (phone, laptop):
            pushed = await receive_event(socket, "new_notification")
            assert pushed == {"kind": "referral_request", "id": 7}
        await phone.disconnect()
        await laptop.disconnect()

    async def test_college_broadcast_reaches_only_that_college(
        self, alice, outsider, channel_layer
    ):
        alice_socket, _, _ = await connect(alice)
        outsider_socket, _, _ = await connect(outsider)
        await receive_event(alice_socket, "user_status_change")

        await sync_to_async(get_notifier().broadcast_to_college)(
            "State University", "event_posted", {"event_id": 3}
        )

        assert await receive_event(alice_socket, "event_posted") == {"event_id": 3}
        assert await outsider_socket.receive_nothing(timeout=0.2)
        await alice_socket.disconnect()
        await outsider_socket.disconnect()
