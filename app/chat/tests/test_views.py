"""
Tests for the messaging HTTP API.

This module tests every ConversationViewSet endpoint:
- list / retrieve / create direct / create group
- send and delete messages, mark read
- group metadata, leave, add and remove members

Testing Philosophy:
    Tests focus on observable HTTP behavior:
    - Response status codes mapped from service error codes
    - Response body structure
    - Database state changes
"""

import pytest
from rest_framework import status

from authentication.tests.factories import UserFactory
from chat.models import Conversation, Message
from chat.services import MessageService
from chat.tests.factories import GroupConversationFactory


# =============================================================================
# URL Helpers
# =============================================================================


CONVERSATIONS_URL = "/api/v1/conversations/"
GROUP_CREATE_URL = f"{CONVERSATIONS_URL}group/"


def detail_url(conversation_id):
    return f"{CONVERSATIONS_URL}{conversation_id}/"


def messages_url(conversation_id):
    return f"{detail_url(conversation_id)}messages/"


def message_url(conversation_id, message_id):
    return f"{messages_url(conversation_id)}{message_id}/"


def read_url(conversation_id):
    return f"{detail_url(conversation_id)}read/"


def group_url(conversation_id):
    return f"{detail_url(conversation_id)}group/"


def leave_url(conversation_id):
    return f"{detail_url(conversation_id)}leave/"


def members_url(conversation_id):
    return f"{detail_url(conversation_id)}members/"


def member_url(conversation_id, user_id):
    return f"{members_url(conversation_id)}{user_id}/"


# =============================================================================
# Authentication
# =============================================================================


class TestAuthenticationRequired:
    @pytest.mark.parametrize(
        "method, url",
        [
            ("get", CONVERSATIONS_URL),
            ("post", CONVERSATIONS_URL),
            ("post", GROUP_CREATE_URL),
            ("get", detail_url(1)),
            ("post", messages_url(1)),
            ("put", read_url(1)),
        ],
    )
    def test_requires_bearer_token(self, db, api_client, method, url):
        response = getattr(api_client, method)(url, {}, format="json")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


# =============================================================================
# List and Retrieve
# =============================================================================


class TestListConversations:
    def test_lists_callers_conversations_with_previews(
        self, alice, bob, direct, group, alice_client
    ):
        MessageService.send_message(direct.id, bob, "hey alice")

        response = alice_client.get(CONVERSATIONS_URL)

        assert response.status_code == status.HTTP_200_OK
        assert [item["id"] for item in response.data] == [direct.id, group.id]
        first = response.data[0]
        assert first["last_message"]["content"] == "hey alice"
        assert first["last_message"]["sender_id"] == bob.id
        assert first["unread_count"] == 1
        assert [p["id"] for p in first["participants"]] == [alice.id, bob.id]
        assert response.data[1]["last_message"] is None

    def test_excludes_other_users_conversations(self, direct, outsider_client):
        response = outsider_client.get(CONVERSATIONS_URL)

        assert response.data == []


class TestRetrieveConversation:
    def test_returns_detail_with_visible_messages(self, alice, bob, direct, bob_client):
        kept = MessageService.send_message(direct.id, alice, "kept").data
        gone = MessageService.send_message(direct.id, alice, "gone").data
        MessageService.delete_message(direct.id, gone.id, alice)
        MessageService.mark_as_read(direct.id, bob)

        response = bob_client.get(detail_url(direct.id))

        assert response.status_code == status.HTTP_200_OK
        [message] = response.data["messages"]
        assert message["id"] == kept.id
        assert message["sender"]["id"] == alice.id
        assert message["sender"]["full_name"] == "Alice Anders"
        assert [r["user_id"] for r in message["read_by"]] == [bob.id]

    def test_non_participant_is_forbidden(self, direct, outsider_client):
        response = outsider_client.get(detail_url(direct.id))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "NOT_PARTICIPANT"

    def test_unknown_conversation_is_not_found(self, alice_client):
        response = alice_client.get(detail_url(999999))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "CONVERSATION_NOT_FOUND"


# =============================================================================
# Create
# =============================================================================


class TestCreateDirectConversation:
    def test_creates_then_returns_existing(self, alice, bob, alice_client, bob_client):
        created = alice_client.post(CONVERSATIONS_URL, {"user_id": bob.id}, format="json")
        existing = bob_client.post(
            CONVERSATIONS_URL, {"user_id": alice.id}, format="json"
        )

        assert created.status_code == status.HTTP_201_CREATED
        assert existing.status_code == status.HTTP_200_OK
        assert created.data["id"] == existing.data["id"]
        assert created.data["messages"] == []
        assert created.data["conversation_type"] == "direct"

    def test_self_conversation_is_bad_request(self, alice, alice_client):
        response = alice_client.post(
            CONVERSATIONS_URL, {"user_id": alice.id}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "SAME_USER"

    def test_unknown_user_is_not_found(self, alice_client):
        response = alice_client.post(
            CONVERSATIONS_URL, {"user_id": 999999}, format="json"
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_missing_user_id_is_bad_request(self, alice_client):
        response = alice_client.post(CONVERSATIONS_URL, {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestCreateGroupConversation:
    def test_creates_group_with_creator_as_admin(self, alice, bob, carol, alice_client):
        response = alice_client.post(
            GROUP_CREATE_URL,
            {
                "name": "Mentors",
                "member_ids": [bob.id, carol.id],
                "description": "Career advice",
                "domain": "consulting",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["admin_id"] == alice.id
        assert response.data["domain"] == "consulting"
        assert [p["id"] for p in response.data["participants"]] == [
            bob.id,
            carol.id,
            alice.id,
        ]

    def test_empty_name_is_bad_request(self, bob, carol, alice_client):
        response = alice_client.post(
            GROUP_CREATE_URL,
            {"name": "", "member_ids": [bob.id, carol.id]},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "NAME_REQUIRED"
        assert not Conversation.objects.exists()

    def test_too_few_members_is_bad_request(self, bob, alice_client):
        response = alice_client.post(
            GROUP_CREATE_URL, {"name": "Duo", "member_ids": [bob.id]}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "NOT_ENOUGH_MEMBERS"


# =============================================================================
# Messages
# =============================================================================


class TestSendMessage:
    def test_returns_detail_with_new_message(self, alice, direct, alice_client):
        response = alice_client.post(
            messages_url(direct.id), {"content": "hello"}, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert [m["content"] for m in response.data["messages"]] == ["hello"]
        assert response.data["messages"][0]["sender"]["id"] == alice.id
        assert response.data["last_message"]["content"] == "hello"

    def test_empty_content_is_bad_request(self, direct, alice_client):
        response = alice_client.post(
            messages_url(direct.id), {"content": "   "}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "EMPTY_CONTENT"

    def test_too_long_content_is_bad_request(self, direct, alice_client):
        response = alice_client.post(
            messages_url(direct.id), {"content": "x" * 1001}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "CONTENT_TOO_LONG"

    def test_non_participant_is_forbidden(self, direct, outsider_client):
        response = outsider_client.post(
            messages_url(direct.id), {"content": "hi"}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert not Message.objects.exists()


class TestDeleteMessage:
    def test_sender_deletes_then_second_delete_is_not_found(
        self, alice, direct, alice_client
    ):
        message = MessageService.send_message(direct.id, alice, "oops").data

        first = alice_client.delete(message_url(direct.id, message.id))
        second = alice_client.delete(message_url(direct.id, message.id))

        assert first.status_code == status.HTTP_204_NO_CONTENT
        assert second.status_code == status.HTTP_404_NOT_FOUND
        assert second.data["error_code"] == "MESSAGE_NOT_FOUND"

    def test_other_participant_is_forbidden(self, alice, direct, bob_client):
        message = MessageService.send_message(direct.id, alice, "mine").data

        response = bob_client.delete(message_url(direct.id, message.id))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "NOT_SENDER"


class TestMarkRead:
    def test_reports_newly_read_count(self, alice, direct, bob_client):
        MessageService.send_message(direct.id, alice, "one")
        MessageService.send_message(direct.id, alice, "two")

        first = bob_client.put(read_url(direct.id))
        second = bob_client.put(read_url(direct.id))

        assert first.status_code == status.HTTP_200_OK
        assert first.data == {"marked_read": 2}
        assert second.data == {"marked_read": 0}


# =============================================================================
# Group Management
# =============================================================================


class TestUpdateGroup:
    def test_admin_updates_metadata(self, group, alice_client):
        response = alice_client.put(
            group_url(group.id),
            {"name": "Class of '20", "description": "Reunion planning"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["name"] == "Class of '20"
        assert response.data["description"] == "Reunion planning"

    def test_non_admin_is_forbidden(self, group, bob_client):
        response = bob_client.put(group_url(group.id), {"name": "Mine"}, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "NOT_ADMIN"
        group.refresh_from_db()
        assert group.name == "Class of 2020"

    def test_empty_name_is_bad_request(self, group, alice_client):
        response = alice_client.put(group_url(group.id), {"name": ""}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "NAME_REQUIRED"


class TestLeaveGroup:
    def test_admin_leaves_and_hands_off(self, alice, bob, carol, dave, alice_client):
        group = GroupConversationFactory(members=[bob, carol, dave], admin=alice)

        response = alice_client.delete(leave_url(group.id))

        assert response.status_code == status.HTTP_204_NO_CONTENT
        group.refresh_from_db()
        assert group.admin_id == bob.id
        assert not group.is_participant(alice)

    def test_leaving_direct_conversation_is_bad_request(self, direct, alice_client):
        response = alice_client.delete(leave_url(direct.id))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "NOT_GROUP"

    def test_leaving_below_minimum_is_bad_request(self, group, bob_client, carol_client):
        bob_client.delete(leave_url(group.id))

        response = carol_client.delete(leave_url(group.id))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "GROUP_MINIMUM_SIZE"


class TestMembers:
    def test_admin_adds_member(self, dave, group, alice_client):
        response = alice_client.post(
            members_url(group.id), {"user_id": dave.id}, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["participants"][-1]["id"] == dave.id

    def test_adding_existing_participant_conflicts(self, bob, group, alice_client):
        response = alice_client.post(
            members_url(group.id), {"user_id": bob.id}, format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "ALREADY_PARTICIPANT"

    def test_non_admin_cannot_add(self, dave, group, bob_client):
        response = bob_client.post(
            members_url(group.id), {"user_id": dave.id}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_removes_member(self, alice, bob, carol, dave, alice_client):
        group = GroupConversationFactory(members=[bob, carol, dave], admin=alice)

        response = alice_client.delete(member_url(group.id, carol.id))

        assert response.status_code == status.HTTP_200_OK
        assert [p["id"] for p in response.data["participants"]] == [
            bob.id,
            dave.id,
            alice.id,
        ]

    def test_removing_absent_user_conflicts(self, group, alice_client):
        stranger = UserFactory()

        response = alice_client.delete(member_url(group.id, stranger.id))

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "NOT_MEMBER"


# =============================================================================
# Health
# =============================================================================


class TestHealthCheck:
    def test_is_public_and_healthy(self, db, api_client):
        response = api_client.get("/api/v1/health/")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["database"] == "connected"
