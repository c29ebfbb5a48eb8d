"""
Test configuration and fixtures for chat tests.

This module provides:
- Users: alice, bob, carol, dave (all from the same college) and an outsider
- Conversations: a direct conversation and a group administered by alice
- API clients authenticated as each user
- A recording notifier for asserting realtime pushes

Usage:
    def test_example(group, alice_client):
        response = alice_client.get(f"/api/v1/conversations/{group.id}/")
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import UserFactory
from chat.tests.factories import DirectConversationFactory, GroupConversationFactory


class RecordingNotifier:
    """
    Notifier double that records every push instead of sending it.

    Records (method_name, args) tuples in ``calls``.
    """

    def __init__(self):
        self.calls = []

    def __getattr__(self, name):
        if not name.startswith("push_") and not name.startswith("broadcast_"):
            raise AttributeError(name)

        def record(*args):
            self.calls.append((name, args))
            return True

        return record

    def calls_to(self, name):
        return [args for called, args in self.calls if called == name]


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    return UserFactory(first_name="Alice", last_name="Anders")


@pytest.fixture
def bob(db):
    return UserFactory(first_name="Bob", last_name="Brown")


@pytest.fixture
def carol(db):
    return UserFactory(first_name="Carol", last_name="Chen")


@pytest.fixture
def dave(db):
    return UserFactory(first_name="Dave", last_name="Diaz")


@pytest.fixture
def outsider(db):
    """A user who is in none of the fixture conversations."""
    return UserFactory(college="Other College")


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def direct(db, alice, bob):
    return DirectConversationFactory(users=[alice, bob])


@pytest.fixture
def group(db, alice, bob, carol):
    """Group of bob, carol then alice (admin), in participant order."""
    return GroupConversationFactory(name="Class of 2020", members=[bob, carol], admin=alice)


# =============================================================================
# Client and Notifier Fixtures
# =============================================================================


def _client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def alice_client(alice):
    return _client_for(alice)


@pytest.fixture
def bob_client(bob):
    return _client_for(bob)


@pytest.fixture
def carol_client(carol):
    return _client_for(carol)


@pytest.fixture
def outsider_client(outsider):
    return _client_for(outsider)


@pytest.fixture
def notifier():
    return RecordingNotifier()
