from unittest import mock

import pytest

from agent_marketplace.chat.models import ChatSession
from agent_marketplace.users.models import User

TEST_PASSWORD = "Marketplace!123"  # noqa: S105


@pytest.fixture(autouse=True)
def realtime_push():
    """Keep REST and ORM tests off the live Socket.IO server."""
    user_target = "agent_marketplace.realtime.events.notifications.emit_event_to_user"
    chat_target = "agent_marketplace.chat.api.views.emit_event_to_chat"
    revoke_target = "agent_marketplace.chat.api.views.revoke_chat_access"
    with (
        mock.patch(user_target) as to_user,
        mock.patch(chat_target) as to_chat,
        mock.patch(revoke_target) as revoke,
    ):
        yield {"user": to_user, "chat": to_chat, "revoke": revoke}


@pytest.fixture
def make_user(db):
    def _make(username: str, role: str = User.Role.BUYER, **extra) -> User:
        return User.objects.create_user(
            username=username,
            email=f"{username}@example.com",
            password=TEST_PASSWORD,
            role=role,
            **extra,
        )

    return _make


@pytest.fixture
def buyer(make_user) -> User:
    return make_user("buyer", first_name="Bea", last_name="Buyer")


@pytest.fixture
def seller(make_user) -> User:
    return make_user("seller", role=User.Role.SELLER)


@pytest.fixture
def admin_user(make_user) -> User:
    return make_user("marketadmin", role=User.Role.ADMIN)


@pytest.fixture
def stranger(make_user) -> User:
    return make_user("stranger")


@pytest.fixture
def chat_session(buyer, seller) -> ChatSession:
    return ChatSession.objects.create(
        user=buyer,
        assigned_agent=seller,
        subject="Refund for agent run",
    )
