import logging
from enum import Enum

import pytest
from asgiref.sync import async_to_sync
from django.core.exceptions import ImproperlyConfigured
from rest_framework_simplejwt.tokens import RefreshToken

from agent_marketplace.chat.models import ChatMessage
from agent_marketplace.chat.models import ChatSession
from agent_marketplace.chat.store import ChatStore
from agent_marketplace.notifications.models import Notification
from agent_marketplace.realtime import relay as relay_module
from agent_marketplace.realtime.relay import ChatRelay
from agent_marketplace.realtime.relay import InboundEvent

from .fakes import FakeSocketServer

pytestmark = pytest.mark.django_db(transaction=True)


def token_for(user) -> str:
    return str(RefreshToken.for_user(user).access_token)


@pytest.fixture
def server():
    return FakeSocketServer()


@pytest.fixture
def relay(server):
    chat_relay = ChatRelay(server)
    chat_relay.register()
    return chat_relay


def login(server, sid, user):
    server.connect(sid)
    server.client_emit(sid, "authenticate", {"token": token_for(user)})
    assert server.received(sid, "authenticated"), server.inbox[sid]


def errors(server, sid):
    return [payload["code"] for payload in server.received(sid, "error")]


class TestWiring:
    def test_every_inbound_event_has_a_handler(self, server, relay):
        expected = {event.value for event in InboundEvent} | {"connect", "disconnect"}
        assert expected <= set(server.handlers)

    def test_unhandled_event_is_rejected_at_construction(self, server, monkeypatch):
        members = {event.name: event.value for event in InboundEvent}
        members["ARCHIVE_CHAT"] = "archive_chat"
        extended = Enum("InboundEvent", members, type=str)
        monkeypatch.setattr(relay_module, "InboundEvent", extended)

        with pytest.raises(ImproperlyConfigured, match="archive_chat"):
            ChatRelay(server)


class TestAuthenticate:
    def test_token_in_event(self, server, relay, admin_user):
        login(server, "s1", admin_user)

        assert server.received("s1", "authenticated") == [
            {"userId": admin_user.pk, "role": "ADMIN"},
        ]
        assert relay.rooms.is_member("s1", f"user:{admin_user.pk}")
        assert relay.rooms.is_member("s1", "admin")

    def test_non_admin_does_not_join_admin_room(self, server, relay, buyer):
        login(server, "s1", buyer)
        assert not relay.rooms.is_member("s1", "admin")
        assert relay.live_connection_count(buyer.pk) == 1

    def test_handshake_token_used_when_event_has_none(self, server, relay, seller):
        server.connect("s1", {"QUERY_STRING": f"token={token_for(seller)}"})
        server.client_emit("s1", "authenticate")

        assert server.received("s1", "authenticated") == [
            {"userId": seller.pk, "role": "SELLER"},
        ]

    def test_bad_token_terminates_connection(self, server, relay):
        server.connect("s1")
        server.client_emit("s1", "authenticate", {"token": "garbage"})

        assert server.received("s1", "auth_error") == [
            {"code": "auth_error", "message": "Authentication failed"},
        ]
        assert server.disconnected == ["s1"]
        assert relay.connections.get("s1") is None

    def test_reauth_as_other_user_leaves_old_groups(
        self, server, relay, admin_user, buyer, stranger, chat_session
    ):
        login(server, "s1", admin_user)
        server.client_emit("s1", "join_chat", chat_session.pk)
        server.client_emit("s1", "authenticate", {"token": token_for(stranger)})

        assert relay.rooms.rooms_for("s1") == frozenset({f"user:{stranger.pk}"})
        assert relay.live_connection_count(admin_user.pk) == 0
        assert relay.rooms.count(f"chat:{chat_session.pk}") == 0

        login(server, "b", buyer)
        server.client_emit("b", "send_message", {"chatId": chat_session.pk, "content": "secret"})
        server.client_emit("s1", "typing_start", chat_session.pk)

        assert server.received("s1", "new_message") == []
        assert errors(server, "s1") == ["access_denied"]

    def test_demoted_admin_loses_admin_group_and_chats(
        self, server, relay, admin_user, chat_session
    ):
        login(server, "s1", admin_user)
        server.client_emit("s1", "join_chat", chat_session.pk)
        admin_user.role = "BUYER"
        admin_user.save(update_fields=["role"])

        server.client_emit("s1", "authenticate", {"token": token_for(admin_user)})

        assert relay.rooms.rooms_for("s1") == frozenset({f"user:{admin_user.pk}"})
        assert server.received("s1", "authenticated")[-1] == {
            "userId": admin_user.pk,
            "role": "BUYER",
        }

    def test_same_identity_reauth_keeps_chats(self, server, relay, buyer, chat_session):
        login(server, "s1", buyer)
        server.client_emit("s1", "join_chat", chat_session.pk)
        server.client_emit("s1", "authenticate", {"token": token_for(buyer)})

        assert relay.rooms.is_member("s1", f"chat:{chat_session.pk}")


class TestUnauthenticated:
    @pytest.mark.parametrize(
        ("event", "data"),
        [
            ("join_chat", 1),
            ("send_message", {"chatId": 1, "content": "hi"}),
            ("typing_start", 1),
            ("typing_stop", 1),
            ("agent_status_update", "online"),
        ],
    )
    def test_rejected_but_connection_kept(self, server, relay, event, data):
        server.connect("s1")
        server.client_emit("s1", event, data)

        assert errors(server, "s1") == ["not_authenticated"]
        assert server.disconnected == []
        assert "s1" in server.connected


class TestJoinAndLeave:
    def test_participant_joins(self, server, relay, buyer, chat_session):
        login(server, "s1", buyer)
        server.client_emit("s1", "join_chat", chat_session.pk)

        assert server.received("s1", "joined_chat") == [chat_session.pk]
        assert relay.rooms.is_member("s1", f"chat:{chat_session.pk}")

    def test_object_payload_accepted(self, server, relay, seller, chat_session):
        login(server, "s1", seller)
        server.client_emit("s1", "join_chat", {"chatId": str(chat_session.pk)})
        assert server.received("s1", "joined_chat") == [chat_session.pk]

    def test_admin_joins_any_chat(self, server, relay, admin_user, chat_session):
        login(server, "s1", admin_user)
        server.client_emit("s1", "join_chat", chat_session.pk)
        assert server.received("s1", "joined_chat") == [chat_session.pk]

    def test_outsider_denied(self, server, relay, stranger, chat_session, caplog):
        login(server, "s1", stranger)
        with caplog.at_level(logging.WARNING, logger="agent_marketplace.realtime"):
            server.client_emit("s1", "join_chat", chat_session.pk)

        assert server.received("s1", "error") == [
            {"code": "access_denied", "message": "Access denied to chat"},
        ]
        assert relay.rooms.count(f"chat:{chat_session.pk}") == 0
        assert "denied access" in caplog.text

    def test_unknown_chat_denied(self, server, relay, admin_user):
        login(server, "s1", admin_user)
        server.client_emit("s1", "join_chat", 999_999)
        assert errors(server, "s1") == ["access_denied"]

    def test_malformed_chat_id(self, server, relay, buyer):
        login(server, "s1", buyer)
        server.client_emit("s1", "join_chat", {"chatId": True})
        assert errors(server, "s1") == ["invalid_payload"]

    def test_leave(self, server, relay, buyer, chat_session):
        login(server, "s1", buyer)
        server.client_emit("s1", "join_chat", chat_session.pk)
        server.client_emit("s1", "leave_chat", chat_session.pk)

        assert server.received("s1", "left_chat") == [chat_session.pk]
        assert relay.rooms.count(f"chat:{chat_session.pk}") == 0


class TestSendMessage:
    def test_every_joined_connection_gets_one_copy(
        self, server, relay, buyer, seller, admin_user, chat_session
    ):
        login(server, "buyer-web", buyer)
        login(server, "buyer-phone", buyer)
        login(server, "agent", seller)
        login(server, "admin", admin_user)
        for sid in ("buyer-web", "buyer-phone", "agent"):
            server.client_emit(sid, "join_chat", chat_session.pk)

        server.client_emit(
            "buyer-web",
            "send_message",
            {"chatId": chat_session.pk, "content": "Where is my refund?"},
        )

        for sid in ("buyer-web", "buyer-phone", "agent"):
            received = server.received(sid, "new_message")
            assert len(received) == 1
            assert received[0]["content"] == "Where is my refund?"
            assert received[0]["chatId"] == chat_session.pk
            assert received[0]["sender"]["id"] == buyer.pk
            assert received[0]["sender"]["name"] == "Bea Buyer"
        # Admin is online but never joined this chat
        assert server.received("admin", "new_message") == []

    def test_message_persisted_and_session_touched(
        self, server, relay, buyer, seller, chat_session
    ):
        login(server, "b", buyer)
        login(server, "a", seller)
        server.client_emit(
            "b",
            "send_message",
            {"chatSessionId": chat_session.pk, "content": "hello", "type": "text"},
        )

        message = ChatMessage.objects.get(chat_session=chat_session)
        assert message.sender_id == buyer.pk
        assert message.content == "hello"
        chat_session.refresh_from_db()
        assert chat_session.last_message_id == message.pk
        assert chat_session.last_activity == message.timestamp

    def test_online_responder_gets_no_notification(
        self, server, relay, buyer, seller, chat_session
    ):
        login(server, "b", buyer)
        login(server, "a", seller)
        server.client_emit("a", "join_chat", chat_session.pk)

        server.client_emit("b", "send_message", {"chatId": chat_session.pk, "content": "hi"})

        assert len(server.received("a", "new_message")) == 1
        assert not Notification.objects.exists()

    def test_offline_responder_gets_notification(
        self, server, relay, buyer, seller, chat_session
    ):
        login(server, "b", buyer)
        content = "x" * 150
        server.client_emit("b", "send_message", {"chatId": chat_session.pk, "content": content})

        message = ChatMessage.objects.get()
        notification = Notification.objects.get()
        assert notification.recipient_id == seller.pk
        assert notification.notification_type == Notification.Type.CHAT_MESSAGE
        assert notification.title == "New Chat Message"
        assert notification.message == f"Bea Buyer: {'x' * 100}"
        assert notification.data == {"chatId": chat_session.pk, "messageId": message.pk}

    def test_responder_reply_notifies_offline_initiator(
        self, server, relay, buyer, seller, chat_session
    ):
        login(server, "a", seller)
        server.client_emit("a", "send_message", {"chatId": chat_session.pk, "content": "on it"})

        assert Notification.objects.get().recipient_id == buyer.pk

    def test_unassigned_session_creates_no_notification(self, server, relay, buyer):
        session = ChatSession.objects.create(user=buyer, subject="Pre-sales")
        login(server, "b", buyer)
        server.client_emit("b", "send_message", {"chatId": session.pk, "content": "hi"})

        assert ChatMessage.objects.filter(chat_session=session).count() == 1
        assert not Notification.objects.exists()

    def test_sole_subscriber_disconnect_empties_room(
        self, server, relay, buyer, seller, chat_session
    ):
        login(server, "a", seller)
        server.client_emit("a", "join_chat", chat_session.pk)
        server.client_disconnect("a")

        assert relay.rooms.count(f"chat:{chat_session.pk}") == 0
        assert relay.connections.get("a") is None

        login(server, "b", buyer)
        server.client_emit("b", "send_message", {"chatId": chat_session.pk, "content": "still there?"})

        assert ChatMessage.objects.filter(chat_session=chat_session).count() == 1
        assert server.received("a", "new_message") == []
        assert Notification.objects.get().recipient_id == seller.pk

    def test_outsider_cannot_send(self, server, relay, stranger, chat_session):
        login(server, "s", stranger)
        server.client_emit("s", "send_message", {"chatId": chat_session.pk, "content": "spam"})

        assert errors(server, "s") == ["access_denied"]
        assert not ChatMessage.objects.exists()

    def test_unknown_session_is_persistence_failure(self, server, relay, buyer):
        login(server, "b", buyer)
        server.client_emit("b", "send_message", {"chatId": 424242, "content": "hi"})

        assert server.received("b", "error") == [
            {"code": "persistence_failure", "message": "Failed to send message"},
        ]

    @pytest.mark.parametrize(
        "payload",
        [
            "just text",
            {"chatId": 1},
            {"chatId": 1, "content": "   "},
            {"chatId": 1, "content": "hi", "type": "video"},
            {"content": "hi"},
        ],
    )
    def test_invalid_payload(self, server, relay, buyer, payload):
        login(server, "b", buyer)
        server.client_emit("b", "send_message", payload)
        assert errors(server, "b") == ["invalid_payload"]

    def test_store_failure_surfaces_as_error(
        self, server, buyer, seller, chat_session, caplog
    ):
        class BrokenStore(ChatStore):
            async def create_message(self, **kwargs):
                msg = "disk full"
                raise RuntimeError(msg)

        chat_relay = ChatRelay(server, store=BrokenStore())
        chat_relay.register()
        login(server, "b", buyer)

        with caplog.at_level(logging.ERROR, logger="agent_marketplace.realtime"):
            server.client_emit("b", "send_message", {"chatId": chat_session.pk, "content": "hi"})

        assert errors(server, "b") == ["persistence_failure"]
        assert "Failed to persist message" in caplog.text
        assert not Notification.objects.exists()

    def test_activity_update_failure_does_not_block_delivery(
        self, server, buyer, seller, chat_session
    ):
        class NoActivityStore(ChatStore):
            async def update_session_activity(self, chat_session_id, message):
                msg = "lock timeout"
                raise RuntimeError(msg)

        chat_relay = ChatRelay(server, store=NoActivityStore())
        chat_relay.register()
        login(server, "b", buyer)
        server.client_emit("b", "join_chat", chat_session.pk)
        server.client_emit("b", "send_message", {"chatId": chat_session.pk, "content": "hi"})

        assert len(server.received("b", "new_message")) == 1
        assert errors(server, "b") == []
        assert Notification.objects.get().recipient_id == seller.pk


class TestTyping:
    def test_typing_excludes_sender(self, server, relay, buyer, seller, chat_session):
        login(server, "b", buyer)
        login(server, "a", seller)
        for sid in ("a", "b"):
            server.client_emit(sid, "join_chat", chat_session.pk)

        server.client_emit("b", "typing_start", chat_session.pk)
        server.client_emit("b", "typing_start", chat_session.pk)
        server.client_emit("b", "typing_stop", chat_session.pk)

        expected = {"userId": buyer.pk, "chatId": chat_session.pk}
        assert server.received("a", "user_typing") == [expected, expected]
        assert server.received("a", "user_stopped_typing") == [expected]
        assert server.received("b", "user_typing") == []
        assert server.received("b", "user_stopped_typing") == []

    def test_typing_requires_membership(self, server, relay, buyer, chat_session):
        login(server, "b", buyer)
        server.client_emit("b", "typing_start", chat_session.pk)
        assert errors(server, "b") == ["access_denied"]


class TestAgentStatus:
    def test_seller_status_reaches_admins(self, server, relay, seller, admin_user):
        login(server, "admin", admin_user)
        login(server, "a", seller)
        server.client_emit("a", "agent_status_update", "away")

        [changed] = server.received("admin", "agent_status_changed")
        assert changed["agentId"] == seller.pk
        assert changed["status"] == "away"
        assert "timestamp" in changed
        assert server.received("a", "agent_status_changed") == []

    def test_buyer_cannot_publish_status(self, server, relay, buyer):
        login(server, "b", buyer)
        server.client_emit("b", "agent_status_update", "online")
        assert errors(server, "b") == ["access_denied"]


def test_unexpected_failure_is_generic_error(server, buyer, caplog):
    class ExplodingStore(ChatStore):
        async def find_session(self, chat_session_id):
            return object()

    chat_relay = ChatRelay(server, store=ExplodingStore())
    chat_relay.register()
    login(server, "b", buyer)

    with caplog.at_level(logging.ERROR, logger="agent_marketplace.realtime"):
        server.client_emit("b", "join_chat", 1)

    assert server.received("b", "error") == [
        {"code": "server_error", "message": "Something went wrong"},
    ]
    assert "Unhandled error in join_chat" in caplog.text


class TestRevokeChatAccess:
    def test_unassigned_agent_leaves_room(
        self, server, relay, buyer, seller, admin_user, chat_session
    ):
        for sid, user in (("a", seller), ("b", buyer), ("admin", admin_user)):
            login(server, sid, user)
            server.client_emit(sid, "join_chat", chat_session.pk)

        async_to_sync(relay.revoke_chat_access)(seller.pk, chat_session.pk)
        server.client_emit("b", "send_message", {"chatId": chat_session.pk, "content": "hi"})

        assert server.received("a", "left_chat") == [chat_session.pk]
        assert server.received("a", "new_message") == []
        assert len(server.received("b", "new_message")) == 1
        assert len(server.received("admin", "new_message")) == 1

    def test_admin_connections_keep_access(self, server, relay, admin_user, chat_session):
        login(server, "admin", admin_user)
        server.client_emit("admin", "join_chat", chat_session.pk)

        async_to_sync(relay.revoke_chat_access)(admin_user.pk, chat_session.pk)

        assert relay.rooms.is_member("admin", f"chat:{chat_session.pk}")
