"""Socket.IO chat relay.

One :class:`ChatRelay` owns the connection and room tables of the process and
handles every inbound chat event:

- ``authenticate``: attach an identity, join ``user:<id>`` (and ``admin``)
- ``join_chat`` / ``leave_chat``: subscribe to ``chat:<id>`` after an
  ownership check (admins bypass it)
- ``send_message``: persist, touch the session, fan out ``new_message`` and
  fall back to a stored notification when the other party is offline
- ``typing_start`` / ``typing_stop``: ephemeral, sender excluded
- ``agent_status_update``: sellers and admins broadcasting to ``admin``

Delivery is best-effort. Messages are ordered by persisted-write order; there
is no per-room lock, so concurrent senders may see fan-out in a different
order than they pressed send. The offline check before creating a
notification is a check-then-act race: a recipient connecting in between can
miss both the live event and a prompt notification. Both are accepted for a
support chat.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from collections.abc import Callable
from enum import Enum
from typing import Any

from django.core.exceptions import ImproperlyConfigured
from django.utils import timezone

from agent_marketplace.chat.models import ChatMessage
from agent_marketplace.chat.store import ChatStore
from agent_marketplace.realtime.events.chat import build_message_payload
from agent_marketplace.realtime.events.chat import build_typing_payload
from agent_marketplace.realtime.identity import Identity
from agent_marketplace.realtime.identity import extract_token
from agent_marketplace.realtime.identity import get_current_identity
from agent_marketplace.users.models import User

from .errors import AccessDenied
from .errors import AuthError
from .errors import InvalidPayload
from .errors import NotAuthenticated
from .errors import PersistenceFailure
from .errors import RelayError
from .registry import ADMIN_ROOM
from .registry import Connection
from .registry import ConnectionRegistry
from .registry import RoomRegistry
from .registry import room_for_chat
from .registry import room_for_user

logger = logging.getLogger(__name__)

# Clients stop showing "typing" after this much silence; the relay never
# emits a synthetic stop.
TYPING_QUIESCENCE_SECONDS = 3
MAX_CONTENT_LENGTH = 10_000
NOTIFICATION_PREVIEW_LENGTH = 100
STATUS_BROADCAST_ROLES = frozenset({User.Role.ADMIN.value, User.Role.SELLER.value})


class InboundEvent(str, Enum):
    AUTHENTICATE = "authenticate"
    JOIN_CHAT = "join_chat"
    LEAVE_CHAT = "leave_chat"
    SEND_MESSAGE = "send_message"
    TYPING_START = "typing_start"
    TYPING_STOP = "typing_stop"
    AGENT_STATUS_UPDATE = "agent_status_update"


class OutboundEvent(str, Enum):
    AUTHENTICATED = "authenticated"
    AUTH_ERROR = "auth_error"
    JOINED_CHAT = "joined_chat"
    LEFT_CHAT = "left_chat"
    NEW_MESSAGE = "new_message"
    USER_TYPING = "user_typing"
    USER_STOPPED_TYPING = "user_stopped_typing"
    AGENT_STATUS_CHANGED = "agent_status_changed"
    ERROR = "error"


Handler = Callable[[Connection, Any], Awaitable[None]]
IdentityLookup = Callable[[str | None], Awaitable[Identity | None]]


def _coerce_chat_id(value: Any) -> int:
    if isinstance(value, dict):
        value = value.get("chatId", value.get("chatSessionId"))
    if isinstance(value, bool):
        raise InvalidPayload("chatId must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise InvalidPayload("chatId must be an integer")


def _parse_message(data: Any) -> tuple[int, str, str]:
    if not isinstance(data, dict):
        raise InvalidPayload("Message payload must be an object")
    chat_id = _coerce_chat_id(data)
    content = data.get("content")
    if not isinstance(content, str) or not content.strip():
        raise InvalidPayload("content must be a non-empty string")
    if len(content) > MAX_CONTENT_LENGTH:
        raise InvalidPayload(f"content exceeds {MAX_CONTENT_LENGTH} characters")
    message_type = data.get("type") or ChatMessage.Type.TEXT
    if message_type not in ChatMessage.Type.values:
        raise InvalidPayload(f"Unsupported message type: {message_type}")
    return chat_id, content, str(message_type)


def _require_identity(connection: Connection) -> int:
    if not connection.is_authenticated:
        raise NotAuthenticated
    return connection.user_id  # type: ignore[return-value]


class ChatRelay:
    """Chat relay bound to one transport.

    ``transport`` is a python-socketio ``AsyncServer`` or anything exposing
    the same ``on``/``enter_room``/``leave_room``/``emit``/``disconnect``
    coroutines. Group sizes come from this relay's own :class:`RoomRegistry`.
    """

    def __init__(
        self,
        transport,
        *,
        store: ChatStore | None = None,
        identity_lookup: IdentityLookup | None = None,
        connections: ConnectionRegistry | None = None,
        rooms: RoomRegistry | None = None,
    ) -> None:
        self.transport = transport
        self.store = store or ChatStore()
        self.identity_lookup = identity_lookup or get_current_identity
        self.connections = connections or ConnectionRegistry()
        self.rooms = rooms or RoomRegistry()
        self._handlers: dict[InboundEvent, Handler] = {
            InboundEvent.AUTHENTICATE: self.authenticate,
            InboundEvent.JOIN_CHAT: self.join_chat,
            InboundEvent.LEAVE_CHAT: self.leave_chat,
            InboundEvent.SEND_MESSAGE: self.send_message,
            InboundEvent.TYPING_START: self.typing_start,
            InboundEvent.TYPING_STOP: self.typing_stop,
            InboundEvent.AGENT_STATUS_UPDATE: self.agent_status_update,
        }
        missing = set(InboundEvent) - set(self._handlers)
        if missing:
            names = ", ".join(sorted(event.value for event in missing))
            msg = f"Chat relay has no handler for: {names}"
            raise ImproperlyConfigured(msg)

    # Wiring

    def register(self) -> None:
        self.transport.on("connect", self.on_connect)
        self.transport.on("disconnect", self.on_disconnect)
        for event in InboundEvent:
            self.transport.on(event.value, self._bind(event))

    def _bind(self, event: InboundEvent):
        async def handler(sid: str, data: Any = None) -> None:
            await self.dispatch(sid, event, data)

        handler.__name__ = f"on_{event.value}"
        return handler

    async def on_connect(
        self,
        sid: str,
        environ: dict[str, Any],
        auth: Any | None = None,
    ) -> None:
        # Unauthenticated connections are allowed; identity comes later.
        self.connections.add(sid, handshake_token=extract_token(environ, auth))
        logger.info("Client connected: %s", sid)

    async def on_disconnect(self, sid: str, reason: Any = None) -> None:
        self.rooms.remove_connection(sid)
        self.connections.pop(sid)
        logger.info("Client disconnected: %s (%s)", sid, reason or "-")

    async def dispatch(self, sid: str, event: InboundEvent | str, data: Any = None) -> None:
        event = InboundEvent(event)
        connection = self.connections.get_or_add(sid)
        try:
            await self._handlers[event](connection, data)
        except AuthError as exc:
            await self._emit_to(sid, OutboundEvent.AUTH_ERROR, exc.as_payload())
            await self.transport.disconnect(sid)
        except RelayError as exc:
            await self._emit_to(sid, OutboundEvent.ERROR, exc.as_payload())
        except Exception:
            logger.exception("Unhandled error in %s from %s", event.value, sid)
            await self._emit_to(sid, OutboundEvent.ERROR, RelayError().as_payload())

    # Session registry

    async def authenticate(self, connection: Connection, data: Any) -> None:
        token = data.get("token") if isinstance(data, dict) else data
        if not isinstance(token, str) or not token:
            token = connection.handshake_token
        try:
            identity = await self.identity_lookup(token)
        except Exception as exc:
            logger.exception("Identity lookup failed for %s", connection.sid)
            raise AuthError from exc
        if identity is None:
            logger.info("Authentication failed for %s", connection.sid)
            raise AuthError

        if connection.is_authenticated and (
            connection.user_id != identity.user_id or connection.role != identity.role
        ):
            # Chat access was granted to the previous identity; start over
            for room in self.rooms.rooms_for(connection.sid):
                await self._leave(connection.sid, room)
        elif identity.role != User.Role.ADMIN:
            await self._leave(connection.sid, ADMIN_ROOM)

        connection.user_id = identity.user_id
        connection.role = identity.role
        await self._enter(connection.sid, room_for_user(identity.user_id))
        if identity.role == User.Role.ADMIN:
            await self._enter(connection.sid, ADMIN_ROOM)
        await self._emit_to(
            connection.sid,
            OutboundEvent.AUTHENTICATED,
            {"userId": identity.user_id, "role": identity.role},
        )

    # Chat rooms

    async def join_chat(self, connection: Connection, data: Any) -> None:
        user_id = _require_identity(connection)
        chat_id = _coerce_chat_id(data)
        try:
            session = await self.store.find_session(chat_id)
        except Exception as exc:
            logger.exception("Chat lookup failed for %s", chat_id)
            raise PersistenceFailure("Failed to join chat") from exc
        if session is None or not session.allows(user_id, connection.role):
            logger.warning("User %s denied access to chat %s", user_id, chat_id)
            raise AccessDenied

        await self._enter(connection.sid, room_for_chat(chat_id))
        await self._emit_to(connection.sid, OutboundEvent.JOINED_CHAT, chat_id)

    async def leave_chat(self, connection: Connection, data: Any) -> None:
        chat_id = _coerce_chat_id(data)
        await self._leave(connection.sid, room_for_chat(chat_id))
        await self._emit_to(connection.sid, OutboundEvent.LEFT_CHAT, chat_id)

    # Messages

    async def send_message(self, connection: Connection, data: Any) -> None:
        sender_id = _require_identity(connection)
        chat_id, content, message_type = _parse_message(data)

        try:
            session = await self.store.find_session(chat_id)
        except Exception as exc:
            logger.exception("Chat lookup failed for %s", chat_id)
            raise PersistenceFailure("Failed to send message") from exc
        if session is None:
            raise PersistenceFailure("Failed to send message")
        if not session.allows(sender_id, connection.role):
            raise AccessDenied

        try:
            message = await self.store.create_message(
                chat_session_id=chat_id,
                sender_id=sender_id,
                content=content,
                message_type=message_type,
            )
        except Exception as exc:
            logger.exception("Failed to persist message for chat %s", chat_id)
            raise PersistenceFailure("Failed to send message") from exc

        # Steps below are independently best-effort.
        try:
            await self.store.update_session_activity(chat_id, message)
        except Exception:
            logger.exception("Failed to update activity for chat %s", chat_id)

        try:
            await self.transport.emit(
                OutboundEvent.NEW_MESSAGE.value,
                build_message_payload(message),
                room=room_for_chat(chat_id),
            )
        except Exception:
            logger.exception("Fan-out failed for message %s", message.pk)

        recipient_id = session.other_party_id(sender_id)
        if recipient_id is None or recipient_id == sender_id:
            return
        if self.live_connection_count(recipient_id) > 0:
            return
        try:
            await self.store.create_notification(
                recipient_id=recipient_id,
                title="New Chat Message",
                message=(
                    f"{message.sender.display_name}: "
                    f"{content[:NOTIFICATION_PREVIEW_LENGTH]}"
                ),
                data={"chatId": chat_id, "messageId": message.pk},
            )
        except Exception:
            logger.exception(
                "Offline notification failed for user %s (message %s)",
                recipient_id,
                message.pk,
            )

    # Presence

    async def typing_start(self, connection: Connection, data: Any) -> None:
        await self._broadcast_typing(connection, data, OutboundEvent.USER_TYPING)

    async def typing_stop(self, connection: Connection, data: Any) -> None:
        await self._broadcast_typing(
            connection,
            data,
            OutboundEvent.USER_STOPPED_TYPING,
        )

    async def _broadcast_typing(
        self,
        connection: Connection,
        data: Any,
        event: OutboundEvent,
    ) -> None:
        user_id = _require_identity(connection)
        chat_id = _coerce_chat_id(data)
        room = room_for_chat(chat_id)
        if not self.rooms.is_member(connection.sid, room):
            raise AccessDenied
        await self.transport.emit(
            event.value,
            build_typing_payload(user_id, chat_id),
            room=room,
            skip_sid=connection.sid,
        )

    async def agent_status_update(self, connection: Connection, data: Any) -> None:
        user_id = _require_identity(connection)
        if connection.role not in STATUS_BROADCAST_ROLES:
            raise AccessDenied("Only sellers and admins can publish agent status")
        await self.transport.emit(
            OutboundEvent.AGENT_STATUS_CHANGED.value,
            {
                "agentId": user_id,
                "status": data,
                "timestamp": timezone.now().isoformat(),
            },
            room=ADMIN_ROOM,
            skip_sid=connection.sid,
        )

    async def revoke_chat_access(self, user_id: int, chat_id: int) -> None:
        """Drop a user's connections from a chat they are no longer part of.

        Called when a session is reassigned. Connections authenticated as
        admins keep their subscription.
        """
        room = room_for_chat(chat_id)
        sids = self.rooms.members(room_for_user(user_id)) & self.rooms.members(room)
        for sid in sids:
            connection = self.connections.get(sid)
            if connection is not None and connection.role == User.Role.ADMIN:
                continue
            await self._leave(sid, room)
            await self._emit_to(sid, OutboundEvent.LEFT_CHAT, chat_id)

    # Helpers

    def live_connection_count(self, user_id: int) -> int:
        return self.rooms.count(room_for_user(user_id))

    async def _enter(self, sid: str, room: str) -> None:
        self.rooms.add(sid, room)
        await self.transport.enter_room(sid, room)

    async def _leave(self, sid: str, room: str) -> None:
        self.rooms.discard(sid, room)
        await self.transport.leave_room(sid, room)

    async def _emit_to(self, sid: str, event: OutboundEvent, payload: Any) -> None:
        await self.transport.emit(event.value, payload, to=sid)
