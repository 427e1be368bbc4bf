"""Global Socket.IO server for the marketplace frontend.

Current frontend convention:
- Socket.IO path: ``settings.SOCKETIO_PATH`` (default ``/ws/socket.io/``)
- Auth: emit ``authenticate`` with a JWT access token after connecting. A
  ``query.token`` or ``auth.token`` on the handshake is used when the event
  carries none.

Rooms:
- ``user:<id>``: every authenticated connection of a user
- ``admin``: every authenticated admin connection
- ``chat:<id>``: connections that joined a chat session
"""

from __future__ import annotations

from typing import Any

import socketio
from asgiref.sync import async_to_sync
from django.conf import settings

from agent_marketplace.realtime.registry import room_for_chat
from agent_marketplace.realtime.registry import room_for_user
from agent_marketplace.realtime.relay import ChatRelay

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=settings.SOCKETIO_CORS_ALLOWED_ORIGINS,
    logger=False,
    engineio_logger=False,
)

chat_relay = ChatRelay(sio)
chat_relay.register()


def emit_event_to_room(room: str, event: str, payload: dict[str, Any]) -> None:
    """Emit an event to a room from sync Django code."""

    async_to_sync(sio.emit)(event, payload, room=room)


def emit_event_to_user(user_id: int, event: str, payload: dict[str, Any]) -> None:
    emit_event_to_room(room_for_user(user_id), event, payload)


def emit_event_to_chat(chat_id: int, event: str, payload: dict[str, Any]) -> None:
    emit_event_to_room(room_for_chat(chat_id), event, payload)


def revoke_chat_access(user_id: int, chat_id: int) -> None:
    async_to_sync(chat_relay.revoke_chat_access)(user_id, chat_id)
