"""In-process bookkeeping for live Socket.IO connections.

Both tables are only touched from the event loop thread, so plain dicts and
sets are enough. None of this is persisted: after a restart clients must
authenticate and join their chats again.
"""

from __future__ import annotations

from dataclasses import dataclass

ADMIN_ROOM = "admin"


def room_for_user(user_id: int) -> str:
    return f"user:{int(user_id)}"


def room_for_chat(chat_id: int) -> str:
    return f"chat:{int(chat_id)}"


@dataclass
class Connection:
    sid: str
    # Token seen on the handshake (query string or auth payload), if any
    handshake_token: str | None = None
    user_id: int | None = None
    role: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


class ConnectionRegistry:
    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def add(self, sid: str, handshake_token: str | None = None) -> Connection:
        connection = Connection(sid=sid, handshake_token=handshake_token)
        self._connections[sid] = connection
        return connection

    def get_or_add(self, sid: str) -> Connection:
        connection = self._connections.get(sid)
        if connection is None:
            connection = self.add(sid)
        return connection

    def get(self, sid: str) -> Connection | None:
        return self._connections.get(sid)

    def pop(self, sid: str) -> Connection | None:
        return self._connections.pop(sid, None)


class RoomRegistry:
    """Many-to-many map between connection ids and room names.

    Chat rooms, per-user groups and the admin group all live here; a room
    disappears as soon as its last member leaves.
    """

    def __init__(self) -> None:
        self._members: dict[str, set[str]] = {}
        self._rooms_by_sid: dict[str, set[str]] = {}

    def add(self, sid: str, room: str) -> bool:
        members = self._members.setdefault(room, set())
        if sid in members:
            return False
        members.add(sid)
        self._rooms_by_sid.setdefault(sid, set()).add(room)
        return True

    def discard(self, sid: str, room: str) -> bool:
        members = self._members.get(room)
        if not members or sid not in members:
            return False
        members.discard(sid)
        if not members:
            del self._members[room]
        rooms = self._rooms_by_sid.get(sid)
        if rooms is not None:
            rooms.discard(room)
            if not rooms:
                del self._rooms_by_sid[sid]
        return True

    def remove_connection(self, sid: str) -> set[str]:
        rooms = self._rooms_by_sid.pop(sid, set())
        for room in rooms:
            members = self._members.get(room)
            if members is None:
                continue
            members.discard(sid)
            if not members:
                del self._members[room]
        return rooms

    def members(self, room: str) -> frozenset[str]:
        return frozenset(self._members.get(room, ()))

    def count(self, room: str) -> int:
        return len(self._members.get(room, ()))

    def rooms_for(self, sid: str) -> frozenset[str]:
        return frozenset(self._rooms_by_sid.get(sid, ()))

    def is_member(self, sid: str, room: str) -> bool:
        return sid in self._members.get(room, ())
