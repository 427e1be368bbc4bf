from agent_marketplace.realtime.registry import ConnectionRegistry
from agent_marketplace.realtime.registry import RoomRegistry
from agent_marketplace.realtime.registry import room_for_chat
from agent_marketplace.realtime.registry import room_for_user


def test_room_names():
    assert room_for_user(7) == "user:7"
    assert room_for_chat("12") == "chat:12"


class TestRoomRegistry:
    def setup_method(self):
        self.rooms = RoomRegistry()

    def test_add_is_idempotent(self):
        assert self.rooms.add("a", "chat:1") is True
        assert self.rooms.add("a", "chat:1") is False
        assert self.rooms.count("chat:1") == 1

    def test_last_member_leaving_deletes_room(self):
        self.rooms.add("a", "chat:1")
        self.rooms.add("b", "chat:1")
        self.rooms.discard("a", "chat:1")
        assert self.rooms.members("chat:1") == frozenset({"b"})
        self.rooms.discard("b", "chat:1")
        assert self.rooms.count("chat:1") == 0
        assert "chat:1" not in self.rooms._members

    def test_discard_unknown_is_noop(self):
        assert self.rooms.discard("ghost", "chat:1") is False

    def test_remove_connection_leaves_every_room(self):
        self.rooms.add("a", "chat:1")
        self.rooms.add("a", "user:3")
        self.rooms.add("b", "chat:1")

        removed = self.rooms.remove_connection("a")

        assert removed == {"chat:1", "user:3"}
        assert self.rooms.rooms_for("a") == frozenset()
        assert self.rooms.members("chat:1") == frozenset({"b"})
        assert self.rooms.count("user:3") == 0

    def test_is_member(self):
        self.rooms.add("a", "admin")
        assert self.rooms.is_member("a", "admin")
        assert not self.rooms.is_member("b", "admin")


def test_connection_registry_tracks_handshake_token():
    connections = ConnectionRegistry()
    connections.add("a", handshake_token="tok")

    assert connections.get("a").handshake_token == "tok"
    assert not connections.get("a").is_authenticated
    assert connections.get_or_add("b").sid == "b"
    assert len(connections) == 2
    assert connections.pop("a").sid == "a"
    assert connections.get("a") is None
