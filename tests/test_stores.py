"""Tests for the connection registry and room directory."""

from chatrelay.models.models import Session
from chatrelay.services.connection_registry import ConnectionRegistry
from chatrelay.services.room_directory import RoomDirectory


class TestConnectionRegistry:
    def test_put_get_remove(self) -> None:
        registry = ConnectionRegistry()
        session = Session(conn_id="c1", username="alice", room="general")
        registry.put("c1", session)

        assert registry.get("c1") is session
        assert len(registry) == 1
        assert registry.remove("c1") is session
        assert registry.get("c1") is None
        assert registry.remove("c1") is None

    def test_find_by_username_in_room_is_exact_and_per_room(self) -> None:
        registry = ConnectionRegistry()
        registry.put("c1", Session(conn_id="c1", username="alice", room="a"))
        registry.put("c2", Session(conn_id="c2", username="alice", room="b"))

        assert registry.find_by_username_in_room("alice", "a").conn_id == "c1"
        assert registry.find_by_username_in_room("alice", "b").conn_id == "c2"
        assert registry.find_by_username_in_room("Alice", "a") is None
        assert registry.find_by_username_in_room("alice", "c") is None

    def test_find_by_username_searches_all_rooms(self) -> None:
        registry = ConnectionRegistry()
        registry.put("c1", Session(conn_id="c1", username="bob", room="random"))
        assert registry.find_by_username("bob").room == "random"
        assert registry.find_by_username("carol") is None

    def test_all(self) -> None:
        registry = ConnectionRegistry()
        registry.put("c1", Session(conn_id="c1", username="a", room="r"))
        registry.put("c2", Session(conn_id="c2", username="b", room="r"))
        assert [s.username for s in registry.all()] == ["a", "b"]


class TestRoomDirectory:
    def test_add_creates_room(self) -> None:
        directory = RoomDirectory()
        directory.add_member("general", "c1")
        directory.add_member("general", "c2")

        assert directory.exists("general")
        assert directory.members("general") == {"c1", "c2"}
        assert directory.all_rooms() == [("general", 2)]

    def test_room_deleted_when_last_member_leaves(self) -> None:
        directory = RoomDirectory()
        directory.add_member("general", "c1")
        directory.add_member("general", "c2")

        assert directory.remove_member("general", "c1") is False
        assert directory.exists("general")
        assert directory.remove_member("general", "c2") is True
        assert not directory.exists("general")
        assert len(directory) == 0

    def test_remove_from_unknown_room_is_noop(self) -> None:
        directory = RoomDirectory()
        assert directory.remove_member("ghost", "c1") is False

    def test_members_returns_a_copy(self) -> None:
        directory = RoomDirectory()
        directory.add_member("general", "c1")
        members = directory.members("general")
        members.add("intruder")
        assert directory.members("general") == {"c1"}

    def test_members_of_unknown_room(self) -> None:
        assert RoomDirectory().members("ghost") == set()
