import pytest

from backend import ConnectionRegistry, Room, RoomDirectory


def test_connection_registry_nickname_lifecycle():
    registry = ConnectionRegistry()
    registry.connect("c1")
    assert registry.get("c1").nickname is None

    registry.set_nickname("c1", "Alice")
    registry.set_nickname("c1", "Alicia")
    assert registry.nickname("c1") == "Alicia"

    registry.remove("c1")
    registry.remove("c1")
    assert registry.get("c1") is None
    assert "c1" not in registry


def test_duplicate_nicknames_allowed():
    registry = ConnectionRegistry()
    registry.set_nickname("c1", "Sam")
    registry.set_nickname("c2", "Sam")
    assert len(registry) == 2


def test_create_is_noop_for_existing_name():
    directory = RoomDirectory()
    assert directory.create("lobby", password="a", max_members=3) is True
    assert directory.create("lobby", password="b", max_members=9) is False
    room = directory.get("lobby")
    assert room.password == "a"
    assert room.max_members == 3


@pytest.mark.parametrize("max_members", [None, 0, -5])
def test_non_positive_capacity_is_unbounded(max_members):
    directory = RoomDirectory()
    directory.create("open", max_members=max_members)
    room = directory.get("open")
    assert room.max_members is None
    room.members.update(dict.fromkeys(str(i) for i in range(50)))
    assert not room.is_full


def test_empty_password_means_open_room():
    directory = RoomDirectory()
    directory.create("open", password="")
    room = directory.get("open")
    assert room.password is None
    assert room.check_password("anything")
    assert room.check_password(None)


def test_remove_if_empty_keeps_populated_rooms():
    directory = RoomDirectory()
    directory.create("lobby")
    directory.get("lobby").members["c1"] = None
    assert directory.remove_if_empty("lobby") is False
    assert "lobby" in directory

    del directory.get("lobby").members["c1"]
    assert directory.remove_if_empty("lobby") is True
    assert directory.get("lobby") is None


def test_list_summaries_is_fresh_snapshot_in_creation_order():
    directory = RoomDirectory()
    directory.create("b", password="pw", max_members=2)
    directory.create("a")
    directory.get("b").members["c1"] = None

    assert directory.list_summaries() == [
        {"name": "b", "hasPassword": True, "currentUsers": 1, "maxUsers": 2},
        {"name": "a", "hasPassword": False, "currentUsers": 0, "maxUsers": None},
    ]

    directory.get("b").members["c2"] = None
    assert directory.list_summaries()[0]["currentUsers"] == 2


def test_check_invariants_flags_admin_outside_room():
    directory = RoomDirectory()
    directory.create("lobby")
    room = directory.get("lobby")
    room.members["c1"] = None
    room.admin = "c2"
    with pytest.raises(AssertionError):
        directory.check_invariants()


def test_room_is_full_at_capacity():
    room = Room(name="vip", max_members=1)
    assert not room.is_full
    room.members["c1"] = None
    assert room.is_full
