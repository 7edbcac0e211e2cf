from backend import ConnectionRegistry, RoomDirectory
from dispatcher import BroadcastDispatcher, make_frame


def build(sink):
    connections = ConnectionRegistry()
    rooms = RoomDirectory()
    for connection_id in ("a", "b", "c"):
        connections.set_nickname(connection_id, connection_id.upper())
    rooms.create("lobby")
    rooms.get("lobby").members.update(dict.fromkeys(["a", "b"]))
    return connections, rooms, BroadcastDispatcher(connections, rooms, sink)


def test_to_connection_reaches_only_that_connection(sink):
    _, _, dispatcher = build(sink)
    dispatcher.to_connection("a", "room full")
    assert sink.frames == {"a": [make_frame("room full")]}


def test_to_room_reaches_members_only(sink):
    _, rooms, dispatcher = build(sink)
    dispatcher.to_room(rooms.get("lobby"), "user joined", "B")
    assert set(sink.frames) == {"a", "b"}
    assert sink.received("a", "user joined") == ["B"]


def test_room_list_to_all_includes_connections_outside_rooms(sink):
    _, _, dispatcher = build(sink)
    dispatcher.room_list()
    expected = [{"name": "lobby", "hasPassword": False, "currentUsers": 2, "maxUsers": None}]
    for connection_id in ("a", "b", "c"):
        assert sink.received(connection_id, "update rooms") == [expected]


def test_room_list_to_single_connection(sink):
    _, _, dispatcher = build(sink)
    dispatcher.room_list("c")
    assert set(sink.frames) == {"c"}
