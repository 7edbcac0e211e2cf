from typing import Any, Callable, Iterable, Optional

from backend import ConnectionRegistry, Room, RoomDirectory
from events import UPDATE_ROOMS
from logging_config import get_logger

logger = get_logger(__name__)

# sink(connection_id, frame) must not block; the transport queues the frame for sending
Sink = Callable[[str, dict], None]


def make_frame(event: str, payload: Any = None) -> dict:
    return {"event": event, "data": payload}


class BroadcastDispatcher:
    """Routes outbound events to one connection, one room, or every connection.

    Audiences are resolved against the registries at call time; the dispatcher
    keeps no state of its own.
    """

    def __init__(self, connections: ConnectionRegistry, rooms: RoomDirectory, sink: Sink):
        self.connections = connections
        self.rooms = rooms
        self.sink = sink

    def _send(self, connection_ids: Iterable[str], event: str, payload: Any = None) -> int:
        frame = make_frame(event, payload)
        sent = 0
        for connection_id in connection_ids:
            self.sink(connection_id, frame)
            sent += 1
        return sent

    def to_connection(self, connection_id: str, event: str, payload: Any = None):
        logger.debug(f"-> {connection_id}: {event}")
        self._send([connection_id], event, payload)

    def to_room(self, room: Room, event: str, payload: Any = None):
        sent = self._send(room.member_ids(), event, payload)
        logger.debug(f"-> room {room.name!r}: {event} ({sent} recipients)")

    def to_all(self, event: str, payload: Any = None):
        sent = self._send(self.connections.connection_ids(), event, payload)
        logger.debug(f"-> all: {event} ({sent} recipients)")

    def room_list(self, connection_id: Optional[str] = None):
        summaries = self.rooms.list_summaries()
        if connection_id is None:
            self.to_all(UPDATE_ROOMS, summaries)
        else:
            self.to_connection(connection_id, UPDATE_ROOMS, summaries)
