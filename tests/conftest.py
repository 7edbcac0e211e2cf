import pytest
from collections import defaultdict

from backend import ConnectionRegistry, RoomDirectory
from dispatcher import BroadcastDispatcher
from membership import MembershipEngine


class RecordingSink:
    """Collects frames per connection instead of sending them."""

    def __init__(self):
        self.frames = defaultdict(list)

    def __call__(self, connection_id, frame):
        self.frames[connection_id].append(frame)

    def events(self, connection_id):
        return [frame["event"] for frame in self.frames.get(connection_id, [])]

    def received(self, connection_id, event):
        return [frame["data"] for frame in self.frames.get(connection_id, []) if frame["event"] == event]

    def clear(self):
        self.frames.clear()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def connections():
    return ConnectionRegistry()


@pytest.fixture
def rooms():
    return RoomDirectory()


@pytest.fixture
def engine(connections, rooms, sink):
    dispatcher = BroadcastDispatcher(connections, rooms, sink)
    return MembershipEngine(connections, rooms, dispatcher)


@pytest.fixture
def user(engine):
    """Connect a client and give it a nickname; returns the connection id."""
    def _user(connection_id, nickname=None):
        engine.connect(connection_id)
        engine.set_nickname(connection_id, nickname or connection_id)
        return connection_id
    return _user
