from dataclasses import dataclass, field
from typing import Dict, List, Optional

from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Profile:
    connection_id: str
    nickname: Optional[str] = None


@dataclass
class Room:
    name: str
    password: Optional[str] = None
    max_members: Optional[int] = None
    # connection id -> None; a dict keeps join order for admin succession
    members: Dict[str, None] = field(default_factory=dict)
    admin: Optional[str] = None

    @property
    def has_password(self) -> bool:
        return bool(self.password)

    @property
    def member_count(self) -> int:
        return len(self.members)

    @property
    def is_full(self) -> bool:
        return self.max_members is not None and len(self.members) >= self.max_members

    def has_member(self, connection_id: str) -> bool:
        return connection_id in self.members

    def member_ids(self) -> List[str]:
        return list(self.members)

    def check_password(self, password: Optional[str]) -> bool:
        if not self.password:
            return True
        return self.password == password

    def summary(self) -> dict:
        return {
            "name": self.name,
            "hasPassword": self.has_password,
            "currentUsers": len(self.members),
            "maxUsers": self.max_members,
        }


class ConnectionRegistry:
    """Live connections and their profiles. Nicknames are not unique."""

    def __init__(self):
        self._profiles: Dict[str, Profile] = {}

    def connect(self, connection_id: str) -> Profile:
        profile = self._profiles.get(connection_id)
        if profile is None:
            profile = Profile(connection_id=connection_id)
            self._profiles[connection_id] = profile
            logger.debug(f"Registered connection {connection_id}")
        return profile

    def set_nickname(self, connection_id: str, nickname: str) -> Profile:
        profile = self.connect(connection_id)
        profile.nickname = nickname
        logger.debug(f"Connection {connection_id} set nickname {nickname!r}")
        return profile

    def get(self, connection_id: str) -> Optional[Profile]:
        return self._profiles.get(connection_id)

    def nickname(self, connection_id: str) -> Optional[str]:
        profile = self._profiles.get(connection_id)
        return profile.nickname if profile else None

    def remove(self, connection_id: str):
        removed = self._profiles.pop(connection_id, None)
        if removed is not None:
            logger.debug(f"Removed connection {connection_id}")

    def connection_ids(self) -> List[str]:
        return list(self._profiles)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)


class RoomDirectory:
    """Room records keyed by name. A room never outlives its last member."""

    def __init__(self):
        self._rooms: Dict[str, Room] = {}

    def create(self, name: str, password: Optional[str] = None, max_members: Optional[int] = None) -> bool:
        if name in self._rooms:
            logger.debug(f"Room {name!r} already exists, not creating")
            return False
        if max_members is not None and max_members <= 0:
            max_members = None
        self._rooms[name] = Room(name=name, password=password or None, max_members=max_members)
        logger.info(f"Room {name!r} created (password={'yes' if password else 'no'}, max_members={max_members})")
        return True

    def get(self, name: str) -> Optional[Room]:
        return self._rooms.get(name)

    def remove_if_empty(self, name: str) -> bool:
        room = self._rooms.get(name)
        if room is None or room.members:
            return False
        del self._rooms[name]
        logger.info(f"Room {name!r} is empty, removed")
        return True

    def rooms_containing(self, connection_id: str) -> List[Room]:
        return [room for room in self._rooms.values() if connection_id in room.members]

    def all_rooms(self) -> List[Room]:
        return list(self._rooms.values())

    def list_summaries(self) -> List[dict]:
        return [room.summary() for room in self._rooms.values()]

    def check_invariants(self):
        seen: Dict[str, str] = {}
        for name, room in self._rooms.items():
            assert room.members, f"room {name!r} exists with no members"
            assert room.admin in room.members, f"admin {room.admin!r} of {name!r} is not a member"
            for member in room.members:
                assert member not in seen, f"{member} is in both {seen.get(member)!r} and {name!r}"
                seen[member] = name

    def __contains__(self, name: str) -> bool:
        return name in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
