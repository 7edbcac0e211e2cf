import threading
from enum import Enum
from typing import List, Optional

from backend import ConnectionRegistry, Room, RoomDirectory
from dispatcher import BroadcastDispatcher
from events import (
    CHAT_MESSAGE,
    KICKED,
    NEW_ADMIN,
    NICKNAME_REQUIRED,
    ROOM_FULL,
    ROOM_JOINED,
    ROOM_NOT_FOUND,
    USER_JOINED,
    USER_LEFT,
    USER_LIST,
    WRONG_PASSWORD,
)
from logging_config import get_logger

logger = get_logger(__name__)


class JoinOutcome(str, Enum):
    JOINED = "joined"
    ALREADY_MEMBER = "already_member"
    ROOM_NOT_FOUND = "room_not_found"
    WRONG_PASSWORD = "wrong_password"
    ROOM_FULL = "room_full"
    NICKNAME_REQUIRED = "nickname_required"
    UNKNOWN_CONNECTION = "unknown_connection"


class MembershipEngine:
    """Join/leave/kick/disconnect state machine over the two registries.

    Every public method takes the engine lock for its whole duration, so the
    state change and all the events it emits are atomic with respect to any
    other action. Private helpers assume the lock is held.
    """

    def __init__(self, connections: ConnectionRegistry, rooms: RoomDirectory, dispatcher: BroadcastDispatcher):
        self.connections = connections
        self.rooms = rooms
        self.dispatcher = dispatcher
        self._lock = threading.Lock()

    # ---------- connection lifecycle ----------

    def connect(self, connection_id: str):
        with self._lock:
            self.connections.connect(connection_id)
            logger.info(f"Connection {connection_id} opened ({len(self.connections)} live)")

    def set_nickname(self, connection_id: str, nickname: str) -> bool:
        with self._lock:
            if connection_id not in self.connections:
                logger.debug(f"Ignoring nickname from unknown connection {connection_id}")
                return False
            self.connections.set_nickname(connection_id, nickname)
            self.dispatcher.room_list(connection_id)
            return True

    def disconnect(self, connection_id: str) -> bool:
        with self._lock:
            if connection_id not in self.connections:
                return False
            for room in self.rooms.rooms_containing(connection_id):
                self._leave(room, connection_id)
            self.connections.remove(connection_id)
            self._check_invariants()
            logger.info(f"Connection {connection_id} closed ({len(self.connections)} live)")
            return True

    # ---------- membership ----------

    def create_or_join(
        self,
        connection_id: str,
        room_name: str,
        password: Optional[str] = None,
        max_members: Optional[int] = None,
    ) -> JoinOutcome:
        with self._lock:
            outcome = self._precheck(connection_id)
            if outcome is not None:
                return outcome
            # password and capacity only count when the room is new
            self.rooms.create(room_name, password=password, max_members=max_members)
            return self._join(connection_id, room_name, password)

    def join(self, connection_id: str, room_name: str, password: Optional[str] = None) -> JoinOutcome:
        with self._lock:
            outcome = self._precheck(connection_id)
            if outcome is not None:
                return outcome
            return self._join(connection_id, room_name, password)

    def leave(self, connection_id: str, room_name: str) -> bool:
        with self._lock:
            room = self.rooms.get(room_name)
            if room is None or not room.has_member(connection_id):
                return False
            self._leave(room, connection_id)
            self._check_invariants()
            return True

    def kick(self, requester_id: str, room_name: str, target_id: str) -> bool:
        with self._lock:
            room = self.rooms.get(room_name)
            if room is None or requester_id not in self.connections or room.admin != requester_id:
                logger.debug(f"Kick by {requester_id} in {room_name!r} not authorised, ignoring")
                return False
            if not room.has_member(target_id):
                logger.debug(f"Kick target {target_id} is not in {room_name!r}, ignoring")
                return False

            nickname = self.connections.nickname(target_id)
            del room.members[target_id]
            self.dispatcher.to_connection(target_id, KICKED, room.name)
            self.dispatcher.to_room(room, USER_LEFT, nickname)
            self._settle_after_departure(room, target_id)
            self.dispatcher.room_list()
            logger.info(f"{requester_id} kicked {target_id} ({nickname!r}) from {room_name!r}")
            self._check_invariants()
            return True

    # ---------- messaging and queries ----------

    def chat(self, connection_id: str, room_name: str, text: str) -> bool:
        with self._lock:
            room = self.rooms.get(room_name)
            if room is None or not room.has_member(connection_id):
                logger.debug(f"Dropping chat from {connection_id}: not a member of {room_name!r}")
                return False
            self.dispatcher.to_room(room, CHAT_MESSAGE, {
                "nickname": self.connections.nickname(connection_id),
                "msg": text,
                "isAdmin": room.admin == connection_id,
            })
            return True

    def list_members(self, connection_id: str, room_name: str) -> Optional[List[dict]]:
        with self._lock:
            if connection_id not in self.connections:
                return None
            room = self.rooms.get(room_name)
            if room is None:
                return None
            users = [
                {
                    "id": member,
                    "nickname": self.connections.nickname(member),
                    "isAdmin": member == room.admin,
                }
                for member in room.member_ids()
            ]
            self.dispatcher.to_connection(connection_id, USER_LIST, users)
            return users

    def room_summaries(self) -> List[dict]:
        with self._lock:
            return self.rooms.list_summaries()

    def room_details(self, room_name: str) -> Optional[dict]:
        with self._lock:
            room = self.rooms.get(room_name)
            if room is None:
                return None
            return {
                "name": room.name,
                "has_password": room.has_password,
                "current_users": room.member_count,
                "max_users": room.max_members,
                "is_full": room.is_full,
                "admin": self.connections.nickname(room.admin) if room.admin else None,
            }

    def stats(self) -> dict:
        with self._lock:
            return {"connections": len(self.connections), "rooms": len(self.rooms)}

    # ---------- internals (lock held) ----------

    def _precheck(self, connection_id: str) -> Optional[JoinOutcome]:
        profile = self.connections.get(connection_id)
        if profile is None:
            logger.debug(f"Ignoring join from unknown connection {connection_id}")
            return JoinOutcome.UNKNOWN_CONNECTION
        if not profile.nickname:
            logger.warning(f"Connection {connection_id} tried to join a room before setting a nickname")
            self.dispatcher.to_connection(connection_id, NICKNAME_REQUIRED)
            return JoinOutcome.NICKNAME_REQUIRED
        return None

    def _join(self, connection_id: str, room_name: str, password: Optional[str]) -> JoinOutcome:
        room = self.rooms.get(room_name)
        if room is None:
            logger.warning(f"Join failed: room {room_name!r} not found")
            self.dispatcher.to_connection(connection_id, ROOM_NOT_FOUND)
            return JoinOutcome.ROOM_NOT_FOUND

        if room.has_member(connection_id):
            self.dispatcher.to_connection(connection_id, ROOM_JOINED, {
                "roomName": room.name,
                "isAdmin": room.admin == connection_id,
            })
            return JoinOutcome.ALREADY_MEMBER

        if not room.check_password(password):
            logger.warning(f"Join failed: wrong password for room {room_name!r} from {connection_id}")
            self.dispatcher.to_connection(connection_id, WRONG_PASSWORD)
            return JoinOutcome.WRONG_PASSWORD

        if room.is_full:
            logger.warning(f"Join failed: room {room_name!r} is full ({room.member_count}/{room.max_members})")
            self.dispatcher.to_connection(connection_id, ROOM_FULL)
            return JoinOutcome.ROOM_FULL

        for previous in self.rooms.rooms_containing(connection_id):
            self._leave(previous, connection_id)

        nickname = self.connections.nickname(connection_id)
        room.members[connection_id] = None
        elected = len(room.members) == 1
        if elected:
            room.admin = connection_id

        self.dispatcher.to_connection(connection_id, ROOM_JOINED, {
            "roomName": room.name,
            "isAdmin": room.admin == connection_id,
        })
        self.dispatcher.to_room(room, USER_JOINED, nickname)
        self.dispatcher.room_list()
        if elected:
            self.dispatcher.to_connection(connection_id, NEW_ADMIN, nickname)
            logger.info(f"{connection_id} ({nickname!r}) is admin of {room.name!r}")

        logger.info(f"{connection_id} ({nickname!r}) joined {room.name!r} ({room.member_count} members)")
        self._check_invariants()
        return JoinOutcome.JOINED

    def _leave(self, room: Room, connection_id: str):
        nickname = self.connections.nickname(connection_id)
        del room.members[connection_id]
        self.dispatcher.to_room(room, USER_LEFT, nickname)
        logger.info(f"{connection_id} ({nickname!r}) left {room.name!r}")
        self._settle_after_departure(room, connection_id)
        self.dispatcher.room_list()

    def _settle_after_departure(self, room: Room, departed_id: str):
        if self.rooms.remove_if_empty(room.name):
            return
        if room.admin == departed_id:
            # earliest-joined remaining member takes over
            room.admin = next(iter(room.members))
            successor = self.connections.nickname(room.admin)
            self.dispatcher.to_room(room, NEW_ADMIN, successor)
            logger.info(f"{room.admin} ({successor!r}) is the new admin of {room.name!r}")

    def _check_invariants(self):
        self.rooms.check_invariants()
        for room in self.rooms.all_rooms():
            for member in room.member_ids():
                assert self.connections.nickname(member), f"member {member} of {room.name!r} has no nickname"
