from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from errors import NotFoundError
from logging_config import get_logger

logger = get_logger(__name__)


def utc_timestamp() -> str:
    """Current time as ISO-8601 UTC with millisecond precision, e.g. ``2024-01-01T12:00:00.000Z``."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class Member:
    connection_id: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    last_update: Optional[str] = None

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def location(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "lastUpdate": self.last_update,
        }


@dataclass
class Room:
    room_id: str
    created_at: str
    # user_id -> Member, in join order
    members: Dict[str, Member] = field(default_factory=dict)


@dataclass(frozen=True)
class Binding:
    room_id: str
    user_id: str


class SessionRegistry:
    """In-memory store of rooms, their members and the connection bindings.

    Membership and bindings are only ever changed together (``add_member`` /
    ``remove_member``), so a binding always points at a member whose
    ``connection_id`` is the bound connection. A room is deleted as soon as its
    last member is removed.
    """

    def __init__(self, clock: Callable[[], str] = utc_timestamp):
        self.clock = clock
        self.rooms: Dict[str, Room] = {}
        self.bindings: Dict[str, Binding] = {}

    def get_or_create_room(self, room_id: str) -> Room:
        room = self.rooms.get(room_id)
        if room is None:
            room = Room(room_id=room_id, created_at=self.clock())
            self.rooms[room_id] = room
            logger.info(f"Room {room_id} created")
        return room

    def get_room(self, room_id: str) -> Optional[Room]:
        return self.rooms.get(room_id)

    def add_member(self, room: Room, user_id: str, connection_id: str) -> Optional[str]:
        """Insert or overwrite ``user_id`` in ``room`` with unknown coordinates.

        Returns the id of another connection that previously held this user in the
        room (its binding is dropped), or None.
        """
        displaced = None
        previous = room.members.get(user_id)
        if previous is not None and previous.connection_id != connection_id:
            displaced = previous.connection_id
            self.bindings.pop(displaced, None)
            logger.info(f"User {user_id} in room {room.room_id} taken over from connection {displaced} by {connection_id}")

        room.members[user_id] = Member(connection_id=connection_id)
        self.bindings[connection_id] = Binding(room_id=room.room_id, user_id=user_id)
        logger.debug(f"User {user_id} added to room {room.room_id} on connection {connection_id}")
        return displaced

    def remove_member(self, room: Room, user_id: str):
        member = room.members.pop(user_id, None)
        if member is not None:
            binding = self.bindings.get(member.connection_id)
            if binding is not None and binding == Binding(room.room_id, user_id):
                del self.bindings[member.connection_id]
            logger.debug(f"User {user_id} removed from room {room.room_id}")

        if not room.members and self.rooms.get(room.room_id) is room:
            del self.rooms[room.room_id]
            logger.info(f"Room {room.room_id} deleted (empty)")

    def update_location(self, room: Room, user_id: str, latitude: float, longitude: float) -> str:
        member = room.members.get(user_id)
        if member is None:
            raise NotFoundError("User not found in room or room does not exist")
        timestamp = self.clock()
        member.latitude = latitude
        member.longitude = longitude
        member.last_update = timestamp
        return timestamp

    def snapshot_locations(self, room: Room, exclude_user_id: Optional[str] = None) -> Dict[str, dict]:
        """Known coordinates of the room's members, keyed by user id."""
        return {
            user_id: member.location()
            for user_id, member in room.members.items()
            if member.has_location and user_id != exclude_user_id
        }

    def get_binding(self, connection_id: str) -> Optional[Binding]:
        return self.bindings.get(connection_id)

    def member_ids(self, room: Room) -> List[str]:
        return list(room.members.keys())

    def connection_ids(self, room: Room, exclude: Optional[str] = None) -> List[str]:
        return [
            member.connection_id
            for member in room.members.values()
            if member.connection_id != exclude
        ]

    def room_count(self) -> int:
        return len(self.rooms)

    def user_count(self) -> int:
        return sum(len(room.members) for room in self.rooms.values())


session_registry = SessionRegistry()
