"""Room protocol: turns inbound connection events into registry mutations and outbound messages.

Every handler runs synchronously to completion. Member lists and location
snapshots are read from the registry after the mutation has been applied, so
what a client is told always reflects the post-event state.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Type, TypeVar

import pydantic

import events
from backend import Binding, SessionRegistry
from errors import LocationRelayError, NotFoundError, ValidationError
from logging_config import get_logger
from schemas.events import (
    EventPayload,
    GetAllLocationsPayload,
    JoinRoomPayload,
    LeaveRoomPayload,
    ShareLocationPayload,
)

logger = get_logger(__name__)

P = TypeVar("P", bound=EventPayload)


@dataclass(frozen=True)
class OutboundMessage:
    connection_id: str
    event: str
    data: Dict[str, Any]

    def frame(self) -> dict:
        return {"event": self.event, "data": self.data}


def _format_validation_error(event: str, exc: pydantic.ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "payload"
        problems.append(f"{location}: {error.get('msg')}")
    return f"Invalid {event} payload: " + "; ".join(problems)


class RoomProtocolHandler:
    def __init__(self, registry: SessionRegistry):
        self.registry = registry
        self._handlers: Dict[str, Callable[[str, Any], List[OutboundMessage]]] = {
            events.JOIN_ROOM: self.join_room,
            events.SHARE_LOCATION: self.share_location,
            events.GET_ALL_LOCATIONS: self.get_all_locations,
            events.LEAVE_ROOM: self.leave_room,
        }

    def handle(self, connection_id: str, event: str, data: Any = None) -> List[OutboundMessage]:
        """Process one inbound event and return the messages it produces.

        NotFound and validation failures never propagate: they become a single
        ``error`` message addressed to the sender, and the registry is left as it was.
        """
        handler = self._handlers.get(event)
        if handler is None:
            logger.warning(f"Unknown event '{event}' from connection {connection_id}")
            return [self.error(connection_id, f"Unknown event: {event}")]
        try:
            return handler(connection_id, data)
        except LocationRelayError as e:
            logger.warning(f"{event} from connection {connection_id} rejected: {e.message}")
            return [self.error(connection_id, e.message)]

    def join_room(self, connection_id: str, data: Any) -> List[OutboundMessage]:
        payload = self._parse(JoinRoomPayload, events.JOIN_ROOM, data)
        room_id, user_id = payload.room_id, payload.user_id
        logger.info(f"User {user_id} joining room {room_id} (connection {connection_id})")

        messages: List[OutboundMessage] = []

        # A connection is never a member of two rooms (or two identities) at once
        binding = self.registry.get_binding(connection_id)
        if binding is not None and binding != Binding(room_id=room_id, user_id=user_id):
            messages.extend(self._unbind(connection_id, binding))

        room = self.registry.get_or_create_room(room_id)
        displaced = self.registry.add_member(room, user_id, connection_id)
        if displaced:
            logger.info(f"Connection {displaced} no longer bound to {user_id} in room {room_id}")

        users_in_room = self.registry.member_ids(room)
        messages.append(OutboundMessage(connection_id, events.JOINED_ROOM, {
            "success": True,
            "roomId": room_id,
            "userId": user_id,
            "message": f"Successfully joined room {room_id}",
            "usersInRoom": users_in_room,
        }))

        for other in self.registry.connection_ids(room, exclude=connection_id):
            messages.append(OutboundMessage(other, events.USER_JOINED, {
                "userId": user_id,
                "message": f"{user_id} joined the room",
                "usersInRoom": list(users_in_room),
            }))

        existing_locations = self.registry.snapshot_locations(room, exclude_user_id=user_id)
        if existing_locations:
            messages.append(OutboundMessage(connection_id, events.EXISTING_LOCATIONS, existing_locations))

        logger.info(f"Room {room_id} now has {len(users_in_room)} users")
        return messages

    def share_location(self, connection_id: str, data: Any) -> List[OutboundMessage]:
        payload = self._parse(ShareLocationPayload, events.SHARE_LOCATION, data)
        room_id, user_id = payload.room_id, payload.user_id
        logger.debug(f"Location update from {user_id} in room {room_id}: {payload.latitude}, {payload.longitude}")

        room = self.registry.get_room(room_id)
        if room is None:
            raise NotFoundError("User not found in room or room does not exist")
        timestamp = self.registry.update_location(room, user_id, payload.latitude, payload.longitude)

        messages = [
            OutboundMessage(other, events.LOCATION_UPDATE, {
                "userId": user_id,
                "latitude": payload.latitude,
                "longitude": payload.longitude,
                "timestamp": timestamp,
            })
            for other in self.registry.connection_ids(room, exclude=connection_id)
        ]
        messages.append(OutboundMessage(connection_id, events.LOCATION_SHARED, {
            "success": True,
            "message": "Location shared successfully",
            "timestamp": timestamp,
        }))
        logger.debug(f"Location from {user_id} relayed to {len(messages) - 1} connections in room {room_id}")
        return messages

    def get_all_locations(self, connection_id: str, data: Any) -> List[OutboundMessage]:
        payload = self._parse(GetAllLocationsPayload, events.GET_ALL_LOCATIONS, data)
        room = self.registry.get_room(payload.room_id)
        if room is None:
            raise NotFoundError("Room not found")
        return [OutboundMessage(connection_id, events.ALL_LOCATIONS, self.registry.snapshot_locations(room))]

    def leave_room(self, connection_id: str, data: Any = None) -> List[OutboundMessage]:
        self._parse(LeaveRoomPayload, events.LEAVE_ROOM, data if data is not None else {})
        return self.disconnect(connection_id)

    def disconnect(self, connection_id: str) -> List[OutboundMessage]:
        """Drop the connection's binding, if any. Shared by leave-room and socket close."""
        binding = self.registry.get_binding(connection_id)
        if binding is None:
            return []
        return self._unbind(connection_id, binding)

    def _unbind(self, connection_id: str, binding: Binding) -> List[OutboundMessage]:
        room = self.registry.get_room(binding.room_id)
        if room is None:
            # Bindings are removed with their room; nothing to announce
            self.registry.bindings.pop(connection_id, None)
            return []

        self.registry.remove_member(room, binding.user_id)
        logger.info(f"User {binding.user_id} left room {binding.room_id} (connection {connection_id})")

        users_in_room = self.registry.member_ids(room)
        return [
            OutboundMessage(other, events.USER_LEFT, {
                "userId": binding.user_id,
                "message": f"{binding.user_id} left the room",
                "usersInRoom": list(users_in_room),
            })
            for other in self.registry.connection_ids(room)
        ]

    def _parse(self, model: Type[P], event: str, data: Any) -> P:
        try:
            return model.model_validate(data)
        except pydantic.ValidationError as e:
            raise ValidationError(_format_validation_error(event, e)) from e

    @staticmethod
    def error(connection_id: str, message: str) -> OutboundMessage:
        return OutboundMessage(connection_id, events.ERROR, {"message": message})
