from fastapi import APIRouter, Request
from schemas.rooms import MemberLocation, RoomInfoResponse
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/room", tags=["rooms"])


@rooms_router.get("/{room_id}", response_model=RoomInfoResponse, response_model_exclude_unset=True)
async def get_room_info(room_id: str, request: Request):
    """
    Read-through view of a room in the session registry.

    Returns:
    - exists: Whether the room currently has members
    - users: Member user ids in join order
    - userCount: Number of members
    - locations: user id -> last known latitude/longitude/lastUpdate (null until first update)
    """
    client_host = request.client.host if request.client else 'unknown'
    logger.info(f"Room info request for {room_id} from {client_host}")

    registry = request.app.state.registry
    room = registry.get_room(room_id)
    if room is None:
        logger.debug(f"Room info: room {room_id} not found")
        return RoomInfoResponse(exists=False, users=[], message="Room not found")

    return RoomInfoResponse(
        exists=True,
        users=registry.member_ids(room),
        user_count=len(room.members),
        locations={
            user_id: MemberLocation(
                latitude=member.latitude,
                longitude=member.longitude,
                last_update=member.last_update,
            )
            for user_id, member in room.members.items()
        },
    )
