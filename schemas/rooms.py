from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Dict, Optional


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StatusResponse(CamelModel):
    message: str
    timestamp: str
    active_rooms: int
    connected_users: int

class MemberLocation(CamelModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    last_update: Optional[str] = None

class RoomInfoResponse(CamelModel):
    exists: bool
    users: list[str]
    user_count: Optional[int] = None
    locations: Optional[Dict[str, MemberLocation]] = None
    message: Optional[str] = None
