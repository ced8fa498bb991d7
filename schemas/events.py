from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from constants import MAX_LATITUDE, MAX_LONGITUDE, MIN_LATITUDE, MIN_LONGITUDE


class EventPayload(BaseModel):
    # Clients send camelCase keys (roomId, userId)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JoinRoomPayload(EventPayload):
    room_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)


class ShareLocationPayload(EventPayload):
    room_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    # strict: JSON numbers only, no numeric strings or booleans
    latitude: float = Field(ge=MIN_LATITUDE, le=MAX_LATITUDE, allow_inf_nan=False, strict=True)
    longitude: float = Field(ge=MIN_LONGITUDE, le=MAX_LONGITUDE, allow_inf_nan=False, strict=True)


class GetAllLocationsPayload(EventPayload):
    room_id: str = Field(min_length=1)


class LeaveRoomPayload(EventPayload):
    pass
