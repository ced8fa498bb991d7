# Inbound events (client -> server)
JOIN_ROOM = "join-room"
SHARE_LOCATION = "share-location"
GET_ALL_LOCATIONS = "get-all-locations"
LEAVE_ROOM = "leave-room"

# Outbound events (server -> client)
JOINED_ROOM = "joined-room"
EXISTING_LOCATIONS = "existing-locations"
USER_JOINED = "user-joined"
LOCATION_UPDATE = "location-update"
LOCATION_SHARED = "location-shared"
ALL_LOCATIONS = "all-locations"
USER_LEFT = "user-left"
ERROR = "error"

# **Frame shape** (both directions)
# - `{"event": "<name>", "data": {...}}` as a JSON text frame
# - `disconnect` has no frame: closing the socket is the event
