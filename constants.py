import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

RELOAD = os.getenv("RELOAD", "false").lower() in ("1", "true", "yes")

MIN_LATITUDE, MAX_LATITUDE = -90.0, 90.0
MIN_LONGITUDE, MAX_LONGITUDE = -180.0, 180.0

# Frames buffered per connection before a stalled client is disconnected
OUTGOING_QUEUE_SIZE = int(os.getenv("OUTGOING_QUEUE_SIZE", 256))
