class LocationRelayError(Exception):
    """Base class for errors reported back to the originating connection."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(LocationRelayError):
    """The target room does not exist, or the user is not a member of it."""


class ValidationError(LocationRelayError):
    """An inbound payload is malformed or carries out-of-range coordinates."""
