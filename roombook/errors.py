# Custom exceptions used throughout the project.


class RoombookError(Exception):
    """Base class for every error raised by this package."""


class InvalidIntervalError(RoombookError, ValueError):
    """
    Raised when a time or interval cannot be used for booking:
        1. "HH:MM" text that does not parse
        2. end time not after start time
        3. values outside the 00:00-24:00 day
    """


class UnknownRoomError(RoombookError, LookupError):
    """Raised when a room name is not one of the configured target rooms."""

    def __init__(self, room_name: str, known: list[str] | None = None):
        self.room_name = room_name
        self.known = known or []
        message = f'Unknown room "{room_name}"'
        if self.known:
            message += f". Available rooms: {', '.join(self.known)}"
        super().__init__(message)


class GroupwareError(RoombookError):
    """The groupware portal could not be reached or answered unexpectedly."""


class LoginError(GroupwareError):
    """Login to the groupware portal failed."""


class SessionStateError(RoombookError):
    """A browser session operation was attempted in the wrong lifecycle state."""


class CalendarError(RoombookError):
    """Google Calendar is not configured or rejected the request."""
