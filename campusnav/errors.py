"""Exceptions raised by campusnav services."""

from enum import IntEnum
from typing import Optional


class NavigationError(Exception):
    """Base class for campusnav errors"""


class PositionErrorKind(IntEnum):
    # Values follow the W3C GeolocationPositionError codes
    UNSUPPORTED = 0
    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3


_POSITION_ERROR_MESSAGES = {
    PositionErrorKind.UNSUPPORTED: "Geolocation not supported",
    PositionErrorKind.PERMISSION_DENIED: "Location access denied by user",
    PositionErrorKind.POSITION_UNAVAILABLE: "Location information unavailable",
    PositionErrorKind.TIMEOUT: "Location request timeout",
}


class PositionUnavailable(NavigationError):
    """The positioning capability could not produce a fix"""

    def __init__(self, kind: PositionErrorKind, message: Optional[str] = None):
        self.kind = PositionErrorKind(kind)
        self.message = message or _POSITION_ERROR_MESSAGES.get(self.kind, "Unknown location error")
        super().__init__(self.message)

    @classmethod
    def from_code(cls, code: int, message: Optional[str] = None) -> "PositionUnavailable":
        try:
            kind = PositionErrorKind(code)
        except ValueError:
            kind = PositionErrorKind.POSITION_UNAVAILABLE
        return cls(kind, message)

    def to_dict(self) -> dict:
        return {"code": int(self.kind), "kind": self.kind.name.lower(), "message": self.message}


class LocationUnavailable(NavigationError):
    """No starting location could be resolved, so navigation did not start"""


class RouteRecalculationFailed(NavigationError):
    """A replacement route could not be fetched"""
