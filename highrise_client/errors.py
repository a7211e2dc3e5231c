# =============================================================================
# Highrise Gateway Client -- Error Types
# =============================================================================

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Stable codes surfaced on every :class:`HighriseError`."""

    TOKEN_INVALID = "TokenInvalid"
    ROOM_INVALID = "RoomInvalid"
    CLIENT_MISSING_EVENTS = "ClientMissingEvents"
    CONNECTION_FAILED = "ConnectionFailed"
    CONNECTION_TIMEOUT = "ConnectionTimeout"


_MESSAGES = {
    ErrorCode.TOKEN_INVALID: "API token must be exactly 64 characters",
    ErrorCode.ROOM_INVALID: "Room id must be exactly 24 characters",
    ErrorCode.CLIENT_MISSING_EVENTS: "Client must subscribe to at least one event",
    ErrorCode.CONNECTION_FAILED: "Failed to open gateway connection",
    ErrorCode.CONNECTION_TIMEOUT: "Gateway connection timed out",
}


class HighriseError(Exception):
    """Base exception for all client errors."""

    code: ErrorCode = ErrorCode.CONNECTION_FAILED

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or _MESSAGES[self.code])


class TokenInvalidError(HighriseError):
    """Missing API token or wrong length."""

    code = ErrorCode.TOKEN_INVALID


class RoomInvalidError(HighriseError):
    """Missing room id or wrong length."""

    code = ErrorCode.ROOM_INVALID


class ClientMissingEventsError(HighriseError):
    """No subscribable events were configured."""

    code = ErrorCode.CLIENT_MISSING_EVENTS


class GatewayConnectionError(HighriseError):
    """The WebSocket could not be opened."""

    code = ErrorCode.CONNECTION_FAILED


class GatewayTimeoutError(GatewayConnectionError):
    """Opening the WebSocket took longer than the connect timeout."""

    code = ErrorCode.CONNECTION_TIMEOUT
