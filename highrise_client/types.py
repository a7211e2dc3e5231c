# =============================================================================
# Highrise Gateway Client -- Type Definitions
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from .constants import ROOM_ID_LENGTH, TOKEN_LENGTH


class ConnectionState(str, Enum):
    """Gateway connection lifecycle state.

    Typical flow: DISCONNECTED -> CONNECTING -> CONNECTED. RECONNECTING
    follows a transport close/error, SHUTTING_DOWN is the transient state
    of a deliberate teardown.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    SHUTTING_DOWN = "shutting_down"


@dataclass
class RoomInfo:
    id: str | None = None
    name: str | None = None


@dataclass
class AuthContext:
    """Credential and target room needed to open a gateway session.

    Attributes:
        token: 64-character bot API token.
        room: Target room. ``room.name`` is filled in by the handshake.
    """

    token: str | None = None
    room: RoomInfo = field(default_factory=RoomInfo)

    def token_valid(self) -> bool:
        return bool(self.token) and len(self.token) == TOKEN_LENGTH

    def room_valid(self) -> bool:
        return bool(self.room.id) and len(self.room.id) == ROOM_ID_LENGTH

    def reset(self) -> None:
        self.token = None
        self.room.id = None
        self.room.name = None


@dataclass
class SessionInfo:
    """Session identity assigned by the server in ``SessionMetadata``."""

    user_id: str | None = None
    owner_id: str | None = None
    connection_id: str | None = None

    @property
    def established(self) -> bool:
        return self.connection_id is not None

    def clear(self) -> None:
        self.user_id = None
        self.owner_id = None
        self.connection_id = None


@dataclass(frozen=True, slots=True)
class SessionContext:
    """Read-only snapshot of auth and session state handed to handlers."""

    room_id: str | None = None
    room_name: str | None = None
    user_id: str | None = None
    owner_id: str | None = None
    connection_id: str | None = None

    @classmethod
    def capture(cls, auth: AuthContext, session: SessionInfo) -> SessionContext:
        return cls(
            room_id=auth.room.id,
            room_name=auth.room.name,
            user_id=session.user_id,
            owner_id=session.owner_id,
            connection_id=session.connection_id,
        )


def _coerce(value: Any, kind: type, default: Any) -> Any:
    """Convert a payload number, falling back to *default* when malformed."""
    if value is None:
        return default
    try:
        return kind(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True, slots=True)
class Position:
    """A point in the room plus the direction the avatar faces."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    facing: str | None = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any] | None) -> Position:
        if not isinstance(data, Mapping):
            data = {}
        facing = data.get("facing")
        return cls(
            x=_coerce(data.get("x"), float, 0.0),
            y=_coerce(data.get("y"), float, 0.0),
            z=_coerce(data.get("z"), float, 0.0),
            facing=facing if isinstance(facing, str) else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {"x": self.x, "y": self.y, "z": self.z, "facing": self.facing}


@dataclass(frozen=True, slots=True)
class AnchorPosition:
    """A seat or other anchor on a room entity, sent instead of coordinates."""

    entity_id: str
    anchor_ix: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"entity_id": self.entity_id, "anchor_ix": self.anchor_ix}


def parse_position(data: Mapping[str, Any] | None) -> Position | AnchorPosition:
    """Build the right position type for a ``position`` payload field."""
    entity_id = data.get("entity_id") if isinstance(data, Mapping) else None
    if entity_id and isinstance(entity_id, str):
        return AnchorPosition(
            entity_id=entity_id,
            anchor_ix=_coerce(data.get("anchor_ix"), int, 0),
        )
    return Position.from_payload(data)


@dataclass(frozen=True, slots=True)
class GatewayEvent:
    """A recognized frame received from the gateway.

    Attributes:
        type: The frame's ``_type`` tag, e.g. ``"ChatEvent"``.
        payload: The full decoded frame.
        session: Snapshot of session identity at dispatch time.
    """

    type: str
    payload: dict[str, Any]
    session: SessionContext = field(default_factory=SessionContext)
