"""Async session client for the Highrise bot gateway.

Usage::

    from highrise_client import EventType, HighriseClient

    client = HighriseClient(token, room_id, events=[EventType.CHAT])

    @client.on(EventType.CHAT)
    async def on_chat(event):
        print(event.session.room_name, event.payload["message"])

    async with client:
        await asyncio.Event().wait()

Optional extras::

    pip install highrise-client[fast]   # orjson
"""

from ._version import __version__
from .cache import (
    AddUser,
    CacheMutation,
    FetchUserCollection,
    MemoryRoomCache,
    RemoveUser,
    RoomCache,
    UpdatePosition,
)
from .client import HighriseClient
from .connection import ConnectionSupervisor
from .errors import (
    ClientMissingEventsError,
    ErrorCode,
    GatewayConnectionError,
    GatewayTimeoutError,
    HighriseError,
    RoomInvalidError,
    TokenInvalidError,
)
from .events import EventType
from .heartbeat import KeepAliveHeartbeat
from .router import EventRouter
from .types import (
    AnchorPosition,
    AuthContext,
    ConnectionState,
    GatewayEvent,
    Position,
    RoomInfo,
    SessionContext,
    SessionInfo,
)

__all__ = [
    "__version__",
    "HighriseClient",
    "ConnectionSupervisor",
    "EventRouter",
    "KeepAliveHeartbeat",
    "EventType",
    "GatewayEvent",
    "ConnectionState",
    "AuthContext",
    "RoomInfo",
    "SessionInfo",
    "SessionContext",
    "Position",
    "AnchorPosition",
    "RoomCache",
    "MemoryRoomCache",
    "CacheMutation",
    "AddUser",
    "RemoveUser",
    "UpdatePosition",
    "FetchUserCollection",
    "HighriseError",
    "ErrorCode",
    "TokenInvalidError",
    "RoomInvalidError",
    "ClientMissingEventsError",
    "GatewayConnectionError",
    "GatewayTimeoutError",
]
