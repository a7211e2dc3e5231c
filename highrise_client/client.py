# =============================================================================
# Highrise Gateway Client -- Async Client
# =============================================================================
#
# Primary public API. Wires AuthContext, SessionInfo, EventRouter and
# ConnectionSupervisor together and exposes handler registration.
# =============================================================================

from __future__ import annotations

import asyncio

from collections import defaultdict
from typing import Any, Awaitable, Callable, Iterable

from ._logging import logger
from ._tasks import BackgroundTasks
from .cache import CacheMutation, RoomCache
from .connection import ConnectionSupervisor
from .constants import (
    CONNECTION_TIMEOUT,
    GATEWAY_URL,
    HEARTBEAT_INTERVAL,
    RECONNECT_DELAY,
)
from .events import EventType, coerce
from .protocol import FrameCodec, new_request_id
from .router import EventRouter
from .types import (
    AuthContext,
    ConnectionState,
    GatewayEvent,
    RoomInfo,
    SessionContext,
    SessionInfo,
)

# Type alias for event handlers
EventHandler = Callable[[GatewayEvent], Any]
AsyncEventHandler = Callable[[GatewayEvent], Awaitable[Any]]


class HighriseClient:
    """Async bot client for the Highrise gateway.

    Args:
        token: 64-character bot API token.
        room_id: 24-character id of the room to join.
        events: Event types to subscribe to. Members of
            :class:`~highrise_client.events.EventType`, their tags
            (``"ChatEvent"``) or subscription codes (``"chat"``).
        cache: Optional room cache kept in sync with join/leave/move frames.
        url: Gateway endpoint.
        reconnect_delay: Fixed delay before each reconnect attempt.
        heartbeat_interval: Seconds between keepalive frames.
        connect_timeout: Max seconds to open the WebSocket.
        extra_headers: Additional HTTP headers for the handshake.

    Example::

        client = HighriseClient(token, room_id, events=["chat", "joins"])

        @client.on("ChatEvent")
        async def on_chat(event):
            print(event.payload["message"])

        async with client:
            await asyncio.Event().wait()
    """

    def __init__(
        self,
        token: str | None,
        room_id: str | None,
        *,
        events: Iterable[EventType | str],
        cache: RoomCache | None = None,
        url: str = GATEWAY_URL,
        reconnect_delay: float = RECONNECT_DELAY,
        heartbeat_interval: float = HEARTBEAT_INTERVAL,
        connect_timeout: float = CONNECTION_TIMEOUT,
        extra_headers: dict[str, str] | None = None,
    ) -> None:
        self._auth = AuthContext(token=token, room=RoomInfo(id=room_id))
        self._session = SessionInfo()
        self._codec = FrameCodec()
        self._cache = cache

        # Callback handlers: type -> list of handlers
        self._handlers: dict[str, list[EventHandler | AsyncEventHandler]] = defaultdict(
            list
        )
        self._wildcard_handlers: list[EventHandler | AsyncEventHandler] = []
        self._tasks = BackgroundTasks()

        self._router = EventRouter(
            self._auth,
            self._session,
            self._dispatch_event,
            codec=self._codec,
            cache_enabled=cache is not None,
        )
        if cache is not None:
            self._router.add_mutation_listener(self._apply_mutation)

        self._connection = ConnectionSupervisor(
            self._auth,
            self._session,
            self._router,
            events=coerce(events),
            url=url,
            codec=self._codec,
            reconnect_delay=reconnect_delay,
            heartbeat_interval=heartbeat_interval,
            connect_timeout=connect_timeout,
            extra_headers=extra_headers,
            on_state_change=self._on_state_change,
        )

    # -- Context manager ------------------------------------------------------

    async def __aenter__(self) -> HighriseClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.shutdown()

    # -- Lifecycle ------------------------------------------------------------

    async def connect(self) -> None:
        """Connect to the gateway. See :meth:`ConnectionSupervisor.connect`."""
        await self._connection.connect()

    async def change_room(self, room_id: str) -> bool:
        """Move the bot to another room by reconnecting."""
        if self._cache is not None and room_id != self._auth.room.id:
            self._clear_cache()
        return await self._connection.change_room(room_id)

    def reconnect(self, delay: float | None = None) -> bool:
        return self._connection.reconnect(delay)

    async def shutdown(self) -> bool:
        return await self._connection.shutdown()

    async def destroy(self) -> None:
        """Shut down for good and reset credentials and session identity."""
        await self._connection.destroy()
        self._tasks.cancel_all()
        self._clear_cache()

    def is_open(self) -> bool:
        return self._connection.is_open()

    # -- Properties -----------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._connection.state

    @property
    def auth(self) -> AuthContext:
        return self._auth

    @property
    def session(self) -> SessionContext:
        """Snapshot of the current session identity."""
        return SessionContext.capture(self._auth, self._session)

    @property
    def room_id(self) -> str | None:
        return self._auth.room.id

    @property
    def room_name(self) -> str | None:
        return self._auth.room.name

    @property
    def events(self) -> list[EventType]:
        return self._connection.events

    @property
    def cache(self) -> RoomCache | None:
        return self._cache

    # -- Send -----------------------------------------------------------------

    async def send_request(
        self, type: str, payload: dict[str, Any] | None = None
    ) -> str | None:
        """Send a request frame to the gateway.

        Returns:
            The request id used, or None if the frame was not sent.
        """
        rid = new_request_id()
        ok = await self._connection.send(
            self._codec.encode(type, payload, request_id=rid)
        )
        return rid if ok else None

    # -- Handler registration -------------------------------------------------

    def on(
        self, event_type: EventType | str
    ) -> Callable[[EventHandler | AsyncEventHandler], EventHandler | AsyncEventHandler]:
        """Decorator to register a handler for one frame type.

        Example::

            @client.on(EventType.USER_JOINED)
            async def welcome(event: GatewayEvent):
                ...
        """
        key = event_type.value if isinstance(event_type, EventType) else event_type

        def decorator(
            fn: EventHandler | AsyncEventHandler,
        ) -> EventHandler | AsyncEventHandler:
            self._handlers[key].append(fn)
            return fn

        return decorator

    def on_any(
        self, fn: EventHandler | AsyncEventHandler
    ) -> EventHandler | AsyncEventHandler:
        """Register a wildcard handler that receives all events."""
        self._wildcard_handlers.append(fn)
        return fn

    def off(
        self, event_type: EventType | str, fn: EventHandler | AsyncEventHandler
    ) -> None:
        """Remove a specific handler."""
        key = event_type.value if isinstance(event_type, EventType) else event_type
        handlers = self._handlers.get(key, [])
        if fn in handlers:
            handlers.remove(fn)

    # -- Stats ----------------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        """Return client statistics."""
        stats = self._connection.get_stats()
        stats["room_id"] = self._auth.room.id
        stats["room_name"] = self._auth.room.name
        stats["subscribed_events"] = [e.value for e in self._connection.events]
        stats["router"] = self._router.get_stats()
        stats["cached_users"] = (
            len(self._cache) if hasattr(self._cache, "__len__") else None
        )
        return stats

    # -- Internal -------------------------------------------------------------

    def _dispatch_event(self, event: GatewayEvent) -> None:
        """Handler pipeline: type-specific handlers first, then wildcards."""
        handlers = self._handlers.get(event.type, []) + self._wildcard_handlers
        for handler in handlers:
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    self._tasks.fire(result)
            except Exception as exc:
                logger.error("Handler error for '%s': %s", event.type, exc)

    def _apply_mutation(self, mutation: CacheMutation) -> Any:
        return mutation.apply_to(self._cache)

    def _clear_cache(self) -> None:
        clear = getattr(self._cache, "clear", None)
        if callable(clear):
            clear()

    def _on_state_change(self, state: ConnectionState) -> None:
        logger.debug("Client state changed: %s", state.value)
