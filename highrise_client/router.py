# =============================================================================
# Highrise Gateway Client -- Event Router
# =============================================================================
#
# Turns raw gateway frames into GatewayEvents. Per frame, synchronously:
#   decode -> vocabulary check -> handshake identity -> handler pipeline
#   -> cache mutations
# =============================================================================

from __future__ import annotations

import asyncio
from typing import Any, Callable, Mapping

from . import events as _events
from ._logging import logger
from ._tasks import BackgroundTasks
from .cache import (
    AddUser,
    CacheMutation,
    FetchUserCollection,
    RemoveUser,
    UpdatePosition,
)
from .constants import TYPE_FIELD
from .events import HANDSHAKE_EVENT, MEMBERSHIP_EVENTS, EventType
from .protocol import FrameCodec
from .types import (
    AuthContext,
    GatewayEvent,
    SessionContext,
    SessionInfo,
    parse_position,
)

Dispatcher = Callable[[GatewayEvent], Any]
MutationListener = Callable[[CacheMutation], Any]


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


class EventRouter:
    """Route decoded frames to the handler pipeline and cache listeners.

    The router reads and writes the supervisor's :class:`AuthContext` and
    :class:`SessionInfo` by reference, but only the handshake frame writes.

    Args:
        auth: Shared auth context (room name is filled from the handshake).
        session: Shared session identity.
        dispatch: Handler pipeline entry point, called once per event.
        codec: Frame decoder.
        cache_enabled: Emit cache mutations for membership frames.
    """

    def __init__(
        self,
        auth: AuthContext,
        session: SessionInfo,
        dispatch: Dispatcher | None = None,
        *,
        codec: FrameCodec | None = None,
        cache_enabled: bool = False,
    ) -> None:
        self._auth = auth
        self._session = session
        self._dispatch = dispatch
        self._codec = codec or FrameCodec()
        self.cache_enabled = cache_enabled
        self._mutation_listeners: list[MutationListener] = []
        self._tasks = BackgroundTasks()

        self.frames_received = 0
        self.frames_dropped = 0
        self.events_dispatched = 0

        # Mutation builders for membership frames (tag -> builder)
        self._mutation_builders: dict[
            EventType, Callable[[Mapping[str, Any]], CacheMutation | None]
        ] = {
            EventType.USER_JOINED: self._build_add_user,
            EventType.USER_LEFT: self._build_remove_user,
            EventType.USER_MOVED: self._build_update_position,
        }

    # -- Listener registration ------------------------------------------------

    def add_mutation_listener(self, fn: MutationListener) -> MutationListener:
        if fn not in self._mutation_listeners:
            self._mutation_listeners.append(fn)
        return fn

    def remove_mutation_listener(self, fn: MutationListener) -> None:
        if fn in self._mutation_listeners:
            self._mutation_listeners.remove(fn)

    # -- Routing --------------------------------------------------------------

    def route(self, data: str | bytes) -> GatewayEvent | None:
        """Decode one raw frame and route it. Returns the dispatched event."""
        self.frames_received += 1
        frame = self._codec.decode(data)
        if frame is None:
            self.frames_dropped += 1
            return None
        return self.route_frame(frame)

    def route_frame(self, frame: Mapping[str, Any]) -> GatewayEvent | None:
        tag = frame.get(TYPE_FIELD)
        if not tag or not isinstance(tag, str):
            self.frames_dropped += 1
            return None

        event_type = _events.lookup(tag)
        if event_type is None:
            logger.debug("Ignoring unknown event type '%s'", tag)
            self.frames_dropped += 1
            return None

        is_handshake = event_type is HANDSHAKE_EVENT
        if is_handshake:
            self._apply_session_metadata(frame)

        event = GatewayEvent(
            type=tag,
            payload=dict(frame),
            session=SessionContext.capture(self._auth, self._session),
        )
        self._invoke_dispatch(event)

        if self.cache_enabled:
            if is_handshake:
                self._emit(FetchUserCollection())
            if event_type in MEMBERSHIP_EVENTS:
                mutation = self._mutation_builders[event_type](frame)
                if mutation is not None:
                    self._emit(mutation)

        return event

    # -- Handshake ------------------------------------------------------------

    def _apply_session_metadata(self, frame: Mapping[str, Any]) -> None:
        room_info = _mapping(frame.get("room_info"))
        self._auth.room.name = room_info.get("room_name")
        self._session.user_id = frame.get("user_id")
        self._session.owner_id = room_info.get("owner_id")
        self._session.connection_id = frame.get("connection_id")
        logger.info(
            "Session established (room=%s, user_id=%s, connection_id=%s)",
            self._auth.room.name,
            self._session.user_id,
            self._session.connection_id,
        )

    # -- Cache mutations ------------------------------------------------------

    @staticmethod
    def _user_id(frame: Mapping[str, Any]) -> str | None:
        user_id = _mapping(frame.get("user")).get("id")
        return user_id if isinstance(user_id, str) else None

    def _build_add_user(self, frame: Mapping[str, Any]) -> CacheMutation | None:
        user_id = self._user_id(frame)
        if user_id is None:
            return None
        user = _mapping(frame.get("user"))
        return AddUser(
            user_id,
            {
                "id": user_id,
                "username": user.get("username"),
                "position": parse_position(frame.get("position")),
            },
        )

    def _build_remove_user(self, frame: Mapping[str, Any]) -> CacheMutation | None:
        user_id = self._user_id(frame)
        return RemoveUser(user_id) if user_id is not None else None

    def _build_update_position(
        self, frame: Mapping[str, Any]
    ) -> CacheMutation | None:
        user_id = self._user_id(frame)
        if user_id is None:
            return None
        return UpdatePosition(user_id, parse_position(frame.get("position")))

    def _emit(self, mutation: CacheMutation) -> None:
        for listener in list(self._mutation_listeners):
            try:
                result = listener(mutation)
                if asyncio.iscoroutine(result):
                    self._tasks.fire(result)
            except Exception as exc:
                logger.error(
                    "Cache listener error for %s: %s", type(mutation).__name__, exc
                )

    # -- Dispatch -------------------------------------------------------------

    def _invoke_dispatch(self, event: GatewayEvent) -> None:
        if self._dispatch is None:
            return
        try:
            result = self._dispatch(event)
            if asyncio.iscoroutine(result):
                self._tasks.fire(result)
        except Exception as exc:
            logger.error("Handler pipeline error for '%s': %s", event.type, exc)
        self.events_dispatched += 1

    def cancel_background_tasks(self) -> None:
        self._tasks.cancel_all()

    def get_stats(self) -> dict[str, Any]:
        return {
            "frames_received": self.frames_received,
            "frames_dropped": self.frames_dropped,
            "events_dispatched": self.events_dispatched,
            "cache_enabled": self.cache_enabled,
        }
