# =============================================================================
# Highrise Gateway Client -- Connection Supervisor
# =============================================================================
#
# WebSocket lifecycle management: validate, connect, heartbeat, reconnect,
# shutdown. The only component allowed to change ConnectionState.
# =============================================================================

from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable

import websockets
import websockets.asyncio.client
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from ._logging import logger
from ._tasks import BackgroundTasks
from .constants import (
    CLIENT_VERSION,
    CONNECTION_TIMEOUT,
    GATEWAY_URL,
    HEADER_API_TOKEN,
    HEADER_ROOM_ID,
    HEARTBEAT_INTERVAL,
    MAX_MESSAGE_SIZE,
    RECONNECT_DELAY,
    WS_CLOSE_NORMAL,
)
from .errors import (
    ClientMissingEventsError,
    GatewayConnectionError,
    HighriseError,
    GatewayTimeoutError,
    RoomInvalidError,
    TokenInvalidError,
)
from .events import EventType, subscription_param
from .heartbeat import KeepAliveHeartbeat
from .protocol import FrameCodec
from .router import EventRouter
from .types import AuthContext, ConnectionState, SessionInfo

# Caller mistakes; retrying with the same input cannot succeed.
_VALIDATION_ERRORS = (ClientMissingEventsError, TokenInvalidError, RoomInvalidError)


class ConnectionSupervisor:
    """Owns the gateway WebSocket, its heartbeat and its reconnect timer.

    Transport reactions (frames, close, error) and both timers run as
    tasks on one event loop, so shared state needs no locking. Every
    timer is cancelled before it is rearmed.

    Args:
        auth: Credentials and target room, shared with the router.
        session: Session identity, shared with the router.
        router: Receives every inbound frame.
        events: Subscribed event types.
        url: Gateway endpoint without query string.
        reconnect_delay: Fixed delay before each reconnect attempt.
        heartbeat_interval: Seconds between keepalive frames.
        connect_timeout: Max seconds for the WebSocket open handshake.
        extra_headers: Additional HTTP headers for the handshake.
        on_state_change: Called after every state transition.
    """

    def __init__(
        self,
        auth: AuthContext,
        session: SessionInfo,
        router: EventRouter,
        *,
        events: Iterable[EventType],
        url: str = GATEWAY_URL,
        codec: FrameCodec | None = None,
        reconnect_delay: float = RECONNECT_DELAY,
        heartbeat_interval: float = HEARTBEAT_INTERVAL,
        connect_timeout: float = CONNECTION_TIMEOUT,
        extra_headers: dict[str, str] | None = None,
        on_state_change: Callable[[ConnectionState], Any] | None = None,
    ) -> None:
        self._auth = auth
        self._session = session
        self._router = router
        self._events = list(events)
        self._url = url
        self._codec = codec or FrameCodec()
        self._connect_timeout = connect_timeout
        self._extra_headers = extra_headers or {}
        self._on_state_change = on_state_change

        # State
        self._ws: websockets.asyncio.client.ClientConnection | None = None
        self._state = ConnectionState.DISCONNECTED
        self._default_reconnect_delay = reconnect_delay
        self._reconnect_delay = reconnect_delay
        self._reconnect_pending = False
        self.reconnect_count = 0

        # Tasks
        self._recv_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._tasks = BackgroundTasks()
        # Resolves with None or the error of the in-flight connect attempt
        self._connect_waiter: asyncio.Future[HighriseError | None] | None = None

        self._heartbeat = KeepAliveHeartbeat(
            self.send,
            self._codec.keepalive,
            is_active=lambda: self._state == ConnectionState.CONNECTED,
            interval=heartbeat_interval,
        )

    # -- Properties -----------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def events(self) -> list[EventType]:
        return list(self._events)

    @property
    def heartbeat(self) -> KeepAliveHeartbeat:
        return self._heartbeat

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_pending

    def is_open(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    # -- Connect --------------------------------------------------------------

    def _validate(self) -> str:
        """Check credentials and subscriptions; return the events parameter."""
        events = subscription_param(self._events)
        if not events:
            raise ClientMissingEventsError()
        if not self._auth.token_valid():
            raise TokenInvalidError()
        if not self._auth.room_valid():
            raise RoomInvalidError()
        return events

    async def connect(self) -> None:
        """Validate, open the WebSocket and start the heartbeat.

        Raises:
            ClientMissingEventsError: No subscribable events.
            TokenInvalidError: Token missing or not 64 characters.
            RoomInvalidError: Room id missing or not 24 characters.
            GatewayConnectionError: The WebSocket could not be opened.

        A call made while another attempt is in flight waits for that
        attempt and shares its outcome.
        """
        events = self._validate()
        waiter = self._connect_waiter
        if waiter is not None and not waiter.done():
            logger.warning("Connect already in progress, waiting for it")
            error = await asyncio.shield(waiter)
            if error is not None:
                raise error
            return

        waiter = asyncio.get_running_loop().create_future()
        self._connect_waiter = waiter
        error = None
        try:
            await self._open(events)
        except HighriseError as exc:
            error = exc
            raise
        except asyncio.CancelledError:
            error = GatewayConnectionError("Connect attempt was cancelled")
            raise
        finally:
            if not waiter.done():
                waiter.set_result(error)
            if self._connect_waiter is waiter:
                self._connect_waiter = None

    async def _open(self, events: str) -> None:
        if self._ws is not None:
            logger.info("Gateway connection already open, closing it first")
            await self._teardown_transport("Reconnecting")

        self._set_state(ConnectionState.CONNECTING)
        url = self._build_url(events)
        headers = dict(self._extra_headers)
        headers[HEADER_ROOM_ID] = self._auth.room.id
        headers[HEADER_API_TOKEN] = self._auth.token

        try:
            ws = await asyncio.wait_for(
                websockets.asyncio.client.connect(
                    url,
                    additional_headers=headers,
                    user_agent_header=f"highrise-client/{CLIENT_VERSION}",
                    max_size=MAX_MESSAGE_SIZE,
                    ping_interval=None,  # KeepaliveRequest frames instead
                    open_timeout=None,  # asyncio.wait_for handles timeout
                ),
                timeout=self._connect_timeout,
            )
        except asyncio.TimeoutError:
            self._set_state(ConnectionState.DISCONNECTED)
            raise GatewayTimeoutError(
                f"Connection timed out after {self._connect_timeout}s"
            )
        except asyncio.CancelledError:
            self._set_state(ConnectionState.DISCONNECTED)
            raise
        except Exception as exc:
            self._set_state(ConnectionState.DISCONNECTED)
            raise GatewayConnectionError(f"Failed to connect: {exc}") from exc

        self._ws = ws
        self._attach_listeners(ws)
        self._set_state(ConnectionState.CONNECTED)
        logger.info(
            "Connected to room %s using highrise-client v%s",
            self._auth.room.id,
            CLIENT_VERSION,
        )
        self._heartbeat.start()

        if self._reconnect_task is not asyncio.current_task():
            # A manual connect supersedes any pending reconnect
            self._clear_pending_reconnect()

    # -- Room change ----------------------------------------------------------

    async def change_room(self, new_room_id: str) -> bool:
        """Shut down, switch the room id, and connect again.

        Returns False when already targeting *new_room_id*. Errors from the
        new ``connect()`` propagate and leave the state DISCONNECTED.
        """
        if self._auth.room.id == new_room_id:
            logger.info("Already connected to room %s", new_room_id)
            return False

        logger.info("Changing room %s -> %s", self._auth.room.id, new_room_id)
        await self.shutdown()
        self._auth.room.id = new_room_id
        self._auth.room.name = None
        await self.connect()
        return True

    # -- Reconnect ------------------------------------------------------------

    def reconnect(self, delay: float | None = None) -> bool:
        """Schedule one delayed ``connect()``.

        At most one reconnect is ever pending; extra calls are no-ops and
        return False. *delay* overrides the fixed delay for this cycle only.
        """
        if self._reconnect_pending:
            logger.info("Reconnect already pending, skipping")
            return False

        self._reconnect_pending = True
        if delay is not None:
            self._reconnect_delay = delay
        self._cancel_reconnect()
        self._set_state(ConnectionState.RECONNECTING)

        logger.info("Attempting to reconnect in %.1fs", self._reconnect_delay)
        self._reconnect_task = asyncio.ensure_future(
            self._reconnect_after(self._reconnect_delay)
        )
        return True

    async def _reconnect_after(self, delay: float) -> None:
        """Wait, then try to reconnect."""
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            return

        self._reconnect_pending = False
        self._session.clear()
        self._detach_listeners()
        self.reconnect_count += 1

        try:
            await self.connect()
        except _VALIDATION_ERRORS as exc:
            logger.error("Reconnect aborted: %s", exc)
            await self._teardown_transport("Reconnect aborted")
            self._set_state(ConnectionState.DISCONNECTED)
        except GatewayConnectionError as exc:
            logger.warning("Reconnect attempt failed: %s", exc)
            self._reconnect_delay = self._default_reconnect_delay
            self._reconnect_task = None
            self.reconnect()
            return

        self._reconnect_delay = self._default_reconnect_delay
        if self._reconnect_task is asyncio.current_task():
            self._reconnect_task = None

    def _clear_pending_reconnect(self) -> asyncio.Task[None] | None:
        self._reconnect_pending = False
        self._reconnect_delay = self._default_reconnect_delay
        return self._cancel_reconnect()

    def _cancel_reconnect(self) -> asyncio.Task[None] | None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            return task
        return None

    # -- Shutdown / Destroy ---------------------------------------------------

    async def shutdown(self) -> bool:
        """Graceful teardown. Returns False if there was nothing to tear down."""
        if (
            self._state == ConnectionState.DISCONNECTED
            and self._ws is None
            and self._reconnect_task is None
        ):
            logger.info("Gateway connection is already shut down")
            return False

        logger.info("Shutting down gateway connection")
        self._set_state(ConnectionState.SHUTTING_DOWN)
        reconnect_task = self._clear_pending_reconnect()
        if reconnect_task is not None:
            await asyncio.gather(reconnect_task, return_exceptions=True)

        await self._teardown_transport("Client shutdown")
        self._session.clear()
        self._set_state(ConnectionState.DISCONNECTED)
        return True

    async def destroy(self) -> None:
        """Shut down and forget credentials and session identity."""
        await self.shutdown()
        self._router.cancel_background_tasks()
        self._auth.reset()
        self._session.clear()
        logger.info("Gateway connection destroyed")

    # -- Send -----------------------------------------------------------------

    async def send(self, data: str) -> bool:
        """Send a text frame. Returns True on success."""
        ws = self._ws
        if ws is None:
            return False
        try:
            await ws.send(data)
            return True
        except ConnectionClosed:
            logger.debug("Send failed: connection closed")
            return False
        except Exception as exc:
            logger.debug("Send failed: %s", exc)
            return False

    # -- Internal: transport listeners ----------------------------------------

    def _attach_listeners(self, ws: Any) -> None:
        self._detach_listeners()
        self._recv_task = asyncio.ensure_future(self._recv_loop(ws))

    def _detach_listeners(self) -> asyncio.Task[None] | None:
        task = self._recv_task
        self._recv_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            return task
        return None

    async def _teardown_transport(self, reason: str) -> None:
        """Stop the heartbeat, detach listeners, close the socket."""
        ws = self._ws
        self._ws = None
        await self._heartbeat.wait_stopped()
        recv_task = self._detach_listeners()
        if recv_task is not None:
            await asyncio.gather(recv_task, return_exceptions=True)
        if ws is not None:
            await self._close_quietly(ws, reason)

    async def _close_quietly(self, ws: Any, reason: str) -> None:
        try:
            await ws.close(WS_CLOSE_NORMAL, reason)
        except Exception as exc:
            logger.debug("Error while closing WebSocket: %s", exc)

    async def _recv_loop(self, ws: Any) -> None:
        """Feed frames to the router until the socket closes."""
        try:
            async for message in ws:
                if ws is not self._ws:
                    return
                try:
                    self._router.route(message)
                except Exception as exc:
                    logger.error("Dropping frame that failed to route: %s", exc)
        except asyncio.CancelledError:
            return
        except ConnectionClosed as exc:
            close = exc.rcvd
            self._on_close(
                ws,
                close.code if close is not None else None,
                close.reason if close is not None else "",
            )
            return
        except Exception as exc:
            self._on_error(ws, exc)
            return

        self._on_close(ws, ws.close_code, ws.close_reason)

    def _on_close(self, ws: Any, code: int | None, reason: str | None) -> None:
        if ws is not self._ws:
            return  # stale transport, already replaced or torn down
        logger.info("Gateway connection closed (code=%s, reason=%s)", code, reason)
        self._handle_transport_loss(ws)

    def _on_error(self, ws: Any, exc: BaseException) -> None:
        if ws is not self._ws:
            return
        logger.error("Gateway transport error: %s", exc)
        self._handle_transport_loss(ws)

    def _handle_transport_loss(self, ws: Any) -> None:
        if self._state == ConnectionState.SHUTTING_DOWN:
            return
        self._heartbeat.stop()
        self._ws = None
        self._recv_task = None  # the receive loop is the caller and is exiting
        self._session.connection_id = None
        self._tasks.fire(self._close_quietly(ws, "Transport lost"))
        self.reconnect()

    # -- State management -----------------------------------------------------

    def _set_state(self, new_state: ConnectionState) -> None:
        if new_state == self._state:
            return
        old = self._state
        self._state = new_state
        logger.debug("State: %s -> %s", old.value, new_state.value)
        if self._on_state_change:
            self._on_state_change(new_state)

    # -- URL building ---------------------------------------------------------

    def _build_url(self, events: str) -> str:
        sep = "&" if "?" in self._url else "?"
        return f"{self._url}{sep}events={events}"

    def get_stats(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "is_open": self.is_open(),
            "reconnect_pending": self._reconnect_pending,
            "reconnect_count": self.reconnect_count,
            "heartbeats_sent": self._heartbeat.beats_sent,
            "connection_id": self._session.connection_id,
        }
