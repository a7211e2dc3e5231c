"""Shared fixtures: an in-memory gateway standing in for the real WebSocket."""

import asyncio
import json

import pytest
import websockets.asyncio.client
from websockets.protocol import State

from highrise_client.events import EventType
from highrise_client.router import EventRouter
from highrise_client.connection import ConnectionSupervisor
from highrise_client.types import AuthContext, RoomInfo, SessionInfo

TOKEN = "a" * 64
ROOM_ID = "b" * 24
OTHER_ROOM_ID = "c" * 24

_CLOSED = object()


class FakeWebSocket:
    """Minimal stand-in for ``websockets.asyncio.client.ClientConnection``."""

    def __init__(self):
        self.state = State.OPEN
        self.sent: list[str] = []
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self.closed_by_client = False
        self._incoming: asyncio.Queue = asyncio.Queue()

    # -- client side --

    async def send(self, data):
        if self.state is not State.OPEN:
            raise RuntimeError("socket is closed")
        self.sent.append(data)

    async def close(self, code=1000, reason=""):
        if self.state is State.CLOSED:
            return
        self.closed_by_client = True
        self._finish(code, reason)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._incoming.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    # -- server side --

    def feed(self, frame):
        """Deliver a frame; dicts are JSON-encoded."""
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        self._incoming.put_nowait(frame)

    def server_close(self, code=1000, reason=""):
        self._finish(code, reason)

    def fail(self, exc):
        self.state = State.CLOSED
        self._incoming.put_nowait(exc)

    def sent_frames(self):
        return [json.loads(s) for s in self.sent]

    def _finish(self, code, reason):
        self.state = State.CLOSED
        self.close_code = code
        self.close_reason = reason
        self._incoming.put_nowait(_CLOSED)


class FakeGateway:
    """Replaces ``websockets.asyncio.client.connect`` and records every open."""

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []
        self.connections: list[FakeWebSocket] = []
        self.fail_with: BaseException | None = None
        self.hang = False
        self.gate: asyncio.Event | None = None

    def connect(self, url, **kwargs):
        self.calls.append((url, kwargs))

        async def _open():
            if self.hang:
                await asyncio.sleep(3600)
            if self.gate is not None:
                await self.gate.wait()
            if self.fail_with is not None:
                raise self.fail_with
            ws = FakeWebSocket()
            self.connections.append(ws)
            return ws

        return _open()

    @property
    def last(self) -> FakeWebSocket:
        return self.connections[-1]


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def gateway(monkeypatch):
    gw = FakeGateway()
    monkeypatch.setattr(websockets.asyncio.client, "connect", gw.connect)
    return gw


@pytest.fixture
def auth():
    return AuthContext(token=TOKEN, room=RoomInfo(id=ROOM_ID))


@pytest.fixture
def session():
    return SessionInfo()


@pytest.fixture
def dispatched():
    return []


@pytest.fixture
def router(auth, session, dispatched):
    return EventRouter(auth, session, dispatched.append)


@pytest.fixture
def supervisor(auth, session, router):
    return ConnectionSupervisor(
        auth,
        session,
        router,
        events=[EventType.CHAT, EventType.USER_JOINED],
        reconnect_delay=0.01,
        heartbeat_interval=0.02,
        connect_timeout=0.5,
    )
