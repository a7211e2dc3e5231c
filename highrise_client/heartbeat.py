# =============================================================================
# Highrise Gateway Client -- Keepalive Heartbeat
# =============================================================================
#
# The gateway terminates any session that goes 15s without a
# KeepaliveRequest. Only punctual sending matters here; replies are not
# tracked.
# =============================================================================

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from ._logging import logger
from .constants import HEARTBEAT_INTERVAL


class KeepAliveHeartbeat:
    """Self-rescheduling keepalive sender.

    The first frame goes out as soon as :meth:`start` runs; every
    successful send arms the next one *interval* seconds later. A failed
    send or a false *is_active* stops the cycle.

    Args:
        send: Coroutine that writes one text frame and reports success.
        frame_factory: Builds a fresh keepalive frame per beat.
        is_active: Checked before each send.
        interval: Seconds between beats (default 15).
    """

    def __init__(
        self,
        send: Callable[[str], Awaitable[bool]],
        frame_factory: Callable[[], str],
        *,
        is_active: Callable[[], bool] = lambda: True,
        interval: float = HEARTBEAT_INTERVAL,
    ) -> None:
        self._send = send
        self._frame_factory = frame_factory
        self._is_active = is_active
        self._interval = interval
        self._task: asyncio.Task[None] | None = None
        self.beats_sent = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """(Re)arm the heartbeat, cancelling any previous cycle first."""
        self.stop()
        self._task = asyncio.ensure_future(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def wait_stopped(self) -> None:
        """Cancel the cycle and wait until the task has finished."""
        task = self._task
        self.stop()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def _run(self) -> None:
        while True:
            if not self._is_active():
                logger.debug("Heartbeat stopped: connection not active")
                return

            ok = await self._send(self._frame_factory())
            if not ok:
                logger.debug("Keepalive send failed, heartbeat stopped")
                return
            self.beats_sent += 1

            try:
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                return
