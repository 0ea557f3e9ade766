from __future__ import annotations

import asyncio
import contextlib
import time
from typing import Callable


class HeartbeatMonitor:
    """
    Periodic liveness check for an open stream.

    Every ``interval_s`` the monitor compares the clock with the time of the last
    received record; if the gap exceeds ``timeout_s`` it calls ``on_timeout``.
    The monitor keeps ticking after a timeout until it is stopped.
    """

    def __init__(
        self,
        *,
        interval_s: float,
        timeout_s: float,
        on_timeout: Callable[[], None],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._interval_s = interval_s
        self._timeout_s = timeout_s
        self._on_timeout = on_timeout
        self._clock = clock
        self._last_message_at = clock()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_message_at(self) -> float:
        return self._last_message_at

    def touch(self) -> None:
        self._last_message_at = self._clock()

    def is_stale(self) -> bool:
        return self._clock() - self._last_message_at > self._timeout_s

    def start(self) -> None:
        """(Re)start ticking with a fresh last-message timestamp."""
        self.stop()
        self.touch()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        with contextlib.suppress(asyncio.CancelledError):
            while True:
                await asyncio.sleep(self._interval_s)
                if self.is_stale():
                    self._on_timeout()
