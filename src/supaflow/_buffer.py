from __future__ import annotations

import asyncio
import contextlib
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class EntryMetadata:
    timestamp: int
    event_id: str | None = None
    retry_count: int = 0


@dataclass(frozen=True, slots=True)
class BufferedEntry(Generic[T]):
    """
    A decoded payload kept in the client's history.
    ``metadata.timestamp`` is milliseconds since the epoch.
    """

    data: T
    metadata: EntryMetadata


def now_ms() -> int:
    return int(time.time() * 1000)


class BoundedBuffer(Generic[T]):
    """Fixed-capacity FIFO history; the oldest entry is evicted first."""

    def __init__(self, capacity: int = 1000) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._entries: deque[BufferedEntry[T]] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, data: T, *, event_id: str | None = None, retry_count: int = 0) -> BufferedEntry[T]:
        entry = BufferedEntry(
            data=data,
            metadata=EntryMetadata(timestamp=now_ms(), event_id=event_id, retry_count=retry_count),
        )
        self._entries.append(entry)
        return entry

    def snapshot(self) -> list[BufferedEntry[T]]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()


class BatchAggregator(Generic[T]):
    """
    Groups payloads before delivery.

    Full batches of ``size`` items are handed to ``on_batch`` as soon as they
    fill up, and again on every tick of the interval timer. ``flush`` hands
    over whatever is pending, even below ``size``.
    """

    def __init__(self, *, size: int, interval_s: float, on_batch: Callable[[list[T]], Any]) -> None:
        if size < 1:
            raise ValueError("size must be >= 1")
        self._size = size
        self._interval_s = interval_s
        self._on_batch = on_batch
        self._pending: list[T] = []
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def __len__(self) -> int:
        return len(self._pending)

    def add(self, item: T) -> None:
        self._pending.append(item)
        if len(self._pending) >= self._size:
            self.process()

    def process(self) -> int:
        """Deliver every full batch. Returns the number of batches delivered."""
        delivered = 0
        while len(self._pending) >= self._size:
            batch = self._pending[: self._size]
            del self._pending[: self._size]
            self._on_batch(batch)
            delivered += 1
        return delivered

    def flush(self) -> list[T] | None:
        if not self._pending:
            return None
        batch = self._pending
        self._pending = []
        self._on_batch(batch)
        return batch

    def snapshot(self) -> list[T]:
        return list(self._pending)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        with contextlib.suppress(asyncio.CancelledError):
            while True:
                await asyncio.sleep(self._interval_s)
                if self._pending:
                    self.process()
