"""
Resilient asyncio client for text/event-stream endpoints.

``SupaFlow.connect()`` supervises the whole lifetime of the stream: it opens the
HTTP response, feeds decoded text to the SSE parser, dispatches every record and
reconnects with exponential backoff when the stream ends or fails. ``close()``
stops everything and makes ``connect()`` return.
"""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any

import httpx

from supaflow._auth import AuthConfig
from supaflow._buffer import BatchAggregator, BoundedBuffer, BufferedEntry
from supaflow._client import HttpConfig, SupaFlowHttpClient
from supaflow._dispatch import BATCH_EVENT, DEFAULT_EVENT, EventDispatcher, EventHandler
from supaflow._errors import MaxRetriesExceededError, SupaFlowError, UnknownStreamError
from supaflow._heartbeat import HeartbeatMonitor
from supaflow._retry import RetryPolicy
from supaflow._sse import EventMessage, SSEParser
from supaflow.options import SupaFlowOptions


class ConnectionState(str, Enum):
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"
    RECONNECTING = "RECONNECTING"
    ERROR = "ERROR"


def _decode_data(data: str | None) -> Any:
    if data is None:
        return None
    try:
        return json.loads(data)
    except (json.JSONDecodeError, ValueError):
        return data


def _retry_only(message: EventMessage) -> bool:
    return message.data is None and message.id is None and message.event is None


def _running_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class SupaFlow:
    """
    Streaming client for a single event-stream URL.

    Options can be given as a ready ``SupaFlowOptions`` or as loose keyword
    arguments, never both::

        flow = SupaFlow(url, heartbeat={"timeout_s": 10}, batch_config={"enabled": True})
        flow.on("temperature", print)
        await flow.connect()

    Handlers are plain callables. They run on the event loop, in the order the
    records arrived.
    """

    def __init__(
        self,
        url: str,
        *,
        options: SupaFlowOptions | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> None:
        if options is not None and kwargs:
            raise ValueError("Do not mix options=... with loose option parameters.")

        self._url = url
        self._options = options or SupaFlowOptions(**kwargs)
        opts = self._options

        self._auth = AuthConfig.from_env_or_value(api_key)
        self._http = SupaFlowHttpClient(config=HttpConfig.from_request(opts.request), transport=transport)
        self._retry = RetryPolicy.from_strategy(opts.retry_strategy)
        self._parser = SSEParser()
        self._dispatcher = EventDispatcher(event_filter=opts.event_filter, transformers=opts.transformers)
        self._buffer: BoundedBuffer[Any] = BoundedBuffer(opts.buffer_size)

        self._batch: BatchAggregator[Any] | None = None
        if opts.batch_config.enabled:
            self._batch = BatchAggregator(
                size=opts.batch_config.size,
                interval_s=opts.batch_config.interval_s,
                on_batch=self._emit_batch,
            )

        self._heartbeat: HeartbeatMonitor | None = None
        if opts.heartbeat.enabled:
            self._heartbeat = HeartbeatMonitor(
                interval_s=opts.heartbeat.interval_s,
                timeout_s=opts.heartbeat.timeout_s,
                on_timeout=self._on_heartbeat_timeout,
            )

        self._state = ConnectionState.DISCONNECTED
        self._retry_count = 0
        self._retry_hint_s: float | None = None
        self._attempt: asyncio.Task[None] | None = None
        self._generation = 0
        self._reconnect_requested = False
        # Set whenever no connection is being supervised.
        self._closed = asyncio.Event()
        self._closed.set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def url(self) -> str:
        return self._url

    @property
    def options(self) -> SupaFlowOptions:
        return self._options

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def last_event_id(self) -> str | None:
        return self._parser.last_event_id

    @property
    def retry_hint_s(self) -> float | None:
        """Last reconnection time the server advertised with ``retry:``, in seconds. Informational only."""
        return self._retry_hint_s

    def get_state(self) -> ConnectionState:
        return self._state

    def on(self, event: str, handler: EventHandler) -> None:
        self._dispatcher.on(event, handler)

    def off(self, event: str, handler: EventHandler) -> None:
        self._dispatcher.off(event, handler)

    def get_buffer(self) -> list[BufferedEntry[Any]]:
        return self._buffer.snapshot()

    def clear_buffer(self) -> None:
        self._buffer.clear()

    def get_batch_buffer(self) -> list[Any]:
        if self._batch is None:
            return []
        return self._batch.snapshot()

    def flush_batch_buffer(self) -> None:
        """Deliver every pending batched payload as one "batch" event, even below the batch size."""
        if self._batch is not None:
            self._batch.flush()

    async def connect(self) -> None:
        """
        Connect and keep the stream alive until ``close()`` or a terminal failure.

        Calling it again while connected cancels the previous connection first;
        the earlier call then returns normally.

        Raises:
            SupaFlowConnectionError: non-2xx status or transport failure (auto_reconnect off).
            InvalidResponseError: 2xx response without a body (auto_reconnect off).
            UnknownStreamError: any other read-loop failure (auto_reconnect off).
            MaxRetriesExceededError: retry budget exhausted (auto_reconnect on).
        """
        if not self._closed.is_set():
            self.close()

        self._generation += 1
        generation = self._generation
        self._closed.clear()
        if self._batch is not None:
            self._batch.start()

        try:
            await self._supervise(generation)
        except asyncio.CancelledError:
            if not self._superseded(generation):
                self.close()
            raise

    def close(self) -> None:
        """Cancel the in-flight read, stop timers and move to DISCONNECTED. Idempotent."""
        if self._closed.is_set():
            return
        self._log("Closing connection...")
        self._closed.set()
        self._teardown()
        self._set_state(ConnectionState.DISCONNECTED)

    async def aclose(self) -> None:
        """``close()`` plus shutdown of the underlying HTTP client."""
        attempt = self._attempt
        self.close()
        if attempt is not None and attempt is not asyncio.current_task():
            await asyncio.gather(attempt, return_exceptions=True)
        await self._http.aclose()

    async def __aenter__(self) -> SupaFlow:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Connection state machine
    # ------------------------------------------------------------------

    def _superseded(self, generation: int) -> bool:
        return generation != self._generation or self._closed.is_set()

    async def _supervise(self, generation: int) -> None:
        self._set_state(ConnectionState.CONNECTING)

        while True:
            self._reconnect_requested = False
            self._attempt = asyncio.get_running_loop().create_task(self._run_attempt())
            try:
                await self._attempt
            except asyncio.CancelledError:
                if self._superseded(generation):
                    return
                if not self._reconnect_requested:
                    raise
                self._stop_heartbeat()
                self._set_state(ConnectionState.RECONNECTING)
                self._set_state(ConnectionState.CONNECTING)
                continue
            except Exception as e:
                if self._superseded(generation):
                    return
                self._stop_heartbeat()
                self._set_state(ConnectionState.ERROR)
                self._log("Error occurred: %r", e)
                delay = self._on_failure(e)
                self._log("Error occurred, reconnecting in %.3fs...", delay)
            else:
                if self._superseded(generation):
                    return
                self._stop_heartbeat()
                if not self._options.auto_reconnect:
                    self._log("Stream complete")
                    self.close()
                    return
                delay = self._next_delay()
                self._log("Connection closed, reconnecting in %.3fs...", delay)

            self._set_state(ConnectionState.RECONNECTING)
            if await self._wait_closed(delay) or self._superseded(generation):
                return
            self._set_state(ConnectionState.CONNECTING)

    def _on_failure(self, error: Exception) -> float:
        """Decide what a failed attempt means. Returns the backoff delay or raises."""
        if not self._options.auto_reconnect:
            self._teardown()
            if isinstance(error, SupaFlowError):
                raise error
            raise UnknownStreamError(
                message="Connection failed",
                details={"original_error": repr(error)},
                original_error=error,
            ) from error

        if self._retry.exhausted(self._retry_count):
            self._teardown()
            raise MaxRetriesExceededError(
                message="Max retry attempts reached",
                details={"retry_count": self._retry_count},
                retry_count=self._retry_count,
            ) from error

        delay = self._next_delay()
        self._retry_count += 1
        return delay

    def _next_delay(self) -> float:
        return self._retry.delay(self._retry_count)

    async def _wait_closed(self, delay: float) -> bool:
        try:
            await asyncio.wait_for(self._closed.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    def _teardown(self) -> None:
        attempt = self._attempt
        # A handler closing the client runs inside the attempt; the read loop returns on its own.
        if attempt is not None and not attempt.done() and attempt is not _running_task():
            attempt.cancel()
        self._stop_heartbeat()
        if self._batch is not None:
            self._batch.stop()

    def _set_state(self, state: ConnectionState) -> None:
        self._state = state
        callback = self._options.on_state_change
        if callback is None:
            return
        try:
            callback(state)
        except Exception as e:
            logging.warning("[SupaFlow] on_state_change callback failed: %r", e)

    # ------------------------------------------------------------------
    # Read loop
    # ------------------------------------------------------------------

    def _request_headers(self) -> dict[str, str]:
        headers = self._auth.headers()
        if self._parser.last_event_id:
            headers["Last-Event-ID"] = self._parser.last_event_id
        return headers

    async def _run_attempt(self) -> None:
        self._parser.reset()
        response = await self._http.open_stream(
            self._url,
            request=self._options.request,
            headers=self._request_headers(),
        )
        try:
            self._log("Connection established")
            self._set_state(ConnectionState.CONNECTED)
            self._start_heartbeat()

            async for chunk in response.aiter_text():
                for message in self._parser.feed(chunk):
                    self._handle_message(message)
                    # A handler may have closed the client.
                    if self._closed.is_set():
                        return
        finally:
            await response.aclose()

    def _handle_message(self, message: EventMessage) -> None:
        if self._heartbeat is not None:
            self._heartbeat.touch()
        if message.retry is not None and message.retry >= 0:
            self._retry_hint_s = message.retry / 1000
        if _retry_only(message):
            self._log("Retry hint received: %sms", message.retry)
            return

        retry_count = self._retry_count
        self._retry_count = 0

        payload = _decode_data(message.data)
        if self._options.data_handler is not None:
            payload = self._options.data_handler(payload)

        if self._batch is not None:
            self._batch.add(payload)

        self._dispatcher.emit(message.event or DEFAULT_EVENT, payload)
        self._buffer.append(payload, event_id=message.id, retry_count=retry_count)
        self._log("Received message: %r", payload)

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _start_heartbeat(self) -> None:
        if self._heartbeat is not None:
            self._heartbeat.start()

    def _stop_heartbeat(self) -> None:
        if self._heartbeat is not None:
            self._heartbeat.stop()

    def _on_heartbeat_timeout(self) -> None:
        if self._attempt is None or self._attempt.done():
            return
        self._log("Heartbeat timeout, reconnecting...")
        self._reconnect_requested = True
        self._attempt.cancel()

    def _emit_batch(self, batch: list[Any]) -> None:
        self._dispatcher.emit(BATCH_EVENT, batch)

    def _log(self, msg: str, *args: Any) -> None:
        if self._options.debug:
            logging.warning("[SupaFlow] " + msg, *args)
