"""
Subscription registry and delivery pipeline.

A payload emitted under an event name goes through three steps:
the event filter, the ordered transformers, and every handler registered for
that name. Transformer and handler failures are logged and contained here; they
never reach the code that emitted the event.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

from supaflow.options import EventFilter, Transformer

DEFAULT_EVENT = "message"
BATCH_EVENT = "batch"

EventHandler = Callable[[Any], Any]


class EventDispatcher:
    def __init__(
        self,
        *,
        event_filter: EventFilter | None = None,
        transformers: Sequence[Transformer] = (),
    ) -> None:
        self._filter = event_filter or EventFilter()
        self._transformers = tuple(transformers)
        self._handlers: dict[str, list[EventHandler]] = {}

    def on(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.setdefault(event, [])
        if handler not in handlers:
            handlers.append(handler)

    def off(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event)
        if not handlers:
            return
        # Bound methods are recreated on every attribute access, so match by equality.
        for i, registered in enumerate(handlers):
            if registered == handler:
                del handlers[i]
                break
        if not handlers:
            del self._handlers[event]

    def handlers(self, event: str) -> list[EventHandler]:
        return list(self._handlers.get(event, ()))

    def should_process(self, event: str) -> bool:
        return self._filter.allows(event)

    def transform(self, data: Any) -> Any:
        result = data
        for transformer in self._transformers:
            try:
                result = transformer(result)
            except Exception as e:
                logging.warning("[SupaFlow] Transformer %r failed, skipping: %r", transformer, e)
        return result

    def emit(self, event: str, data: Any) -> bool:
        """
        Deliver ``data`` to the handlers registered under ``event``.

        Returns:
            True if the event passed the filter and at least one handler was called.
        """
        if not self.should_process(event):
            return False

        # Snapshot: a handler may subscribe or unsubscribe while we iterate.
        handlers = self.handlers(event)
        if not handlers:
            return False

        transformed = self.transform(data)
        for handler in handlers:
            try:
                handler(transformed)
            except Exception as e:
                logging.warning("[SupaFlow] Event handler for %r failed: %r", event, e)
        return True
