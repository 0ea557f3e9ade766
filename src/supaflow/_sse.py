"""
Incremental parser for Server-Sent Events (SSE).
Text arrives in arbitrary chunks, so both the trailing partial line and the
record being built are carried over from one chunk to the next.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterator

_LINE_SPLIT = re.compile(r"\r?\n")


@dataclass(frozen=True, slots=True)
class EventMessage:
    """
    Data structure representing a single Server-Sent Event (SSE).
    ``data`` is None when the record had no 'data' line at all.
    """

    id: str | None = None
    event: str | None = None
    data: str | None = None
    retry: int | None = None


@dataclass(slots=True)
class _PendingRecord:
    fields: dict[str, str | int] = field(default_factory=dict)

    def set(self, name: str, value: str | int) -> None:
        self.fields[name] = value

    def append_data(self, value: str) -> None:
        current = self.fields.get("data")
        self.fields["data"] = value if current is None else f"{current}\n{value}"

    def build(self) -> EventMessage:
        return EventMessage(**self.fields)  # type: ignore[arg-type]


class SSEParser:
    """
    Stateful SSE frame decoder.

    Feed decoded text with ``feed``; every call returns the records completed by
    that chunk, in arrival order.
    """

    def __init__(self) -> None:
        self._carry = ""
        self._pending = _PendingRecord()
        self.last_event_id: str | None = None

    def reset(self) -> None:
        """Drop partial input. ``last_event_id`` survives so a new connection can resume."""
        self._carry = ""
        self._pending = _PendingRecord()

    def feed(self, chunk: str) -> list[EventMessage]:
        lines = _LINE_SPLIT.split(self._carry + chunk)
        self._carry = lines.pop()

        messages: list[EventMessage] = []
        for line in lines:
            if line == "":
                if self._pending.fields:
                    messages.append(self._pending.build())
                    self._pending = _PendingRecord()
                continue
            self._apply_line(line)
        return messages

    def _apply_line(self, line: str) -> None:
        name, sep, raw_value = line.partition(":")
        if not sep:
            return

        name = name.strip()
        value = raw_value.strip()

        if name == "id":
            self._pending.set("id", value)
            self.last_event_id = value
        elif name == "event":
            self._pending.set("event", value)
        elif name == "data":
            self._pending.append_data(value)
        elif name == "retry":
            try:
                self._pending.set("retry", int(value, 10))
            except ValueError:
                pass


def iter_sse_events_from_text(text: str) -> Iterator[EventMessage]:
    """
    Parse SSE events from a complete text block.

    Args:
        text: The raw string containing one or multiple SSE events.

    Yields:
        EventMessage objects for every record terminated by a blank line.
    """
    yield from SSEParser().feed(text)
