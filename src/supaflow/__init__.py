from __future__ import annotations

from supaflow._buffer import BufferedEntry, EntryMetadata
from supaflow._errors import (
    InvalidResponseError,
    MaxRetriesExceededError,
    SupaFlowConnectionError,
    SupaFlowError,
    UnknownStreamError,
)
from supaflow._sse import EventMessage
from supaflow.options import (
    BatchConfig,
    EventFilter,
    HeartbeatConfig,
    RequestOptions,
    RetryStrategy,
    SupaFlowOptions,
)
from supaflow.stream import ConnectionState, SupaFlow

__all__ = [
    "BatchConfig",
    "BufferedEntry",
    "ConnectionState",
    "EntryMetadata",
    "EventFilter",
    "EventMessage",
    "HeartbeatConfig",
    "InvalidResponseError",
    "MaxRetriesExceededError",
    "RequestOptions",
    "RetryStrategy",
    "SupaFlow",
    "SupaFlowConnectionError",
    "SupaFlowError",
    "SupaFlowOptions",
    "UnknownStreamError",
]

__version__ = "0.1.0"
