"""
Configuration models for the SupaFlow streaming client.
Every model is frozen: options are resolved once when the client is built and
never change afterwards.
"""

from __future__ import annotations

import os
from typing import Annotated, Any, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

ENV_DEBUG = "SUPAFLOW_DEBUG"

HttpMethod = Literal["GET", "POST", "PUT", "PATCH"]
PositiveSeconds = Annotated[float, Field(gt=0)]
NonNegativeInt = Annotated[int, Field(ge=0)]
PositiveInt = Annotated[int, Field(ge=1)]

Transformer = Callable[[Any], Any]


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in {"1", "true", "yes", "on"}


class RetryStrategy(BaseModel):
    """
    Exponential backoff bounds used between reconnection attempts.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)
    initial_retry_delay_s: PositiveSeconds = 1.0
    max_retry_delay_s: PositiveSeconds = 30.0
    max_retries: NonNegativeInt = 10

    @model_validator(mode="after")
    def _check_bounds(self) -> RetryStrategy:
        if self.initial_retry_delay_s > self.max_retry_delay_s:
            raise ValueError("initial_retry_delay_s must not exceed max_retry_delay_s")
        return self


class HeartbeatConfig(BaseModel):
    """
    Liveness check: the stream is considered stalled when no record arrived for
    more than ``timeout_s``. The check runs every ``interval_s``.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)
    enabled: bool = True
    interval_s: PositiveSeconds = 30.0
    timeout_s: PositiveSeconds = 60.0


class EventFilter(BaseModel):
    """
    Event-name filter. A non-empty ``include`` list wins over ``exclude``.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)
    include: Optional[tuple[str, ...]] = None
    exclude: Optional[tuple[str, ...]] = None

    def allows(self, event_name: str) -> bool:
        if self.include:
            return event_name in self.include
        if self.exclude:
            return event_name not in self.exclude
        return True


class BatchConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    enabled: bool = False
    size: PositiveInt = 10
    interval_s: PositiveSeconds = 1.0


class RequestOptions(BaseModel):
    """
    HTTP request configuration for every connection attempt.
    ``timeout_s`` is the read timeout; None keeps the stream open indefinitely and
    leaves stall detection to the heartbeat.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)
    method: HttpMethod = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    params: Optional[dict[str, Any]] = None
    content: Optional[bytes | str] = None
    json_body: Optional[Any] = None
    timeout_s: Optional[PositiveSeconds] = None
    connect_timeout_s: PositiveSeconds = 10.0

    @model_validator(mode="after")
    def _check_body(self) -> RequestOptions:
        if self.content is not None and self.json_body is not None:
            raise ValueError("Do not mix content=... with json_body=...")
        return self


class SupaFlowOptions(BaseModel):
    """
    Complete client configuration. Values passed by the caller are merged over
    the defaults; nested sections accept partial dicts.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    retry_strategy: RetryStrategy = Field(default_factory=RetryStrategy)
    auto_reconnect: bool = True
    heartbeat: HeartbeatConfig = Field(default_factory=HeartbeatConfig)
    buffer_size: PositiveInt = 1000
    debug: bool = Field(default_factory=lambda: _env_flag(ENV_DEBUG))
    request: RequestOptions = Field(default_factory=RequestOptions)
    event_filter: EventFilter = Field(default_factory=EventFilter)
    transformers: tuple[Transformer, ...] = ()
    data_handler: Optional[Transformer] = None
    on_state_change: Optional[Callable[[Any], Any]] = None
    batch_config: BatchConfig = Field(default_factory=BatchConfig)
