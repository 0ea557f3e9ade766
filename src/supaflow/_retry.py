from __future__ import annotations

from dataclasses import dataclass

from supaflow.options import RetryStrategy


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Exponential backoff without jitter: ``min(initial * 2**attempt, max)``."""

    initial_delay_s: float = 1.0
    max_delay_s: float = 30.0
    max_retries: int = 10

    @staticmethod
    def from_strategy(strategy: RetryStrategy) -> RetryPolicy:
        return RetryPolicy(
            initial_delay_s=strategy.initial_retry_delay_s,
            max_delay_s=strategy.max_retry_delay_s,
            max_retries=strategy.max_retries,
        )

    def delay(self, attempt: int) -> float:
        """
        Delay before the next attempt, in seconds.

        Args:
            attempt: Number of failed attempts so far (0 for the first retry).
        """
        # Exponent is clamped; larger values hit the cap anyway.
        return min(self.initial_delay_s * 2.0 ** min(attempt, 1000), self.max_delay_s)

    def exhausted(self, attempt: int) -> bool:
        return attempt >= self.max_retries
