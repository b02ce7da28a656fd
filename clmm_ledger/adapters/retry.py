"""Retry strategy shared by HTTP adapters."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from .errors import ProviderConnectionError, ProviderRateLimitError

_ResultType = TypeVar("_ResultType")


@dataclass(frozen=True)
class AdapterRetryStrategy:
    """Immutable exponential backoff settings with jitter.

    Attributes:
        retry_attempts: Total number of attempts, including the first.
        backoff_base_seconds: Base delay for exponential backoff.
        max_backoff_seconds: Delay cap before jitter.
        jitter_min_multiplier: Minimum jitter multiplier.
        jitter_max_multiplier: Maximum jitter multiplier.
        random_unit_interval_provider: Provider returning value in [0.0, 1.0].
        rate_limit_floor_seconds: Minimum delay after a throttled response.
    """

    retry_attempts: int
    backoff_base_seconds: float
    max_backoff_seconds: float
    jitter_min_multiplier: float
    jitter_max_multiplier: float
    random_unit_interval_provider: Callable[[], float]
    rate_limit_floor_seconds: float = 1.0

    def __post_init__(self) -> None:
        if self.retry_attempts < 1:
            raise ValueError("retry_attempts must be >= 1")
        if self.backoff_base_seconds < 0:
            raise ValueError("backoff_base_seconds must be >= 0")
        if self.max_backoff_seconds < self.backoff_base_seconds:
            raise ValueError("max_backoff_seconds must be >= backoff_base_seconds")
        if self.jitter_min_multiplier <= 0 or self.jitter_max_multiplier < self.jitter_min_multiplier:
            raise ValueError("jitter multipliers must satisfy 0 < min <= max")

    def strategy_calculate_retry_wait_seconds(self, retry_index: int, rate_limited: bool = False) -> float:
        """Calculate capped exponential wait with jitter.

        Args:
            retry_index: Zero-based retry index.
            rate_limited: Whether the failed attempt was throttled.

        Returns:
            float: Seconds to wait before the next attempt.

        Raises:
            ValueError: Raised when retry index is negative.
            RuntimeError: Raised when the jitter provider returns an out-of-range value.
        """

        if retry_index < 0:
            raise ValueError("retry_index must be >= 0")

        random_ratio = float(self.random_unit_interval_provider())
        if random_ratio < 0.0 or random_ratio > 1.0:
            raise RuntimeError("random_unit_interval_provider must return a value in [0.0, 1.0]")

        capped_backoff_seconds = min(self.backoff_base_seconds * (2**retry_index), self.max_backoff_seconds)
        jitter_multiplier = self.jitter_min_multiplier + random_ratio * (
            self.jitter_max_multiplier - self.jitter_min_multiplier
        )
        wait_seconds = capped_backoff_seconds * jitter_multiplier
        if rate_limited:
            return max(wait_seconds, self.rate_limit_floor_seconds)
        return wait_seconds

    def strategy_execute(self, operation: Callable[[], _ResultType]) -> _ResultType:
        """Run an operation, retrying transient provider failures.

        Args:
            operation: Zero-argument callable performing one attempt.

        Returns:
            _ResultType: Result of the first successful attempt.

        Raises:
            ProviderConnectionError: Raised when every attempt failed transiently.
            ProviderAdapterError: Raised immediately for non-transient failures.
        """

        for retry_index in range(self.retry_attempts):
            try:
                return operation()
            except ProviderConnectionError as error:
                if retry_index + 1 >= self.retry_attempts:
                    raise
                wait_seconds = self.strategy_calculate_retry_wait_seconds(
                    retry_index=retry_index,
                    rate_limited=isinstance(error, ProviderRateLimitError),
                )
                if wait_seconds > 0:
                    time.sleep(wait_seconds)
        raise RuntimeError("retry loop exited without result")
