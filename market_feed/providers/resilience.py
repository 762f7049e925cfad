"""
Resilience primitives: bounded retry with linear backoff over FetchOutcome
producing operations.

RETRIABLE outcomes are retried after ``attempt * backoff_step_s`` seconds
(2s, 4s, ... by default). SUCCESS and FATAL outcomes end the loop at once.
Sleeping is awaited, so a backing-off feed never blocks other feeds.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .base import FetchOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry with linear backoff."""
    max_attempts: int = 3
    backoff_step_s: float = 2.0
    max_delay_s: float = 60.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_step_s < 0 or self.max_delay_s < 0:
            raise ValueError("backoff delays must be non-negative")

    def delay_for(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based)."""
        return min(attempt * self.backoff_step_s, self.max_delay_s)


class RetryPolicy:
    """
    Run an async operation until it succeeds, fails fatally, or the attempt
    budget is spent. Never raises for provider failures: the result is always
    a FetchOutcome, and an exhausted RETRIABLE comes back as FATAL.
    """

    def __init__(self, config: Optional[RetryConfig] = None, *, sleep: Sleep = asyncio.sleep) -> None:
        self.config = config or RetryConfig()
        self._sleep = sleep

    async def execute(
        self,
        op: Callable[[], Awaitable[FetchOutcome[T]]],
        max_attempts: Optional[int] = None,
        *,
        label: str = "",
    ) -> FetchOutcome[T]:
        attempts = self.config.max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        attempt = 1
        while True:
            outcome = await op()
            outcome = replace(outcome, attempts=attempt)
            if outcome.ok:
                if attempt > 1:
                    logger.debug("%s succeeded on attempt %d", label or outcome.provider_name, attempt)
                return outcome
            if outcome.is_fatal:
                logger.debug(
                    "%s failed fatally on attempt %d: %s", label or outcome.provider_name, attempt, outcome.describe()
                )
                return outcome
            if attempt >= attempts:
                logger.debug(
                    "%s: all %d attempts failed, last: %s", label or outcome.provider_name, attempts, outcome.describe()
                )
                return outcome.to_terminal()

            delay = self.config.delay_for(attempt)
            logger.debug(
                "Attempt %d/%d for %s failed (%s); retrying in %.1fs",
                attempt, attempts, label or outcome.provider_name, outcome.describe(), delay,
            )
            await self._sleep(delay)
            attempt += 1
