"""One-shot spot price lookups: validate, then retry a single provider."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Union

from ..providers.base import DataKind, Quote, SourceClient, TradingPair
from ..providers.resilience import RetryPolicy
from ..validation import PairValidator

logger = logging.getLogger(__name__)


class SpotPriceFetcher:
    """
    Ad hoc spot quotes from one provider, no fallback and no polling.

    ``fetch`` returns None on every failure path (unparseable or rejected
    pair, bad attempt budget, invalid pair upstream, exhausted retries, bad
    payload) so callers can degrade instead of failing.
    """

    def __init__(
        self,
        client: SourceClient,
        validator: PairValidator,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        on_close: Optional[Callable[[], None]] = None,
    ) -> None:
        self._client = client
        self._validator = validator
        self._retry = retry_policy or RetryPolicy()
        self._lock = asyncio.Lock()
        self._on_close = on_close

    def close(self) -> None:
        """Release resources the fetcher owns, such as a registry built for it."""
        on_close, self._on_close = self._on_close, None
        if on_close is not None:
            on_close()

    async def fetch(
        self,
        pair: Union[TradingPair, str],
        max_attempts: Optional[int] = None,
        allow_unlisted: Optional[bool] = None,
    ) -> Optional[Quote]:
        try:
            target = pair if isinstance(pair, TradingPair) else TradingPair.parse(pair)
        except ValueError as exc:
            logger.warning("Cannot fetch spot price for %r: %s", pair, exc)
            return None
        if max_attempts is not None and max_attempts < 1:
            logger.warning("Cannot fetch spot price for %s: max_attempts must be at least 1, got %d", target, max_attempts)
            return None
        if not self._validator.check_allowed(target, allow_unlisted):
            return None

        async with self._lock:
            outcome = await self._retry.execute(
                lambda: self._client.fetch(target, DataKind.SPOT),
                max_attempts,
                label=f"{self._client.provider_name} spot {target}",
            )
        if outcome.ok:
            logger.info(
                "Fetched spot %s = %s from %s on attempt %d",
                target, outcome.value.price, outcome.provider_name, outcome.attempts,
            )
            return outcome.value
        logger.info("No spot price for %s: %s", target, outcome.describe())
        return None
