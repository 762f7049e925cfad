"""
Provider chains: ordered fallback over source clients.

A chain tries providers in priority order. Each provider gets its own full
retry budget; only when that ends without SUCCESS is the next provider tried.
The order never changes between calls.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from .base import DataKind, ErrorKind, FetchOutcome, ProviderHealth, SourceClient, TradingPair
from .resilience import RetryConfig, RetryPolicy

logger = logging.getLogger(__name__)


class FallbackChain:
    """
    Ordered chain of source clients for one data kind family.

    Providers that do not serve the requested kind are skipped. When every
    provider fails, the last provider's terminal outcome is returned with a
    ``trail`` describing each failure along the way.
    """

    def __init__(
        self,
        providers: Sequence[SourceClient],
        retry_config: Optional[RetryConfig] = None,
        *,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        if not providers:
            raise ValueError("FallbackChain needs at least one provider")
        self._providers: List[SourceClient] = list(providers)
        self._retry = retry_policy or RetryPolicy(retry_config)
        self._health: Dict[str, ProviderHealth] = {
            p.provider_name: ProviderHealth(provider_name=p.provider_name) for p in self._providers
        }

    @property
    def provider_names(self) -> List[str]:
        return [p.provider_name for p in self._providers]

    async def execute(
        self, pair: TradingPair, kind: DataKind, max_attempts: Optional[int] = None
    ) -> FetchOutcome[Any]:
        """
        Fetch ``kind`` for ``pair``, falling back through the chain.
        """
        trail: List[str] = []
        last: Optional[FetchOutcome[Any]] = None

        for provider in self._providers:
            if kind not in provider.supported_kinds:
                continue
            name = provider.provider_name
            health = self._health[name]

            outcome = await self._retry.execute(
                lambda provider=provider: provider.fetch(pair, kind),
                max_attempts,
                label=f"{name} {kind.value} {pair}",
            )
            if outcome.ok:
                health.record_success()
                if trail:
                    logger.info("%s %s served by fallback provider %s", pair, kind.value, name)
                return outcome

            health.record_failure(outcome.describe())
            trail.append(outcome.describe())
            last = outcome
            logger.info("%s %s: provider %s failed (%s)", pair, kind.value, name, outcome.describe())

        if last is None:
            return FetchOutcome.fatal(
                ErrorKind.INVALID_RESOURCE,
                f"no provider in chain serves {kind.value}",
            )

        logger.warning(
            "All %s providers failed for %s: %s", kind.value, pair, "; ".join(trail)
        )
        return replace(last, trail=tuple(trail)).to_terminal()

    def get_health(self) -> Dict[str, ProviderHealth]:
        """Return health status for all providers in the chain."""
        return dict(self._health)
