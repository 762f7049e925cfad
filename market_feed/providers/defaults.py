"""
Default provider registry configuration.

Registers built-in clients and builds chains from config.yaml settings.
To add a new provider, register it here and add it to the priority list.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ..config import FeedSettings, load_settings
from .base import DataKind
from .cex.binance import BinanceClient
from .cex.coinbase import CoinbaseExchangeClient, CoinbaseSpotClient
from .cex.coingecko import CoinGeckoClient
from .chain import FallbackChain
from .registry import ProviderRegistry
from .resilience import RetryConfig, RetryPolicy

logger = logging.getLogger(__name__)


def create_default_registry(settings: Optional[FeedSettings] = None) -> ProviderRegistry:
    """Create a registry with all built-in clients, using configured timeouts."""
    s = settings or load_settings()
    timeouts = {"request_timeout_s": s.request_timeout_s, "resource_timeout_s": s.resource_timeout_s}
    registry = ProviderRegistry()
    registry.register("coinbase", lambda: CoinbaseSpotClient(**timeouts))
    registry.register("coinbase_exchange", lambda: CoinbaseExchangeClient(**timeouts))
    registry.register("binance", lambda: BinanceClient(book_depth=s.book_depth, **timeouts))
    registry.register("coingecko", lambda: CoinGeckoClient(**timeouts))
    return registry


def create_retry_policy(
    settings: Optional[FeedSettings] = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> RetryPolicy:
    s = settings or load_settings()
    config = RetryConfig(
        max_attempts=s.max_attempts,
        backoff_step_s=s.backoff_step_s,
        max_delay_s=s.max_delay_s,
    )
    return RetryPolicy(config, sleep=sleep)


def create_ticker_chain(
    registry: Optional[ProviderRegistry] = None,
    settings: Optional[FeedSettings] = None,
) -> FallbackChain:
    """Price chain: primary exchange ticker, then secondary exchange, then CoinGecko."""
    s = settings or load_settings()
    reg = registry or create_default_registry(s)
    providers = reg.build_chain(s.ticker_priority, DataKind.TICKER)
    return FallbackChain(providers, retry_policy=create_retry_policy(s))


def create_order_book_chain(
    registry: Optional[ProviderRegistry] = None,
    settings: Optional[FeedSettings] = None,
) -> FallbackChain:
    """Order book chain: primary exchange level-2 book, then secondary exchange depth."""
    s = settings or load_settings()
    reg = registry or create_default_registry(s)
    providers = reg.build_chain(s.order_book_priority, DataKind.ORDER_BOOK)
    return FallbackChain(providers, retry_policy=create_retry_policy(s))
