"""
Top-level public API surface.
Resilient market data acquisition: spot quotes, polled prices and polled
order books over retrying, falling-back provider chains.
"""

from __future__ import annotations

from ._version import __version__
from .config import FeedSettings, load_settings
from .feeds import (
    NO_PRICE,
    FeedView,
    PollingFeed,
    SpotPriceFetcher,
    create_order_book_feed,
    create_price_feed,
    create_spot_fetcher,
)
from .providers import (
    DataKind,
    ErrorKind,
    FallbackChain,
    FetchOutcome,
    OrderBookSnapshot,
    Quote,
    RetryConfig,
    RetryPolicy,
    TradingPair,
)
from .validation import PairValidator

# Do not add exports without updating __all__.
__all__ = [
    "__version__",
    "NO_PRICE",
    "DataKind",
    "ErrorKind",
    "FallbackChain",
    "FeedSettings",
    "FeedView",
    "FetchOutcome",
    "OrderBookSnapshot",
    "PairValidator",
    "PollingFeed",
    "Quote",
    "RetryConfig",
    "RetryPolicy",
    "SpotPriceFetcher",
    "TradingPair",
    "create_order_book_feed",
    "create_price_feed",
    "create_spot_fetcher",
    "load_settings",
]
