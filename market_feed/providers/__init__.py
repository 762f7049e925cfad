"""
Provider layer for market data acquisition.

HTTP source clients for spot prices, tickers and order books, composed into
ordered fallback chains with per-provider retry and linear backoff. Every
failure resolves to a typed FetchOutcome.
"""

from __future__ import annotations

from .base import (
    BookLevel,
    DataKind,
    ErrorKind,
    FetchOutcome,
    OrderBookSnapshot,
    OutcomeStatus,
    ProviderHealth,
    ProviderStatus,
    Quote,
    SourceClient,
    TradingPair,
)
from .chain import FallbackChain
from .registry import ProviderRegistry
from .resilience import RetryConfig, RetryPolicy

__all__ = [
    "BookLevel",
    "DataKind",
    "ErrorKind",
    "FetchOutcome",
    "OrderBookSnapshot",
    "OutcomeStatus",
    "ProviderHealth",
    "ProviderStatus",
    "Quote",
    "SourceClient",
    "TradingPair",
    "FallbackChain",
    "ProviderRegistry",
    "RetryConfig",
    "RetryPolicy",
]
