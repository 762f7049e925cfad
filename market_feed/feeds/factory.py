"""
Wiring for the three feeds a trading screen needs: a polled price, a
polled order book, and one-shot spot quotes.

A registry passed in stays the caller's to close. When none is passed, the
feed or fetcher builds its own and releases it in ``close()``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Callable, Optional, Tuple

from ..config import FeedSettings, load_settings
from ..providers.base import DataKind, ErrorKind, FetchOutcome, OrderBookSnapshot, Quote, TradingPair
from ..providers.chain import FallbackChain
from ..providers.defaults import (
    create_default_registry,
    create_order_book_chain,
    create_retry_policy,
    create_ticker_chain,
)
from ..providers.registry import ProviderRegistry
from ..validation import PairValidator
from .polling import PollingFeed
from .spot import SpotPriceFetcher

# Price shown when nothing has been fetched for the current target.
NO_PRICE = Decimal("-1")


def _no_price(pair: TradingPair) -> Quote:
    return Quote(pair=pair, price=NO_PRICE, provider_name="")


def _resolve_registry(
    registry: Optional[ProviderRegistry], settings: FeedSettings
) -> Tuple[ProviderRegistry, Optional[Callable[[], None]]]:
    """Return the registry to use and, if it was built here, its closer."""
    if registry is not None:
        return registry, None
    owned = create_default_registry(settings)
    return owned, owned.close


def create_price_feed(
    validator: PairValidator,
    *,
    chain: Optional[FallbackChain] = None,
    settings: Optional[FeedSettings] = None,
    registry: Optional[ProviderRegistry] = None,
) -> PollingFeed[Quote]:
    """Polled last price; pairs outside the valid set are rejected before any request."""
    s = settings or load_settings()
    on_close = None
    if chain is None:
        reg, on_close = _resolve_registry(registry, s)
        chain = create_ticker_chain(reg, s)
    ticker_chain = chain

    async def fetch_price(pair: TradingPair) -> FetchOutcome[Quote]:
        if not validator.check_allowed(pair):
            return FetchOutcome.fatal(ErrorKind.REJECTED_BY_POLICY, f"{pair} is not a listed pair")
        return await ticker_chain.execute(pair, DataKind.TICKER)

    return PollingFeed(
        fetch_price,
        interval_s=s.price_interval_s,
        max_interval_s=s.max_interval_s,
        name="price",
        placeholder=_no_price,
        on_close=on_close,
    )


def create_order_book_feed(
    *,
    chain: Optional[FallbackChain] = None,
    settings: Optional[FeedSettings] = None,
    registry: Optional[ProviderRegistry] = None,
) -> PollingFeed[OrderBookSnapshot]:
    """Polled level-2 order book with secondary-exchange fallback."""
    s = settings or load_settings()
    on_close = None
    if chain is None:
        reg, on_close = _resolve_registry(registry, s)
        chain = create_order_book_chain(reg, s)
    book_chain = chain

    async def fetch_book(pair: TradingPair) -> FetchOutcome[OrderBookSnapshot]:
        return await book_chain.execute(pair, DataKind.ORDER_BOOK)

    return PollingFeed(
        fetch_book,
        interval_s=s.order_book_interval_s,
        max_interval_s=s.max_interval_s,
        name="order_book",
        placeholder=OrderBookSnapshot.empty,
        on_close=on_close,
    )


def create_spot_fetcher(
    validator: PairValidator,
    *,
    settings: Optional[FeedSettings] = None,
    registry: Optional[ProviderRegistry] = None,
) -> SpotPriceFetcher:
    """Single-provider spot quotes from the Coinbase consumer API."""
    s = settings or load_settings()
    reg, on_close = _resolve_registry(registry, s)
    return SpotPriceFetcher(
        reg.get("coinbase"),
        validator,
        retry_policy=create_retry_policy(s),
        on_close=on_close,
    )
