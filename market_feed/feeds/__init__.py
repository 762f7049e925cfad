"""Polling and one-shot feeds built on the provider layer."""

from __future__ import annotations

from .factory import NO_PRICE, create_order_book_feed, create_price_feed, create_spot_fetcher
from .polling import FeedView, PollingFeed, ScheduledTask
from .spot import SpotPriceFetcher

__all__ = [
    "NO_PRICE",
    "FeedView",
    "PollingFeed",
    "ScheduledTask",
    "SpotPriceFetcher",
    "create_order_book_feed",
    "create_price_feed",
    "create_spot_fetcher",
]
