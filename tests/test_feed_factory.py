"""
Feed factories: default chains, placeholders and ownership of the registry
built when the caller passes none.
"""

from __future__ import annotations

from market_feed.config import _DEFAULTS, load_settings
from market_feed.feeds import NO_PRICE, factory
from market_feed.feeds.factory import create_order_book_feed, create_price_feed, create_spot_fetcher
from market_feed.providers.base import DataKind, TradingPair
from market_feed.providers.registry import ProviderRegistry
from market_feed.validation import PairValidator
from tests.fakes.providers import FakeSourceClient

SETTINGS = load_settings(_DEFAULTS)


class ClosingRegistry(ProviderRegistry):
    def __init__(self):
        super().__init__()
        self.closed = 0
        for name, kinds in (
            ("coinbase", {DataKind.SPOT}),
            ("coinbase_exchange", {DataKind.TICKER, DataKind.ORDER_BOOK}),
            ("binance", {DataKind.TICKER, DataKind.ORDER_BOOK}),
            ("coingecko", {DataKind.TICKER}),
        ):
            self.register(name, FakeSourceClient(name, kinds=kinds))

    def close(self) -> None:
        self.closed += 1
        super().close()


def _patch_default_registry(monkeypatch):
    built = []

    def build(settings=None):
        registry = ClosingRegistry()
        built.append(registry)
        return registry

    monkeypatch.setattr(factory, "create_default_registry", build)
    return built


class TestOwnedRegistry:
    def test_price_feed_closes_registry_it_built(self, monkeypatch):
        built = _patch_default_registry(monkeypatch)
        feed = create_price_feed(PairValidator.from_settings(SETTINGS), settings=SETTINGS)
        assert len(built) == 1
        assert built[0].closed == 0
        assert feed.close() is None
        feed.close()
        assert built[0].closed == 1

    def test_order_book_feed_closes_registry_it_built(self, monkeypatch):
        built = _patch_default_registry(monkeypatch)
        feed = create_order_book_feed(settings=SETTINGS)
        feed.close()
        assert built[0].closed == 1

    def test_spot_fetcher_closes_registry_it_built(self, monkeypatch):
        built = _patch_default_registry(monkeypatch)
        fetcher = create_spot_fetcher(PairValidator.from_settings(SETTINGS), settings=SETTINGS)
        fetcher.close()
        fetcher.close()
        assert built[0].closed == 1

    def test_caller_registry_left_open(self, monkeypatch):
        built = _patch_default_registry(monkeypatch)
        registry = ClosingRegistry()
        feed = create_price_feed(PairValidator.from_settings(SETTINGS), settings=SETTINGS, registry=registry)
        fetcher = create_spot_fetcher(PairValidator.from_settings(SETTINGS), settings=SETTINGS, registry=registry)
        feed.close()
        fetcher.close()
        assert built == []
        assert registry.closed == 0


def test_placeholders():
    registry = ClosingRegistry()
    price = create_price_feed(PairValidator.from_settings(SETTINGS), settings=SETTINGS, registry=registry)
    book = create_order_book_feed(settings=SETTINGS, registry=registry)
    assert price.interval_s == 10.0
    assert book.interval_s == 5.0
    assert NO_PRICE == -1
    assert factory._no_price(TradingPair("BTC")).price == NO_PRICE
