"""
Coinbase providers.

Uses the public Coinbase APIs (no authentication required):
  GET https://api.coinbase.com/v2/prices/{BASE}-{QUOTE}/spot
  GET https://api.exchange.coinbase.com/products/{BASE}-{QUOTE}/ticker
  GET https://api.exchange.coinbase.com/products/{BASE}-{QUOTE}/book?level=2
"""
from __future__ import annotations

from typing import Any, Dict, Tuple

from ...errors import MalformedPayloadError
from ..base import DataKind, OrderBookSnapshot, Quote, TradingPair
from ..http import HttpSourceClient, parse_levels, to_decimal

COINBASE_BASE_URL = "https://api.coinbase.com"
COINBASE_EXCHANGE_BASE_URL = "https://api.exchange.coinbase.com"


class CoinbaseSpotClient(HttpSourceClient):
    """Spot prices from the Coinbase consumer API."""

    name = "coinbase"
    kinds = frozenset({DataKind.SPOT})

    @classmethod
    def default_base_url(cls) -> str:
        return COINBASE_BASE_URL

    def _request_for(self, pair: TradingPair, kind: DataKind) -> Tuple[str, Dict[str, Any]]:
        return f"/v2/prices/{pair.canonical}/spot", {}

    def _parse(self, payload: Any, pair: TradingPair, kind: DataKind) -> Quote:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise MalformedPayloadError("Coinbase response missing 'data'")
        for key in ("base", "currency", "amount"):
            if key not in data:
                raise MalformedPayloadError(f"Coinbase response missing data.{key}")
        return Quote(pair=pair, price=to_decimal(data["amount"], "data.amount"), provider_name=self.name)


class CoinbaseExchangeClient(HttpSourceClient):
    """Ticker and level-2 book from Coinbase Exchange (primary exchange)."""

    name = "coinbase_exchange"
    kinds = frozenset({DataKind.TICKER, DataKind.ORDER_BOOK})

    @classmethod
    def default_base_url(cls) -> str:
        return COINBASE_EXCHANGE_BASE_URL

    def _request_for(self, pair: TradingPair, kind: DataKind) -> Tuple[str, Dict[str, Any]]:
        if kind is DataKind.ORDER_BOOK:
            return f"/products/{pair.canonical}/book", {"level": 2}
        return f"/products/{pair.canonical}/ticker", {}

    def _parse(self, payload: Any, pair: TradingPair, kind: DataKind) -> Any:
        if not isinstance(payload, dict):
            raise MalformedPayloadError(f"Coinbase Exchange returned {type(payload).__name__}, expected object")
        if kind is DataKind.ORDER_BOOK:
            return OrderBookSnapshot(
                pair=pair,
                bids=parse_levels(payload.get("bids"), "bids"),
                asks=parse_levels(payload.get("asks"), "asks"),
                provider_name=self.name,
            )
        return Quote(pair=pair, price=to_decimal(payload.get("price"), "price"), provider_name=self.name)
