"""
Binance providers (secondary exchange).

Uses the public Binance spot API (no authentication required):
  GET https://api.binance.com/api/v3/ticker/price?symbol={BASE}USDT
  GET https://api.binance.com/api/v3/depth?symbol={BASE}USDT&limit={depth}

Binance only quotes against stablecoins here, so the pair's quote currency is
replaced by USDT when building the symbol.
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import requests

from ...errors import MalformedPayloadError
from ..base import STABLE_QUOTE, DataKind, OrderBookSnapshot, Quote, TradingPair
from ..http import REQUEST_TIMEOUT_S, RESOURCE_TIMEOUT_S, HttpSourceClient, parse_levels, to_decimal

BINANCE_BASE_URL = "https://api.binance.com"
DEFAULT_BOOK_DEPTH = 10


class BinanceClient(HttpSourceClient):
    """Ticker price and depth from Binance."""

    name = "binance"
    kinds = frozenset({DataKind.TICKER, DataKind.ORDER_BOOK})

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
        request_timeout_s: float = REQUEST_TIMEOUT_S,
        resource_timeout_s: float = RESOURCE_TIMEOUT_S,
        book_depth: int = DEFAULT_BOOK_DEPTH,
        stable_quote: str = STABLE_QUOTE,
    ) -> None:
        super().__init__(
            session=session,
            base_url=base_url,
            request_timeout_s=request_timeout_s,
            resource_timeout_s=resource_timeout_s,
        )
        if book_depth <= 0:
            raise ValueError("book_depth must be a positive integer")
        self._book_depth = book_depth
        self._stable_quote = stable_quote.upper()

    @classmethod
    def default_base_url(cls) -> str:
        return BINANCE_BASE_URL

    def _request_for(self, pair: TradingPair, kind: DataKind) -> Tuple[str, Dict[str, Any]]:
        symbol = pair.exchange_symbol(self._stable_quote)
        if kind is DataKind.ORDER_BOOK:
            return "/api/v3/depth", {"symbol": symbol, "limit": self._book_depth}
        return "/api/v3/ticker/price", {"symbol": symbol}

    def _parse(self, payload: Any, pair: TradingPair, kind: DataKind) -> Any:
        if not isinstance(payload, dict):
            raise MalformedPayloadError(f"Binance returned {type(payload).__name__}, expected object")
        if kind is DataKind.ORDER_BOOK:
            return OrderBookSnapshot(
                pair=pair,
                bids=parse_levels(payload.get("bids"), "bids"),
                asks=parse_levels(payload.get("asks"), "asks"),
                provider_name=self.name,
            )
        return Quote(pair=pair, price=to_decimal(payload.get("price"), "price"), provider_name=self.name)
