"""
CoinGecko price provider (last-resort ticker fallback).

Uses the public CoinGecko API (no authentication required):
  GET https://api.coingecko.com/api/v3/simple/price?ids={coin_id}&vs_currencies={quote}
"""
from __future__ import annotations

from typing import Any, Dict, Tuple

from ...errors import MalformedPayloadError
from ..base import DataKind, Quote, TradingPair
from ..http import HttpSourceClient, to_decimal

COINGECKO_BASE_URL = "https://api.coingecko.com"

_SYMBOL_TO_COIN_ID = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "BNB": "binancecoin",
    "SOL": "solana",
    "ADA": "cardano",
    "XRP": "ripple",
    "DOGE": "dogecoin",
}


def coin_id_for(symbol: str) -> str:
    """Map a ticker symbol to a CoinGecko coin id, falling back to the lowercased symbol."""
    return _SYMBOL_TO_COIN_ID.get(symbol.upper(), symbol.lower())


class CoinGeckoClient(HttpSourceClient):
    """Ticker-style prices from CoinGecko's simple price endpoint."""

    name = "coingecko"
    kinds = frozenset({DataKind.TICKER})

    @classmethod
    def default_base_url(cls) -> str:
        return COINGECKO_BASE_URL

    def _request_for(self, pair: TradingPair, kind: DataKind) -> Tuple[str, Dict[str, Any]]:
        return "/api/v3/simple/price", {"ids": coin_id_for(pair.base), "vs_currencies": pair.quote.lower()}

    def _parse(self, payload: Any, pair: TradingPair, kind: DataKind) -> Quote:
        coin_id = coin_id_for(pair.base)
        entry = payload.get(coin_id) if isinstance(payload, dict) else None
        if not isinstance(entry, dict):
            # CoinGecko answers 200 with {} for unknown ids.
            raise MalformedPayloadError(f"CoinGecko response missing {coin_id!r}")
        currency = pair.quote.lower()
        return Quote(pair=pair, price=to_decimal(entry.get(currency), f"{coin_id}.{currency}"), provider_name=self.name)
