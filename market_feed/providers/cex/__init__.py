"""CEX (centralized exchange) price and order book providers."""
from __future__ import annotations

from .binance import BinanceClient
from .coinbase import CoinbaseExchangeClient, CoinbaseSpotClient
from .coingecko import CoinGeckoClient

__all__ = ["BinanceClient", "CoinbaseExchangeClient", "CoinbaseSpotClient", "CoinGeckoClient"]
