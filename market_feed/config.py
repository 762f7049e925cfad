"""
Load config from config.yaml with optional env overrides.
Single source of truth for valid pairs, polling intervals, retry budget,
timeouts and provider priorities.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, FrozenSet, Optional, Tuple

import yaml

from .errors import ConfigError

# Pairs the spot provider is known to serve. Anything else is rejected
# locally unless allow_unlisted is set.
DEFAULT_VALID_PAIRS = [
    "BTC-USD", "ETH-USD", "USDT-USD", "XRP-USD", "BNB-USD",
    "USDC-USD", "SOL-USD", "DOGE-USD", "ADA-USD", "TRX-USD",
    "WBTC-USD", "WETH-USD", "WEETH-USD", "UNI-USD", "DAI-USD",
    "APT-USD", "TON-USD", "LINK-USD", "XLM-USD", "WSTETH-USD",
    "AVAX-USD", "SUI-USD", "SHIB-USD", "HBAR-USD", "LTC-USD",
    "OM-USD", "DOT-USD", "BCH-USD", "SUSDE-USD", "AAVE-USD",
    "ATOM-USD", "CRO-USD", "NEAR-USD", "PEPE-USD", "OKB-USD",
    "CBBTC-USD", "GT-USD",
]

# Defaults if no YAML or env
_DEFAULTS = {
    "pairs": {
        "valid": DEFAULT_VALID_PAIRS,
        "allow_unlisted": False,
    },
    "polling": {
        "price_interval_s": 10.0,
        "order_book_interval_s": 5.0,
        # null disables adaptive back-off between polls
        "max_interval_s": None,
    },
    "retry": {
        "max_attempts": 3,
        "backoff_step_s": 2.0,
        "max_delay_s": 60.0,
    },
    "http": {
        "request_timeout_s": 10.0,
        "resource_timeout_s": 15.0,
    },
    "providers": {
        "ticker_priority": ["coinbase_exchange", "binance", "coingecko"],
        "order_book_priority": ["coinbase_exchange", "binance"],
        "book_depth": 10,
    },
}


def _config_yaml_path() -> Path:
    """Config.yaml lives at repo root (parent of package dir) unless MARKET_FEED_CONFIG points elsewhere."""
    override = os.environ.get("MARKET_FEED_CONFIG", "").strip()
    if override:
        return Path(override)
    return Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml() -> dict:
    config_path = _config_yaml_path()
    if not config_path.exists():
        if os.environ.get("MARKET_FEED_CONFIG", "").strip():
            raise ConfigError(f"MARKET_FEED_CONFIG points to a missing file: {config_path}")
        return {}
    with open(config_path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Cannot parse {config_path}: {exc}") from exc
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict, override: dict) -> dict:
    out = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_overrides() -> dict:
    overrides: dict = {}
    allow = os.environ.get("MARKET_FEED_ALLOW_UNLISTED")
    if allow:
        overrides.setdefault("pairs", {})["allow_unlisted"] = _env_flag(allow)
    attempts = os.environ.get("MARKET_FEED_MAX_ATTEMPTS")
    if attempts:
        overrides.setdefault("retry", {})["max_attempts"] = attempts
    price_interval = os.environ.get("MARKET_FEED_PRICE_INTERVAL")
    if price_interval:
        overrides.setdefault("polling", {})["price_interval_s"] = price_interval
    book_interval = os.environ.get("MARKET_FEED_BOOK_INTERVAL")
    if book_interval:
        overrides.setdefault("polling", {})["order_book_interval_s"] = book_interval
    return overrides


def get_config() -> dict:
    """Return merged config: defaults <- config.yaml <- env."""
    merged = _deep_merge(_DEFAULTS, _load_yaml())
    merged = _deep_merge(merged, _env_overrides())
    return merged


def _positive_float(value: Any, name: str) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc
    if parsed <= 0:
        raise ConfigError(f"{name} must be positive, got {parsed}")
    return parsed


def _positive_int(value: Any, name: str) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc
    if parsed < 1:
        raise ConfigError(f"{name} must be at least 1, got {parsed}")
    return parsed


@dataclass(frozen=True)
class FeedSettings:
    """Construction-time settings. Never mutated once built."""

    valid_pairs: FrozenSet[str]
    allow_unlisted: bool
    price_interval_s: float
    order_book_interval_s: float
    max_interval_s: Optional[float]
    max_attempts: int
    backoff_step_s: float
    max_delay_s: float
    request_timeout_s: float
    resource_timeout_s: float
    ticker_priority: Tuple[str, ...]
    order_book_priority: Tuple[str, ...]
    book_depth: int


def load_settings(config: Optional[dict] = None) -> FeedSettings:
    """Validate a merged config mapping (``get_config()`` by default) into FeedSettings."""
    cfg = config if config is not None else get_config()
    pairs = cfg.get("pairs", {})
    polling = cfg.get("polling", {})
    retry = cfg.get("retry", {})
    http = cfg.get("http", {})
    providers = cfg.get("providers", {})

    valid = pairs.get("valid") or []
    if not isinstance(valid, (list, tuple, set, frozenset)):
        raise ConfigError("pairs.valid must be a list of BASE-QUOTE strings")

    max_interval = polling.get("max_interval_s")
    return FeedSettings(
        valid_pairs=frozenset(str(p).strip().upper() for p in valid if str(p).strip()),
        allow_unlisted=bool(pairs.get("allow_unlisted", False)),
        price_interval_s=_positive_float(polling.get("price_interval_s"), "polling.price_interval_s"),
        order_book_interval_s=_positive_float(polling.get("order_book_interval_s"), "polling.order_book_interval_s"),
        max_interval_s=None if max_interval is None else _positive_float(max_interval, "polling.max_interval_s"),
        max_attempts=_positive_int(retry.get("max_attempts"), "retry.max_attempts"),
        backoff_step_s=float(retry.get("backoff_step_s", 2.0)),
        max_delay_s=float(retry.get("max_delay_s", 60.0)),
        request_timeout_s=_positive_float(http.get("request_timeout_s"), "http.request_timeout_s"),
        resource_timeout_s=_positive_float(http.get("resource_timeout_s"), "http.resource_timeout_s"),
        ticker_priority=tuple(providers.get("ticker_priority") or ()),
        order_book_priority=tuple(providers.get("order_book_priority") or ()),
        book_depth=_positive_int(providers.get("book_depth", 10), "providers.book_depth"),
    )


# Convenience accessors
def valid_pairs() -> FrozenSet[str]:
    return load_settings().valid_pairs


def allow_unlisted() -> bool:
    return load_settings().allow_unlisted


def max_attempts() -> int:
    return load_settings().max_attempts
