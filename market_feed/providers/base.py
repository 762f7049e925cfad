"""
Provider interfaces and data contracts.

Every provider adapter implements the SourceClient protocol for one or more
data kinds:
- SPOT: reference spot price (Coinbase consumer API)
- TICKER: last traded price on an exchange
- ORDER_BOOK: level-2 depth snapshot

Values are frozen dataclasses; failures are FetchOutcome values, never
exceptions, so retry and fallback decisions can be made on the outcome alone.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Generic, Optional, Protocol, Tuple, TypeVar, runtime_checkable

from ..timeutils import now_utc, now_utc_iso

T = TypeVar("T")

# Quote currency used by the secondary exchange for every pair.
STABLE_QUOTE = "USDT"

# ``(price, quantity)`` as returned by the provider.
BookLevel = Tuple[Decimal, Decimal]


class DataKind(enum.Enum):
    """Kinds of market data a provider can serve."""

    SPOT = "spot"
    TICKER = "ticker"
    ORDER_BOOK = "order_book"


class ErrorKind(enum.Enum):
    """Failure taxonomy shared by clients, retry and fallback."""

    INVALID_RESOURCE = "invalid_resource"
    TRANSIENT = "transient"
    MALFORMED_PAYLOAD = "malformed_payload"
    REJECTED_BY_POLICY = "rejected_by_policy"


class OutcomeStatus(enum.Enum):
    SUCCESS = "success"
    RETRIABLE = "retriable"
    FATAL = "fatal"


class ProviderStatus(enum.Enum):
    """Health status of a data provider."""

    OK = "OK"
    DEGRADED = "DEGRADED"
    DOWN = "DOWN"


@dataclass(frozen=True)
class TradingPair:
    """
    Immutable trading pair, canonicalized as uppercase ``BASE-QUOTE``.

    Equality and hashing follow the canonical string, so ``btc-usd`` and
    ``BTC-USD`` are the same pair.
    """

    base: str
    quote: str = "USD"

    def __post_init__(self) -> None:
        base = (self.base or "").strip().upper()
        quote = (self.quote or "").strip().upper()
        if not base or not quote:
            raise ValueError("TradingPair base and quote must be non-empty strings.")
        if "-" in base or "-" in quote:
            raise ValueError(f"Invalid symbol in pair: {self.base!r}/{self.quote!r}")
        object.__setattr__(self, "base", base)
        object.__setattr__(self, "quote", quote)

    @classmethod
    def parse(cls, text: str, default_quote: str = "USD") -> TradingPair:
        """Parse ``BTC-USD``, ``btc/usd`` or a bare ``BTC`` (quote defaults to USD)."""
        cleaned = (text or "").strip().replace("/", "-")
        if "-" in cleaned:
            base, _, quote = cleaned.partition("-")
            return cls(base, quote)
        return cls(cleaned, default_quote)

    @property
    def canonical(self) -> str:
        return f"{self.base}-{self.quote}"

    def exchange_symbol(self, stable_quote: str = STABLE_QUOTE) -> str:
        """Concatenated symbol used by the secondary exchange, e.g. ``BTCUSDT``."""
        return f"{self.base}{stable_quote}"

    def __str__(self) -> str:
        return self.canonical


@dataclass(frozen=True)
class Quote:
    """A single price observation. Never partially populated."""

    pair: TradingPair
    price: Decimal
    provider_name: str
    observed_at: datetime = field(default_factory=now_utc)


@dataclass(frozen=True)
class OrderBookSnapshot:
    """Level-2 depth; bids and asks keep the provider's order (best first)."""

    pair: TradingPair
    bids: Tuple[BookLevel, ...]
    asks: Tuple[BookLevel, ...]
    provider_name: str
    observed_at: datetime = field(default_factory=now_utc)

    @classmethod
    def empty(cls, pair: TradingPair) -> OrderBookSnapshot:
        """The "no data" snapshot shown when nothing has been fetched yet."""
        return cls(pair=pair, bids=(), asks=(), provider_name="")

    @property
    def is_empty(self) -> bool:
        return not self.bids and not self.asks


@dataclass(frozen=True)
class FetchOutcome(Generic[T]):
    """
    Tagged result of a fetch: SUCCESS carries a value, RETRIABLE/FATAL carry
    an ErrorKind. ``trail`` collects earlier provider failures when the
    outcome comes out of a fallback chain.
    """

    status: OutcomeStatus
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: str = ""
    provider_name: str = ""
    attempts: int = 1
    trail: Tuple[str, ...] = ()

    @classmethod
    def success(cls, value: T, provider_name: str = "") -> FetchOutcome[T]:
        return cls(OutcomeStatus.SUCCESS, value=value, provider_name=provider_name)

    @classmethod
    def retriable(cls, error: ErrorKind, message: str = "", provider_name: str = "") -> FetchOutcome[T]:
        return cls(OutcomeStatus.RETRIABLE, error=error, message=message, provider_name=provider_name)

    @classmethod
    def fatal(cls, error: ErrorKind, message: str = "", provider_name: str = "") -> FetchOutcome[T]:
        return cls(OutcomeStatus.FATAL, error=error, message=message, provider_name=provider_name)

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS

    @property
    def is_retriable(self) -> bool:
        return self.status is OutcomeStatus.RETRIABLE

    @property
    def is_fatal(self) -> bool:
        return self.status is OutcomeStatus.FATAL

    def to_terminal(self) -> FetchOutcome[T]:
        """Turn an exhausted RETRIABLE outcome into a FATAL one, keeping the error kind."""
        if self.status is not OutcomeStatus.RETRIABLE:
            return self
        return replace(self, status=OutcomeStatus.FATAL)

    def describe(self) -> str:
        if self.ok:
            return f"{self.provider_name or '?'}: ok"
        kind = self.error.value if self.error else "unknown"
        text = f"{self.provider_name or '?'}: {kind}"
        return f"{text} ({self.message})" if self.message else text


@dataclass
class ProviderHealth:
    """Mutable health state for a single provider instance."""

    provider_name: str
    status: ProviderStatus = ProviderStatus.OK
    last_ok_at: Optional[str] = None
    fail_count: int = 0
    last_error: Optional[str] = None

    def record_success(self) -> None:
        self.status = ProviderStatus.OK
        self.fail_count = 0
        self.last_ok_at = now_utc_iso()
        self.last_error = None

    def record_failure(self, error: str) -> None:
        self.fail_count += 1
        self.last_error = error[:500]
        if self.fail_count >= 5:
            self.status = ProviderStatus.DOWN
        elif self.fail_count >= 2:
            self.status = ProviderStatus.DEGRADED


@runtime_checkable
class SourceClient(Protocol):
    """One HTTP provider adapter. One round trip per call, no retries."""

    @property
    def provider_name(self) -> str: ...

    @property
    def supported_kinds(self) -> frozenset: ...

    async def fetch(self, pair: TradingPair, kind: DataKind) -> FetchOutcome[Any]:
        """Fetch and parse one value of ``kind`` for ``pair``."""
        ...
