"""
Shared HTTP plumbing for provider adapters.

One call to ``fetch`` is one round trip. The blocking ``requests`` call runs
in a worker thread so the event loop stays free, and the whole round trip is
bounded by ``resource_timeout_s`` on top of the per-request timeout.

Status classification:
  2xx + parseable payload   -> SUCCESS
  400 / 404                 -> FATAL(INVALID_RESOURCE)
  other non-2xx, timeouts,
  connection errors, non-JSON -> RETRIABLE(TRANSIENT)
  missing fields / bad numbers -> FATAL(MALFORMED_PAYLOAD)
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import requests

from ..errors import MalformedPayloadError
from .base import DataKind, ErrorKind, FetchOutcome, TradingPair

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_S = 10.0
RESOURCE_TIMEOUT_S = 15.0
INVALID_RESOURCE_STATUS_CODES = (400, 404)


def to_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a provider number (usually a decimal string) without going through float."""
    if value is None or isinstance(value, bool):
        raise MalformedPayloadError(f"missing numeric field {field_name!r}")
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise MalformedPayloadError(f"field {field_name!r} is not a number: {value!r}") from exc
    if not parsed.is_finite():
        raise MalformedPayloadError(f"field {field_name!r} is not finite: {value!r}")
    return parsed


def parse_levels(raw: Any, side: str) -> tuple:
    """Parse ``[[price, qty, ...], ...]`` into ``((price, qty), ...)`` keeping order."""
    if not isinstance(raw, list):
        raise MalformedPayloadError(f"order book side {side!r} is not a list")
    levels = []
    for row in raw:
        if not isinstance(row, (list, tuple)) or len(row) < 2:
            raise MalformedPayloadError(f"order book {side} entry has unexpected shape: {row!r}")
        levels.append((to_decimal(row[0], f"{side}.price"), to_decimal(row[1], f"{side}.qty")))
    return tuple(levels)


class HttpSourceClient:
    """
    Base class for requests-backed SourceClients.

    Subclasses set ``name`` and ``kinds`` and implement ``_request_for`` (URL and
    params for one kind) and ``_parse`` (payload -> Quote / OrderBookSnapshot).
    """

    name = "http"
    kinds: frozenset = frozenset()

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
        request_timeout_s: float = REQUEST_TIMEOUT_S,
        resource_timeout_s: float = RESOURCE_TIMEOUT_S,
    ) -> None:
        self._session = session or requests.Session()
        self._owns_session = session is None
        self._base_url = (base_url or self.default_base_url()).rstrip("/")
        self._request_timeout_s = request_timeout_s
        self._resource_timeout_s = resource_timeout_s

    @classmethod
    def default_base_url(cls) -> str:
        raise NotImplementedError

    @property
    def provider_name(self) -> str:
        return self.name

    @property
    def supported_kinds(self) -> frozenset:
        return self.kinds

    def close(self) -> None:
        if self._owns_session:
            self._session.close()

    async def fetch(self, pair: TradingPair, kind: DataKind) -> FetchOutcome[Any]:
        if kind not in self.kinds:
            return FetchOutcome.fatal(
                ErrorKind.INVALID_RESOURCE,
                f"{self.name} does not serve {kind.value}",
                provider_name=self.name,
            )
        path, params = self._request_for(pair, kind)
        url = f"{self._base_url}{path}"
        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(self._get, url, params),
                timeout=self._resource_timeout_s,
            )
        except asyncio.TimeoutError:
            logger.debug("%s: %s timed out after %.1fs", self.name, url, self._resource_timeout_s)
            return FetchOutcome.retriable(ErrorKind.TRANSIENT, "resource timeout", provider_name=self.name)
        except requests.Timeout as exc:
            logger.debug("%s: request timeout for %s: %s", self.name, url, exc)
            return FetchOutcome.retriable(ErrorKind.TRANSIENT, f"timeout: {exc}", provider_name=self.name)
        except requests.RequestException as exc:
            logger.debug("%s: request failed for %s: %s", self.name, url, exc)
            return FetchOutcome.retriable(
                ErrorKind.TRANSIENT, f"{type(exc).__name__}: {exc}", provider_name=self.name
            )
        return self._classify(response, pair, kind)

    def _get(self, url: str, params: Dict[str, Any]) -> requests.Response:
        return self._session.get(url, params=params or None, timeout=self._request_timeout_s)

    def _classify(self, response: requests.Response, pair: TradingPair, kind: DataKind) -> FetchOutcome[Any]:
        status = response.status_code
        if not 200 <= status < 300:
            body = response.text
            logger.warning("%s: HTTP %d for %s %s; body=%s", self.name, status, pair, kind.value, body)
            if status in INVALID_RESOURCE_STATUS_CODES:
                return FetchOutcome.fatal(
                    ErrorKind.INVALID_RESOURCE, f"HTTP {status}", provider_name=self.name
                )
            return FetchOutcome.retriable(ErrorKind.TRANSIENT, f"HTTP {status}", provider_name=self.name)

        try:
            payload = response.json()
        except ValueError as exc:
            logger.debug("%s: non-JSON body for %s: %s", self.name, pair, exc)
            return FetchOutcome.retriable(ErrorKind.TRANSIENT, "non-JSON payload", provider_name=self.name)

        try:
            value = self._parse(payload, pair, kind)
        except MalformedPayloadError as exc:
            logger.warning("%s: malformed %s payload for %s: %s", self.name, kind.value, pair, exc)
            return FetchOutcome.fatal(ErrorKind.MALFORMED_PAYLOAD, str(exc), provider_name=self.name)
        return FetchOutcome.success(value, provider_name=self.name)

    def _request_for(self, pair: TradingPair, kind: DataKind) -> tuple[str, Dict[str, Any]]:
        raise NotImplementedError

    def _parse(self, payload: Any, pair: TradingPair, kind: DataKind) -> Any:
        raise NotImplementedError
