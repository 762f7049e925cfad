"""Exception hierarchy used inside the acquisition layer.

These never reach feed consumers: source clients translate them into
FetchOutcome values at the provider boundary.
"""

from __future__ import annotations


class MarketFeedError(RuntimeError):
    """Base class for all domain-specific exceptions."""


class MalformedPayloadError(MarketFeedError):
    """Raised when a provider payload is missing fields or has unparseable numbers."""


class ConfigError(MarketFeedError):
    """Raised when configuration values are missing or invalid."""
