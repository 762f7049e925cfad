"""
Single source for "now" time. Supports deterministic mode for tests via
MARKET_FEED_DETERMINISTIC_TIME (ISO format, e.g. 2026-01-01T00:00:00Z).
"""

from __future__ import annotations

import os
from datetime import datetime, timezone


def now_utc() -> datetime:
    """
    Return the current UTC time.
    If env MARKET_FEED_DETERMINISTIC_TIME is set, return that instant instead.
    """
    fixed = os.environ.get("MARKET_FEED_DETERMINISTIC_TIME", "").strip()
    if fixed:
        parsed = datetime.fromisoformat(fixed.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return datetime.now(timezone.utc)


def now_utc_iso() -> str:
    """Current UTC time in ISO format (seconds)."""
    return now_utc().isoformat(timespec="seconds")
