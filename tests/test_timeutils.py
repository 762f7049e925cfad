"""Deterministic clock override."""

from __future__ import annotations

from datetime import datetime, timezone

from market_feed.timeutils import now_utc, now_utc_iso


def test_deterministic_time(monkeypatch):
    monkeypatch.setenv("MARKET_FEED_DETERMINISTIC_TIME", "2026-01-01T00:00:00Z")
    assert now_utc() == datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert now_utc_iso() == "2026-01-01T00:00:00+00:00"


def test_naive_value_is_utc(monkeypatch):
    monkeypatch.setenv("MARKET_FEED_DETERMINISTIC_TIME", "2026-03-04T05:06:07")
    assert now_utc().tzinfo is timezone.utc


def test_wall_clock_is_aware(monkeypatch):
    monkeypatch.delenv("MARKET_FEED_DETERMINISTIC_TIME", raising=False)
    assert now_utc().tzinfo is not None
