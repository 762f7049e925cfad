"""Fake source clients and helpers for provider, chain and feed tests (no live network)."""

from .providers import (
    FakeSourceClient,
    FakeSourceClientAlwaysFail,
    FakeSourceClientFailNThenSucceed,
    GatedSourceClient,
    RecordingSleep,
)

__all__ = [
    "FakeSourceClient",
    "FakeSourceClientAlwaysFail",
    "FakeSourceClientFailNThenSucceed",
    "GatedSourceClient",
    "RecordingSleep",
]
