"""
Local allow-list check for trading pairs.

Pairs outside the valid set never reach the network. Each rejected pair is
logged once per validator instance; later rejections are silent.
"""

from __future__ import annotations

import logging
import threading
from typing import FrozenSet, Iterable, Optional, Set, Union

from .providers.base import TradingPair

logger = logging.getLogger(__name__)

PairLike = Union[TradingPair, str]


def canonical_pair(pair: PairLike) -> str:
    """Uppercase ``BASE-QUOTE`` form of a pair or pair string."""
    if isinstance(pair, TradingPair):
        return pair.canonical
    return TradingPair.parse(pair).canonical


class PairValidator:
    """
    Owns the valid-pair set and the log-once cache of rejected pairs.

    Construct once at startup and share the instance between feeds. Cache
    access is serialized so concurrent symbol changes cannot double-log.
    """

    def __init__(self, valid_pairs: Iterable[str], *, allow_unlisted: bool = False) -> None:
        self._valid: FrozenSet[str] = frozenset(canonical_pair(p) for p in valid_pairs)
        self._allow_unlisted = allow_unlisted
        self._logged_invalid: Set[str] = set()
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings) -> PairValidator:
        return cls(settings.valid_pairs, allow_unlisted=settings.allow_unlisted)

    @property
    def valid_pairs(self) -> FrozenSet[str]:
        return self._valid

    @property
    def allow_unlisted(self) -> bool:
        return self._allow_unlisted

    def is_listed(self, pair: PairLike) -> bool:
        return canonical_pair(pair) in self._valid

    def check_allowed(self, pair: PairLike, allow_unlisted: Optional[bool] = None) -> bool:
        """
        True when ``pair`` may be fetched. ``allow_unlisted`` overrides the
        instance default for this call and skips the check entirely.
        """
        bypass = self._allow_unlisted if allow_unlisted is None else allow_unlisted
        if bypass:
            return True
        key = canonical_pair(pair)
        if key in self._valid:
            return True
        with self._lock:
            first_time = key not in self._logged_invalid
            if first_time:
                self._logged_invalid.add(key)
        if first_time:
            logger.warning("%s is not in the list of valid pairs; skipping fetch", key)
        return False

    def logged_invalid_pairs(self) -> FrozenSet[str]:
        """Snapshot of pairs already reported as invalid."""
        with self._lock:
            return frozenset(self._logged_invalid)
