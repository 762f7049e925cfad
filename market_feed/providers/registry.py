"""
Provider registry: central catalog of available source clients.

Clients register under a name. A priority list (from config.yaml) decides
which registered clients make up a fallback chain and in what order.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .base import DataKind, SourceClient

logger = logging.getLogger(__name__)

SourceFactory = Callable[[], SourceClient]


class ProviderRegistry:
    """
    Registry mapping provider names to client factories or instances.

    Usage:
        registry = ProviderRegistry()
        registry.register("coinbase_exchange", CoinbaseExchangeClient)
        registry.register("binance", BinanceClient)

        providers = registry.build_chain(["coinbase_exchange", "binance"], DataKind.ORDER_BOOK)
    """

    def __init__(self) -> None:
        self._factories: Dict[str, Union[SourceFactory, SourceClient]] = {}
        self._instances: Dict[str, SourceClient] = {}

    def register(self, name: str, factory: Union[SourceFactory, SourceClient], *, replace: bool = False) -> None:
        """Register a client factory (or ready instance) by name."""
        if not replace and name in self._factories:
            raise ValueError(f"Provider '{name}' already registered")
        self._factories[name] = factory
        self._instances.pop(name, None)
        logger.debug("Registered provider: %s", name)

    def get(self, name: str) -> SourceClient:
        """Get or instantiate a client by name. Instances are reused."""
        if name not in self._instances:
            factory = self._factories.get(name)
            if factory is None:
                raise KeyError(
                    f"Unknown provider '{name}'. "
                    f"Available: {list(self._factories)}"
                )
            if isinstance(factory, type) or not isinstance(factory, SourceClient):
                self._instances[name] = factory()
            else:
                self._instances[name] = factory
        return self._instances[name]

    @property
    def names(self) -> List[str]:
        return list(self._factories)

    def build_chain(self, priority: Optional[Sequence[str]] = None, kind: Optional[DataKind] = None) -> List[SourceClient]:
        """Ordered clients from a priority list, keeping only those serving ``kind``."""
        names = list(priority) if priority else list(self._factories)
        providers: List[SourceClient] = []
        for name in names:
            if name not in self._factories:
                logger.warning("Provider '%s' in priority list is not registered; skipping", name)
                continue
            client = self.get(name)
            if kind is not None and kind not in client.supported_kinds:
                continue
            providers.append(client)
        return providers

    def close(self) -> None:
        """Close every instantiated client that owns a session."""
        for client in self._instances.values():
            closer: Any = getattr(client, "close", None)
            if callable(closer):
                closer()
