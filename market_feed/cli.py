"""
Command line entry point: market-feed <command> [args...].

  market-feed spot BTC-USD            One spot quote (Coinbase, with retries)
  market-feed watch BTC-USD --kind book   Poll an order book and print updates
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import load_settings
from .errors import ConfigError
from .feeds import FeedView, create_order_book_feed, create_price_feed, create_spot_fetcher
from .providers.base import OrderBookSnapshot, Quote, TradingPair
from .providers.defaults import create_default_registry
from .validation import PairValidator

logger = logging.getLogger(__name__)


def _format_view(view: FeedView) -> str:
    shown = view.display_value()
    if isinstance(shown, Quote):
        body = f"price={shown.price}"
    elif isinstance(shown, OrderBookSnapshot):
        best_bid = shown.bids[0] if shown.bids else None
        best_ask = shown.asks[0] if shown.asks else None
        body = f"bids={len(shown.bids)} asks={len(shown.asks)} best_bid={best_bid} best_ask={best_ask}"
    else:
        body = "no data"
    parts = [str(view.target), body]
    if view.provider_name:
        parts.append(f"via {view.provider_name}")
    if view.error is not None:
        parts.append(f"error={view.error.value}{' (stale)' if view.is_stale else ''}")
    return " ".join(parts)


async def _run_spot(args: argparse.Namespace) -> int:
    pair = TradingPair.parse(args.pair)
    settings = load_settings()
    registry = create_default_registry(settings)
    try:
        fetcher = create_spot_fetcher(PairValidator.from_settings(settings), settings=settings, registry=registry)
        quote = await fetcher.fetch(pair, max_attempts=args.attempts, allow_unlisted=args.allow_unlisted or None)
    finally:
        registry.close()
    if quote is None:
        print(f"{pair} no data")
        return 1
    print(f"{quote.pair} {quote.price} via {quote.provider_name} at {quote.observed_at.isoformat(timespec='seconds')}")
    return 0


async def _run_watch(args: argparse.Namespace) -> int:
    settings = load_settings()
    registry = create_default_registry(settings)
    if args.kind == "book":
        feed = create_order_book_feed(settings=settings, registry=registry)
    else:
        feed = create_price_feed(PairValidator.from_settings(settings), settings=settings, registry=registry)

    updates: asyncio.Queue = asyncio.Queue()
    unsubscribe = feed.subscribe(updates.put_nowait)
    got_data = False
    feed.start(args.pair)
    try:
        for _ in range(args.count):
            view = await updates.get()
            got_data = got_data or view.value is not None
            print(_format_view(view), flush=True)
    finally:
        unsubscribe()
        handle = feed.stop()
        if handle is not None:
            await handle.wait()
        registry.close()
    return 0 if got_data else 1


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    parser = argparse.ArgumentParser(prog="market-feed", description="Resilient market data feeds")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    subparsers = parser.add_subparsers(dest="command", help="command")

    spot = subparsers.add_parser("spot", help="Fetch one spot quote")
    spot.add_argument("pair", help="Pair such as BTC-USD (bare BTC means BTC-USD)")
    spot.add_argument("--attempts", type=int, default=None, help="Max attempts (default from config)")
    spot.add_argument("--allow-unlisted", action="store_true", help="Skip the valid-pair check")

    watch = subparsers.add_parser("watch", help="Poll a price or order book and print each update")
    watch.add_argument("pair", help="Pair such as BTC-USD")
    watch.add_argument("--kind", choices=("price", "book"), default="price")
    watch.add_argument("--count", type=int, default=3, help="Stop after N updates (default: 3)")

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        if args.command == "spot":
            return asyncio.run(_run_spot(args))
        return asyncio.run(_run_watch(args))
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2
    except ValueError as exc:
        logger.error("%s", exc)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
