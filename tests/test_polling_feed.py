"""
Tests for PollingFeed: lifecycle, stale-but-available state, generation
guarding on stop/retarget, adaptive interval and subscriber isolation.
"""
from __future__ import annotations

import asyncio
import logging
from decimal import Decimal

import pytest

from market_feed.feeds.polling import FeedView, PollingFeed, ScheduledTask
from market_feed.providers.base import DataKind, ErrorKind, FetchOutcome, Quote, TradingPair
from tests.fakes.providers import FakeSourceClient, GatedSourceClient, RecordingSleep

BTC = TradingPair("BTC", "USD")
ETH = TradingPair("ETH", "USD")


def _quote(price, pair=BTC, provider="p"):
    return Quote(pair=pair, price=Decimal(price), provider_name=provider)


class ScriptedFetch:
    """Returns the scripted outcomes in order; the last one repeats."""

    def __init__(self, *outcomes):
        self._outcomes = list(outcomes)
        self.calls = []

    async def __call__(self, pair):
        self.calls.append(pair)
        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def client_fetch(client, kind=DataKind.TICKER):
    async def fetch(pair):
        return await client.fetch(pair, kind)

    return fetch


async def collect(feed, target, n):
    views = []
    done = asyncio.Event()

    def on_view(view):
        views.append(view)
        if len(views) >= n:
            done.set()

    feed.subscribe(on_view)
    feed.start(target)
    await asyncio.wait_for(done.wait(), timeout=5)
    handle = feed.stop()
    if handle is not None:
        await handle.wait()
    return views


async def settle(rounds=10):
    for _ in range(rounds):
        await asyncio.sleep(0)


class TestLifecycle:
    def test_start_publishes_value(self):
        feed = PollingFeed(client_fetch(FakeSourceClient("coinbase_exchange")), interval_s=10)
        views = asyncio.run(collect(feed, "BTC-USD", 1))

        view = views[0]
        assert isinstance(view, FeedView)
        assert view.target == BTC
        assert view.value.price == Decimal("50000")
        assert view.provider_name == "coinbase_exchange"
        assert view.error is None
        assert view.is_polling
        assert not view.is_loading
        assert view.updated_at is not None

    def test_polls_again_after_interval(self):
        sleep = RecordingSleep()
        fetch = ScriptedFetch(FetchOutcome.success(_quote("1"), "p"))
        feed = PollingFeed(fetch, interval_s=10, sleep=sleep)
        views = asyncio.run(collect(feed, BTC, 3))
        assert len(views) >= 3
        assert sleep.delays[:2] == [10, 10]
        assert len(fetch.calls) >= 3

    def test_stop_clears_polling_flags(self):
        async def scenario():
            feed = PollingFeed(client_fetch(FakeSourceClient("p")), interval_s=10)
            await collect(feed, BTC, 1)
            return feed.view

        view = asyncio.run(scenario())
        assert not view.is_polling
        assert not view.is_loading
        assert view.value is not None

    def test_stop_when_idle_returns_none(self):
        feed = PollingFeed(ScriptedFetch(FetchOutcome.success(1)), interval_s=1)
        assert feed.stop() is None
        assert not feed.is_polling

    def test_start_requires_running_loop(self):
        feed = PollingFeed(ScriptedFetch(FetchOutcome.success(1)), interval_s=1)
        with pytest.raises(RuntimeError):
            feed.start(BTC)

    @pytest.mark.parametrize("kwargs", [{"interval_s": 0}, {"interval_s": 10, "max_interval_s": 5}])
    def test_invalid_intervals(self, kwargs):
        with pytest.raises(ValueError):
            PollingFeed(ScriptedFetch(FetchOutcome.success(1)), **kwargs)

    def test_same_target_start_is_noop(self):
        async def scenario():
            client = GatedSourceClient("gated")
            feed = PollingFeed(client_fetch(client), interval_s=10)
            feed.start("BTC-USD")
            await client.started.wait()
            feed.start("btc-usd")
            await settle()
            calls = client.call_count
            handle = feed.stop()
            client.release(BTC)
            await handle.wait()
            return calls

        assert asyncio.run(scenario()) == 1

    def test_placeholder_shown_until_first_value(self):
        async def scenario():
            client = GatedSourceClient("gated")
            feed = PollingFeed(
                client_fetch(client),
                interval_s=10,
                placeholder=lambda pair: _quote("-1", pair, ""),
            )
            feed.start(BTC)
            await client.started.wait()
            before = feed.view
            handle = feed.stop()
            client.release(BTC)
            await handle.wait()
            return before

        before = asyncio.run(scenario())
        assert before.value is None
        assert before.is_loading
        assert before.display_value().price == Decimal("-1")


class TestFailureState:
    def test_failure_keeps_last_good_value(self):
        good = FetchOutcome.success(_quote("100"), "p")
        bad = FetchOutcome.fatal(ErrorKind.TRANSIENT, "HTTP 503", provider_name="p")
        feed = PollingFeed(ScriptedFetch(good, bad), interval_s=10, sleep=RecordingSleep())

        views = asyncio.run(collect(feed, BTC, 2))

        first, second = views[0], views[1]
        assert first.value.price == Decimal("100") and first.error is None
        assert second.value.price == Decimal("100")
        assert second.error is ErrorKind.TRANSIENT
        assert second.error_message == "HTTP 503"
        assert second.is_stale
        assert second.display_value().price == Decimal("100")

    def test_success_clears_error(self):
        bad = FetchOutcome.fatal(ErrorKind.TRANSIENT, "timeout")
        good = FetchOutcome.success(_quote("5"), "p")
        feed = PollingFeed(ScriptedFetch(bad, good), interval_s=10, sleep=RecordingSleep())
        views = asyncio.run(collect(feed, BTC, 2))
        assert views[0].value is None and views[0].error is ErrorKind.TRANSIENT
        assert views[1].value.price == Decimal("5") and views[1].error is None

    def test_fetch_exception_becomes_error_state(self, caplog):
        good = FetchOutcome.success(_quote("7"), "p")
        feed = PollingFeed(ScriptedFetch(RuntimeError("boom"), good), interval_s=10, sleep=RecordingSleep())
        with caplog.at_level(logging.ERROR, logger="market_feed.feeds.polling"):
            views = asyncio.run(collect(feed, BTC, 2))
        assert views[0].error is ErrorKind.TRANSIENT
        assert "boom" in views[0].error_message
        assert views[1].value.price == Decimal("7")

    def test_adaptive_interval_doubles_and_resets(self):
        sleep = RecordingSleep()
        bad = FetchOutcome.fatal(ErrorKind.TRANSIENT)
        good = FetchOutcome.success(_quote("1"), "p")
        fetch = ScriptedFetch(bad, bad, bad, good)
        feed = PollingFeed(fetch, interval_s=10, max_interval_s=40, sleep=sleep)
        asyncio.run(collect(feed, BTC, 5))
        assert sleep.delays[:4] == [20, 40, 40, 10]

    def test_fixed_interval_without_max(self):
        sleep = RecordingSleep()
        feed = PollingFeed(ScriptedFetch(FetchOutcome.fatal(ErrorKind.TRANSIENT)), interval_s=5, sleep=sleep)
        asyncio.run(collect(feed, BTC, 3))
        assert sleep.delays[:2] == [5, 5]


class TestGenerationGuard:
    def test_retarget_drops_in_flight_result(self):
        async def scenario():
            client = GatedSourceClient("gated")
            feed = PollingFeed(client_fetch(client), interval_s=10)
            views = []
            got_eth = asyncio.Event()

            def on_view(view):
                views.append(view)
                if view.target == ETH:
                    got_eth.set()

            feed.subscribe(on_view)
            feed.start(BTC)
            await client.started.wait()
            feed.retarget(ETH)
            assert feed.target == ETH
            assert feed.view.value is None

            client.release(BTC)
            await settle()
            published_before_eth = list(views)

            client.release(ETH)
            await asyncio.wait_for(got_eth.wait(), timeout=5)
            handle = feed.stop()
            await handle.wait()
            return client, views, published_before_eth

        client, views, published_before_eth = asyncio.run(scenario())
        assert published_before_eth == []
        assert BTC in client.completed
        assert views
        assert all(v.target == ETH for v in views)
        assert all(v.value.pair == ETH for v in views)

    def test_no_publish_after_stop(self):
        async def scenario():
            client = GatedSourceClient("gated")
            feed = PollingFeed(client_fetch(client), interval_s=10)
            views = []
            feed.subscribe(views.append)
            feed.start(BTC)
            await client.started.wait()
            handle = feed.stop()
            client.release(BTC)
            await handle.wait()
            await settle()
            return client, feed, views, handle

        client, feed, views, handle = asyncio.run(scenario())
        assert handle.done
        assert views == []
        assert client.completed == [BTC]
        assert not feed.is_polling
        assert not feed.view.is_loading
        assert feed.view.value is None


class TestSubscribers:
    def test_failing_subscriber_does_not_block_others(self, caplog):
        def broken(view):
            raise RuntimeError("subscriber bug")

        async def scenario():
            feed = PollingFeed(client_fetch(FakeSourceClient("p")), interval_s=10)
            feed.subscribe(broken)
            return await collect(feed, BTC, 1)

        with caplog.at_level(logging.ERROR, logger="market_feed.feeds.polling"):
            views = asyncio.run(scenario())
        assert views[0].value is not None
        assert any("subscriber" in r.getMessage() for r in caplog.records)

    def test_unsubscribe(self):
        async def scenario():
            feed = PollingFeed(client_fetch(FakeSourceClient("p")), interval_s=10, sleep=RecordingSleep())
            removed = []
            unsubscribe = feed.subscribe(removed.append)
            unsubscribe()
            unsubscribe()
            views = await collect(feed, BTC, 2)
            return removed, views

        removed, views = asyncio.run(scenario())
        assert removed == []
        assert len(views) >= 2


class TestScheduledTask:
    def test_wait_returns_after_cancel(self):
        async def scenario():
            task = asyncio.ensure_future(asyncio.Event().wait())
            handle = ScheduledTask(task, 1)
            handle.cancel()
            await handle.wait()
            return handle

        handle = asyncio.run(scenario())
        assert handle.done
        assert handle.generation == 1

    def test_cancelling_waiter_is_not_swallowed(self):
        async def scenario():
            task = asyncio.ensure_future(asyncio.Event().wait())
            handle = ScheduledTask(task, 1)
            waiter = asyncio.ensure_future(handle.wait())
            await asyncio.sleep(0)
            waiter.cancel()
            await asyncio.wait([waiter])
            schedule_done = handle.done
            handle.cancel()
            await handle.wait()
            return waiter, schedule_done

        waiter, schedule_done = asyncio.run(scenario())
        assert waiter.cancelled()
        assert not schedule_done
