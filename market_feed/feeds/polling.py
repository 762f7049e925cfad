"""
Polling feeds: keep the latest value for one target fresh on a schedule.

A feed is Idle until ``start(target)``; it then fetches immediately and again
every ``interval_s`` after each fetch settles, so two fetches for the same
schedule never overlap. ``stop()`` and ``retarget()`` return at once. Any
fetch still in flight finishes in the background and its result is dropped:
every schedule carries a generation number, and only the current generation
may touch the published state.

Failure keeps the last good value (stale-but-available) and attaches the
error. Subscribers get a frozen FeedView once per settled fetch.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar, Union

from ..providers.base import ErrorKind, FetchOutcome, TradingPair
from ..timeutils import now_utc

logger = logging.getLogger(__name__)

T = TypeVar("T")

FetchFn = Callable[[TradingPair], Awaitable[FetchOutcome[T]]]
Subscriber = Callable[["FeedView[T]"], Any]


@dataclass(frozen=True)
class FeedView(Generic[T]):
    """Read-only copy of a feed's state, as handed to consumers."""

    target: Optional[TradingPair] = None
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    error_message: str = ""
    is_loading: bool = False
    is_polling: bool = False
    provider_name: str = ""
    updated_at: Optional[datetime] = None
    placeholder: Optional[T] = None

    @property
    def is_stale(self) -> bool:
        """True when the value shown predates the latest (failed) fetch."""
        return self.value is not None and self.error is not None

    def display_value(self) -> Optional[T]:
        """Last good value, or the feed's "no data" placeholder."""
        return self.value if self.value is not None else self.placeholder


class ScheduledTask:
    """Cancellable handle for one polling schedule."""

    def __init__(self, task: asyncio.Task, generation: int) -> None:
        self._task = task
        self.generation = generation

    def cancel(self) -> None:
        self._task.cancel()

    @property
    def done(self) -> bool:
        return self._task.done()

    async def wait(self) -> None:
        """
        Wait for the schedule to finish unwinding after ``cancel()``.
        Cancelling the caller still cancels the caller.
        """
        await asyncio.wait([self._task])
        if not self._task.cancelled() and self._task.exception() is not None:
            logger.error("schedule %s ended with %r", self._task.get_name(), self._task.exception())


class PollingFeed(Generic[T]):
    """
    Owns one recurring fetch for a single target at a time.

    All state changes happen on the event loop that called ``start``; the
    feed shares nothing mutable with other feeds.
    """

    def __init__(
        self,
        fetch: FetchFn,
        *,
        interval_s: float,
        name: str = "feed",
        max_interval_s: Optional[float] = None,
        placeholder: Optional[Callable[[TradingPair], T]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_close: Optional[Callable[[], None]] = None,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        if max_interval_s is not None and max_interval_s < interval_s:
            raise ValueError("max_interval_s must be >= interval_s")
        self.name = name
        self._fetch = fetch
        self._interval_s = interval_s
        self._max_interval_s = max_interval_s
        self._placeholder = placeholder
        self._sleep = sleep
        self._on_close = on_close

        self._generation = 0
        self._handle: Optional[ScheduledTask] = None
        self._subscribers: List[Subscriber] = []

        self._target: Optional[TradingPair] = None
        self._value: Optional[T] = None
        self._error: Optional[ErrorKind] = None
        self._error_message = ""
        self._provider_name = ""
        self._updated_at: Optional[datetime] = None
        self._is_loading = False

    # Consumer side -----------------------------------------------------
    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback(view)``; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    @property
    def view(self) -> FeedView[T]:
        return FeedView(
            target=self._target,
            value=self._value,
            error=self._error,
            error_message=self._error_message,
            is_loading=self._is_loading,
            is_polling=self.is_polling,
            provider_name=self._provider_name,
            updated_at=self._updated_at,
            placeholder=self._placeholder(self._target) if self._placeholder and self._target else None,
        )

    @property
    def is_polling(self) -> bool:
        return self._handle is not None

    @property
    def target(self) -> Optional[TradingPair]:
        return self._target

    @property
    def interval_s(self) -> float:
        return self._interval_s

    # Lifecycle ---------------------------------------------------------
    def start(self, target: Union[TradingPair, str]) -> None:
        """
        Begin polling ``target``. Already polling the same target is a no-op;
        polling another target is replaced (see ``retarget``).
        Must be called from a running event loop.
        """
        pair = target if isinstance(target, TradingPair) else TradingPair.parse(target)
        if self._handle is not None and pair == self._target:
            return
        self.stop()
        loop = asyncio.get_running_loop()

        self._generation += 1
        generation = self._generation
        self._target = pair
        self._value = None
        self._error = None
        self._error_message = ""
        self._provider_name = ""
        self._updated_at = None
        task = loop.create_task(self._run(generation, pair), name=f"{self.name}:{pair}")
        self._handle = ScheduledTask(task, generation)
        logger.info("%s: polling %s every %.1fs", self.name, pair, self._interval_s)

    def stop(self) -> Optional[ScheduledTask]:
        """
        Stop polling now. Returns the cancelled schedule handle (if any) so a
        caller can await its teardown; nothing is published after this returns.
        """
        self._generation += 1
        self._is_loading = False
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()
            logger.info("%s: stopped polling %s", self.name, self._target)
        return handle

    def retarget(self, target: Union[TradingPair, str]) -> None:
        """Stop the current schedule and start one for ``target``."""
        self.stop()
        self.start(target)

    def close(self) -> Optional[ScheduledTask]:
        """Stop polling and release resources the feed owns (see ``on_close``)."""
        handle = self.stop()
        on_close, self._on_close = self._on_close, None
        if on_close is not None:
            on_close()
        return handle

    # Schedule ----------------------------------------------------------
    async def _run(self, generation: int, pair: TradingPair) -> None:
        interval = self._interval_s
        while generation == self._generation:
            succeeded = await self._fetch_once(generation, pair)
            if generation != self._generation:
                return
            interval = self._next_interval(interval, succeeded)
            await self._sleep(interval)

    def _next_interval(self, current: float, succeeded: bool) -> float:
        if self._max_interval_s is None or succeeded:
            return self._interval_s
        return min(self._max_interval_s, current * 2)

    async def _fetch_once(self, generation: int, pair: TradingPair) -> bool:
        self._is_loading = True
        fetch_task = asyncio.ensure_future(self._fetch(pair))
        fetch_task.add_done_callback(self._drain)
        try:
            # shield: cancelling the schedule must not abort the request itself
            outcome = await asyncio.shield(fetch_task)
        except Exception as exc:
            logger.exception("%s: fetch for %s raised", self.name, pair)
            outcome = FetchOutcome.fatal(ErrorKind.TRANSIENT, f"{type(exc).__name__}: {exc}")

        if generation != self._generation:
            logger.debug("%s: dropping result for %s from a stopped schedule", self.name, pair)
            return outcome.ok
        self._apply(outcome)
        self._publish()
        return outcome.ok

    def _apply(self, outcome: FetchOutcome[T]) -> None:
        self._is_loading = False
        self._updated_at = now_utc()
        if outcome.ok:
            self._value = outcome.value
            self._provider_name = outcome.provider_name
            self._error = None
            self._error_message = ""
            logger.debug("%s: %s updated from %s", self.name, self._target, outcome.provider_name)
        else:
            self._error = outcome.error
            self._error_message = outcome.message or outcome.describe()
            logger.info(
                "%s: fetch for %s failed (%s); keeping last good value", self.name, self._target, outcome.describe()
            )

    def _publish(self) -> None:
        view = self.view
        for callback in list(self._subscribers):
            try:
                callback(view)
            except Exception:
                logger.exception("%s: subscriber %r failed", self.name, callback)

    def _drain(self, fut: asyncio.Future) -> None:
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            logger.debug("%s: background fetch ended with %r", self.name, exc)
