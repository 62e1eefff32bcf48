# src/todolist/tasks/task_feed.py

from __future__ import annotations

"""
Snapshot feed: a small publish/subscribe channel for task listings.

The store publishes a complete snapshot after every mutation; each
subscription owns its own queue so a slow consumer never blocks the writer
or other consumers.

Subscriptions are lazy: nothing is registered or queued until the
consumer first asks for a snapshot, so the first one is always current.

Two flavours:
- TaskSubscription: blocking, iterable from any thread (queue.Queue).
- AsyncTaskSubscription: `async for` on the subscriber's event loop.
"""

import asyncio
import logging
import queue
import threading
from collections.abc import Callable
from typing import Protocol

from .errors import StorageFailure
from .task_models import TaskSnapshot

logger = logging.getLogger(__name__)

_END = object()


class SubscriptionClosed(Exception):
    """The subscription was closed or its feed was torn down."""


class _Subscriber(Protocol):
    def _push(self, snapshot: TaskSnapshot) -> None: ...
    def _end(self) -> None: ...


class SnapshotFeed:
    """Thread-safe fan-out of snapshots to every active subscriber."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[_Subscriber] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def attach(self, subscriber: _Subscriber, initial: TaskSnapshot) -> None:
        """Register a subscriber and hand it the current snapshot first."""
        with self._lock:
            if self._closed:
                raise StorageFailure("task feed is closed")
            subscriber._push(initial)
            self._subscribers.append(subscriber)

    def detach(self, subscriber: _Subscriber) -> None:
        with self._lock:
            try:
                self._subscribers.remove(subscriber)
            except ValueError:
                return

    def publish(self, snapshot: TaskSnapshot) -> None:
        with self._lock:
            if self._closed:
                return
            subscribers = list(self._subscribers)

        for sub in subscribers:
            try:
                sub._push(snapshot)
            except Exception:
                # A subscriber whose loop went away must not break the writer.
                logger.exception("Dropping subscriber after failed delivery: %r", sub)
                self.detach(sub)

        logger.debug("Published snapshot size=%d to %d subscriber(s)", len(snapshot), len(subscribers))

    def close(self) -> None:
        """End every subscription. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            subscribers = list(self._subscribers)
            self._subscribers.clear()

        for sub in subscribers:
            try:
                sub._end()
            except Exception:
                logger.debug("Subscriber end failed: %r", sub, exc_info=True)


class TaskSubscription:
    """
    Blocking subscription to task snapshots.

    Iterate it to receive snapshots until the store is closed:

        with store.observe_all() as sub:
            for snapshot in sub:
                render(snapshot)

    The store registers the subscription and seeds the current snapshot on
    the first get(), not when observe_all() is called.
    """

    def __init__(
        self,
        feed: SnapshotFeed,
        connect: Callable[[TaskSubscription], None] | None = None,
    ) -> None:
        self._feed = feed
        self._connect = connect
        self._queue: queue.Queue[object] = queue.Queue()
        self._started = False
        self._closed = False
        self._finished = False

    # ---- feed side ----

    def _push(self, snapshot: TaskSnapshot) -> None:
        self._started = True
        self._queue.put(snapshot)

    def _end(self) -> None:
        self._queue.put(_END)

    # ---- consumer side ----

    @property
    def closed(self) -> bool:
        return self._closed or self._finished

    def get(self, timeout: float | None = None) -> TaskSnapshot:
        """
        Return the next snapshot.

        Raises TimeoutError if nothing arrives within `timeout` seconds and
        SubscriptionClosed once the stream has ended.
        """
        if self._finished:
            raise SubscriptionClosed()
        if not self._started and not self._closed and self._connect is not None:
            self._connect(self)
            if self._closed:
                self._feed.detach(self)
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError(f"no snapshot within {timeout}s") from None
        if item is _END:
            self._finished = True
            raise SubscriptionClosed()
        return item  # type: ignore[return-value]

    def latest(self, timeout: float | None = None) -> TaskSnapshot:
        """Wait for one snapshot, then skip ahead to the newest one already queued."""
        snapshot = self.get(timeout=timeout)
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return snapshot
            if item is _END:
                self._finished = True
                return snapshot
            snapshot = item  # type: ignore[assignment]

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._feed.detach(self)
        # Wake a consumer blocked in get().
        self._end()

    def __iter__(self) -> TaskSubscription:
        return self

    def __next__(self) -> TaskSnapshot:
        try:
            return self.get()
        except SubscriptionClosed:
            raise StopIteration from None

    def __enter__(self) -> TaskSubscription:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class AsyncTaskSubscription:
    """
    asyncio subscription to task snapshots.

    Snapshots published from any thread are handed over to the event loop
    the subscription was created on.
    """

    def __init__(
        self,
        feed: SnapshotFeed,
        loop: asyncio.AbstractEventLoop,
        connect: Callable[[AsyncTaskSubscription], None] | None = None,
    ) -> None:
        self._feed = feed
        self._loop = loop
        self._connect = connect
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._started = False
        self._closed = False
        self._finished = False

    def _push(self, snapshot: TaskSnapshot) -> None:
        self._started = True
        self._loop.call_soon_threadsafe(self._queue.put_nowait, snapshot)

    def _end(self) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, _END)

    @property
    def closed(self) -> bool:
        return self._closed or self._finished

    async def get(self, timeout: float | None = None) -> TaskSnapshot:
        if self._finished:
            raise SubscriptionClosed()
        if not self._started and not self._closed and self._connect is not None:
            # Seeding reads the database, so it runs off the event loop.
            await asyncio.to_thread(self._connect, self)
            if self._closed:
                self._feed.detach(self)
        try:
            item = await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"no snapshot within {timeout}s") from None
        if item is _END:
            self._finished = True
            raise SubscriptionClosed()
        return item  # type: ignore[return-value]

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._feed.detach(self)
        self._end()

    async def aclose(self) -> None:
        self.close()

    def __aiter__(self) -> AsyncTaskSubscription:
        return self

    async def __anext__(self) -> TaskSnapshot:
        try:
            return await self.get()
        except SubscriptionClosed:
            raise StopAsyncIteration from None

    async def __aenter__(self) -> AsyncTaskSubscription:
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.close()
