# chronos/runtime/heartbeat.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Tick sources: the periodic host signal that drives every scheduler pass and
timer update. A tick carries no payload and has no guaranteed period;
consumers read the time themselves.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from abc import ABC
from typing import Callable, Dict, List, Optional, Tuple

from chronos.config import ChronosConfig, coerce_config
from chronos.core.errors import TickSourceError
from chronos.core.validation import require_callable, require_positive
from chronos.runtime.concurrency import get_reentrant_lock, with_lock

logger = logging.getLogger(__name__)

TickCallback = Callable[[], None]


class Connection:
    """
    Handle for one subscription to a tick source. Disconnecting is idempotent.
    """

    __slots__ = ("_source", "_id")

    def __init__(self, source: "TickSource", subscription_id: int) -> None:
        self._source = source
        self._id = subscription_id

    @property
    def connected(self) -> bool:
        return self._source._is_subscribed(self._id)

    def disconnect(self) -> bool:
        """
        Stop receiving ticks.

        :return: True if this call removed the subscription.
        """
        return self._source._unsubscribe(self._id)

    def __repr__(self) -> str:
        return f"Connection(id={self._id}, connected={self.connected})"


class TickSource(ABC):
    """
    Base class for tick sources. Keeps an insertion-ordered subscriber table
    and fans each tick out to a snapshot of it, so subscribing or
    unsubscribing from inside a tick is safe.

    Subclasses that need to run something only while subscribers exist
    override ``_activate``/``_deactivate``; both are called with the
    subscriber lock held and must not block.
    """

    def __init__(self) -> None:
        self._lock = get_reentrant_lock()
        self._subscribers: Dict[int, TickCallback] = {}
        self._ids = itertools.count(1)

    def connect(self, callback: TickCallback) -> Connection:
        """
        Subscribe ``callback`` to future ticks.

        :param callback: Invoked with no arguments on every tick.
        :return: A Connection used to unsubscribe.
        """
        require_callable(callback, "callback")
        with with_lock(self._lock):
            subscription_id = next(self._ids)
            self._subscribers[subscription_id] = callback
            if len(self._subscribers) == 1:
                self._activate()
        return Connection(self, subscription_id)

    @property
    def subscriber_count(self) -> int:
        with with_lock(self._lock):
            return len(self._subscribers)

    def _is_subscribed(self, subscription_id: int) -> bool:
        with with_lock(self._lock):
            return subscription_id in self._subscribers

    def _unsubscribe(self, subscription_id: int) -> bool:
        with with_lock(self._lock):
            if self._subscribers.pop(subscription_id, None) is None:
                return False
            if not self._subscribers:
                self._deactivate()
            return True

    def disconnect_all(self) -> None:
        with with_lock(self._lock):
            had_subscribers = bool(self._subscribers)
            self._subscribers.clear()
            if had_subscribers:
                self._deactivate()

    def _emit(self) -> None:
        """Deliver one tick to every subscriber present when the tick began."""
        with with_lock(self._lock):
            snapshot: List[Tuple[int, TickCallback]] = list(self._subscribers.items())

        for subscription_id, callback in snapshot:
            # Skip anyone disconnected by an earlier subscriber in this tick.
            if not self._is_subscribed(subscription_id):
                continue
            try:
                callback()
            except Exception:
                logger.warning("Tick subscriber %r raised; continuing", callback, exc_info=True)

    def _activate(self) -> None:
        pass

    def _deactivate(self) -> None:
        pass


class ManualTickSource(TickSource):
    """
    A tick source driven explicitly by the caller, e.g. from a game loop or a
    test. Nothing runs in the background.
    """

    def tick(self, count: int = 1) -> None:
        """
        Deliver ``count`` ticks back to back.
        """
        for _ in range(count):
            self._emit()


class Heartbeat(TickSource):
    """
    Threaded tick source emitting every ``interval`` seconds. The worker
    thread only exists while there is at least one subscriber, so an idle
    heartbeat costs nothing.
    """

    def __init__(self, interval: Optional[float] = None, config: Optional[ChronosConfig] = None) -> None:
        super().__init__()
        self._config = coerce_config(config)
        self._interval = require_positive(
            self._config.heartbeat_interval if interval is None else interval, "interval"
        )
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        with with_lock(self._lock):
            return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def _activate(self) -> None:
        stop_event = threading.Event()
        thread = threading.Thread(
            target=self._run,
            args=(stop_event,),
            name=f"{self._config.thread_name_prefix}-heartbeat",
            daemon=True,
        )
        self._stop_event = stop_event
        self._thread = thread
        thread.start()
        logger.debug("Heartbeat started (interval=%.4fs)", self._interval)

    def _deactivate(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        logger.debug("Heartbeat stopped")

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self._interval):
            self._emit()

    def close(self, timeout: Optional[float] = 1.0) -> None:
        """
        Drop all subscribers and wait for the worker thread to exit. Safe to
        call from inside a tick; the thread is then left to finish on its own.
        """
        with with_lock(self._lock):
            thread = self._thread
        self.disconnect_all()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)


class AsyncHeartbeat(TickSource):
    """
    Tick source for asyncio applications. Emits from a task on the event loop
    that was running when the first subscriber connected; the task is
    cancelled when the last subscriber leaves.
    """

    def __init__(self, interval: Optional[float] = None, config: Optional[ChronosConfig] = None) -> None:
        super().__init__()
        config = coerce_config(config)
        self._interval = require_positive(config.heartbeat_interval if interval is None else interval, "interval")
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        with with_lock(self._lock):
            return self._task is not None and not self._task.done()

    def connect(self, callback: TickCallback) -> Connection:
        with with_lock(self._lock):
            if not self._subscribers:
                try:
                    self._loop = asyncio.get_running_loop()
                except RuntimeError as exc:
                    raise TickSourceError(
                        "AsyncHeartbeat needs a running event loop for its first subscriber"
                    ) from exc
            return super().connect(callback)

    def _activate(self) -> None:
        self._task = self._loop.create_task(self._run())
        logger.debug("Async heartbeat started (interval=%.4fs)", self._interval)

    def _deactivate(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            task.cancel()
        else:
            self._loop.call_soon_threadsafe(task.cancel)
        logger.debug("Async heartbeat stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._emit()

    async def aclose(self) -> None:
        """Drop all subscribers and wait for the emitting task to finish."""
        with with_lock(self._lock):
            task = self._task
        self.disconnect_all()
        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)
