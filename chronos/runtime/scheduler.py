# chronos/runtime/scheduler.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
One-shot and recurring callback scheduling driven by a tick source.

Architecture:
- Registry of events keyed by id plus a min-heap of (trigger time, id, version)
- Lazily connected tick subscription: live only while an active event exists
- Due callbacks fire in registration order, outside the registry lock,
  through a fault-isolating dispatcher

Recurrence is drift-accumulating: a recurring event's next trigger is
computed from the time it fired, so a slow tick cadence shifts the absolute
schedule instead of causing catch-up firings.
"""

from __future__ import annotations

import heapq
import itertools
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from chronos.config import ChronosConfig, coerce_config
from chronos.core.errors import ChronosError, InvalidArgumentError
from chronos.core.time_source import TimeSource, coerce_time_source
from chronos.core.validation import require_callable, require_non_negative, require_positive
from chronos.interfaces.protocols import CallbackRunner, Subscription, TickProvider
from chronos.interfaces.types import EventCallback, ScheduledEventInfo
from chronos.runtime.concurrency import get_reentrant_lock, with_lock
from chronos.runtime.defaults import default_dispatcher, default_heartbeat, resolve_dispatcher, resolve_tick_source
from chronos.runtime.dispatch import callback_name

logger = logging.getLogger(__name__)

_HeapEntry = Tuple[float, int, int]


@dataclass(eq=False)
class _ScheduledEvent:
    """Internal event record; owned by exactly one Scheduler."""

    id: int
    delay: float
    callback: EventCallback
    recurring: bool
    next_trigger_time: float
    cancelled: bool = False
    # Bumped whenever existing heap entries for this event become stale.
    version: int = 0


class EventHandle:
    """
    Opaque reference to a scheduled event, returned by ``schedule_once`` and
    ``schedule_recurring``. The convenience methods delegate to the owning
    scheduler.
    """

    __slots__ = ("_scheduler", "_event")

    def __init__(self, scheduler: "Scheduler", event: _ScheduledEvent) -> None:
        self._scheduler = scheduler
        self._event = event

    @property
    def id(self) -> int:
        return self._event.id

    @property
    def recurring(self) -> bool:
        return self._event.recurring

    @property
    def time_remaining(self) -> float:
        return self._scheduler.get_time_remaining(self)

    @property
    def scheduled_time(self) -> datetime:
        return self._scheduler.get_scheduled_time(self)

    def cancel(self) -> bool:
        return self._scheduler.cancel(self)

    def reschedule(self, new_delay: Optional[float] = None) -> bool:
        return self._scheduler.reschedule(self, new_delay)

    def is_scheduled(self) -> bool:
        return self._scheduler.is_scheduled(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EventHandle):
            return NotImplemented
        return self._event is other._event

    def __hash__(self) -> int:
        return hash((id(self._scheduler), self._event.id))

    def __repr__(self) -> str:
        kind = "recurring" if self._event.recurring else "once"
        return f"EventHandle(id={self._event.id}, {kind}, cancelled={self._event.cancelled})"


class Scheduler:
    """
    Registry of pending one-shot and recurring events plus the tick loop that
    fires them.

    Threading/Concurrency Guarantees:
    1. Registry and heap are guarded by a reentrant lock
    2. Callbacks never run while the lock is held
    3. Cancelling prevents future firings; a callback already handed to the
       dispatcher in the current pass is not retracted

    Performance Characteristics:
    1. O(log n) schedule, reschedule and firing
    2. O(1) amortized next-trigger lookup (stale heap entries dropped lazily)
    """

    def __init__(
        self,
        tick_source: Optional[TickProvider] = None,
        time_source: Optional[TimeSource] = None,
        dispatcher: Optional[CallbackRunner] = None,
        config: Optional[ChronosConfig] = None,
    ) -> None:
        """
        :param tick_source: Tick signal; the shared default heartbeat if omitted.
        :param time_source: Clock; the host clock if omitted.
        :param dispatcher: Runs fired callbacks; the shared thread pool if omitted.
        :param config: Tunables, see ``ChronosConfig``.
        """
        self._config = coerce_config(config)
        self._time_source = coerce_time_source(time_source)
        # None means "the process-wide default", looked up on each use
        self._tick_source = None if tick_source is None else resolve_tick_source(tick_source)
        self._dispatcher = None if dispatcher is None else resolve_dispatcher(dispatcher)

        self._lock = get_reentrant_lock()
        self._events: Dict[int, _ScheduledEvent] = {}
        self._heap: List[_HeapEntry] = []
        self._ids = itertools.count(1)
        self._connection: Optional[Subscription] = None
        self._closed = False

    @property
    def is_active(self) -> bool:
        """True while subscribed to the tick source."""
        with with_lock(self._lock):
            return self._connection is not None and self._connection.connected

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def schedule_once(self, delay: float, callback: EventCallback) -> EventHandle:
        """
        Fire ``callback`` once, ``delay`` seconds from now.

        :param delay: Seconds, >= 0.
        :raises InvalidArgumentError: On a negative/non-numeric delay or a
            non-callable callback.
        """
        delay = require_non_negative(delay, "delay")
        require_callable(callback, "callback")
        return self._schedule(delay, callback, recurring=False)

    def schedule_recurring(self, interval: float, callback: EventCallback) -> EventHandle:
        """
        Fire ``callback`` every ``interval`` seconds until cancelled. The
        first firing is one interval from now.

        :param interval: Seconds, > 0.
        """
        interval = require_positive(interval, "interval")
        require_callable(callback, "callback")
        return self._schedule(interval, callback, recurring=True)

    def _schedule(self, delay: float, callback: EventCallback, recurring: bool) -> EventHandle:
        with with_lock(self._lock):
            if self._closed:
                raise ChronosError("scheduler is closed", {"callback": callback_name(callback)})
            event = _ScheduledEvent(
                id=next(self._ids),
                delay=delay,
                callback=callback,
                recurring=recurring,
                next_trigger_time=self._time_source.now() + delay,
            )
            self._events[event.id] = event
            heapq.heappush(self._heap, (event.next_trigger_time, event.id, event.version))
            self._update_subscription()
            logger.debug(
                "Scheduled event %d (%s, %.3fs) -> %s",
                event.id,
                "recurring" if recurring else "once",
                delay,
                callback_name(callback),
            )
            return EventHandle(self, event)

    def _event_for(self, handle: EventHandle) -> Optional[_ScheduledEvent]:
        if not isinstance(handle, EventHandle):
            raise InvalidArgumentError("handle must be an EventHandle", {"argument": "handle", "value": handle})
        if handle._scheduler is not self:
            return None
        return handle._event

    def _is_registered(self, event: _ScheduledEvent) -> bool:
        return not event.cancelled and self._events.get(event.id) is event

    def cancel(self, handle: EventHandle) -> bool:
        """
        Prevent any future firing of the event.

        :return: False if the event was already cancelled, has completed, or
            belongs to another scheduler.
        """
        with with_lock(self._lock):
            event = self._event_for(handle)
            if event is None or not self._is_registered(event):
                return False
            event.cancelled = True
            event.version += 1
            self._update_subscription()
            logger.debug("Cancelled event %d", event.id)
            return True

    def reschedule(self, handle: EventHandle, new_delay: Optional[float] = None) -> bool:
        """
        Move the next trigger to ``now + delay``. Without ``new_delay`` the
        event's previous delay (or interval) is reused.

        :return: False if the event is cancelled, completed or unknown.
        :raises InvalidArgumentError: If ``new_delay`` is invalid for the
            event kind (recurring events need a positive interval).
        """
        event = self._event_for(handle)
        if new_delay is not None and event is not None:
            if event.recurring:
                new_delay = require_positive(new_delay, "new_delay")
            else:
                new_delay = require_non_negative(new_delay, "new_delay")
        with with_lock(self._lock):
            if event is None or not self._is_registered(event):
                return False
            if new_delay is not None:
                event.delay = new_delay
            event.next_trigger_time = self._time_source.now() + event.delay
            event.version += 1
            heapq.heappush(self._heap, (event.next_trigger_time, event.id, event.version))
            self._update_subscription()
            return True

    def cancel_all(self) -> int:
        """
        Cancel every event and release the tick subscription.

        :return: Number of events that were active.
        """
        with with_lock(self._lock):
            count = 0
            for event in self._events.values():
                if not event.cancelled:
                    event.cancelled = True
                    event.version += 1
                    count += 1
            self._events.clear()
            self._heap.clear()
            self._update_subscription()
            if count:
                logger.debug("Cancelled all %d scheduled events", count)
            return count

    def close(self) -> None:
        """Cancel everything and detach from the tick source. Idempotent."""
        with with_lock(self._lock):
            self.cancel_all()
            self._closed = True

    def __enter__(self) -> "Scheduler":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_time_remaining(self, handle: EventHandle) -> float:
        """Seconds until the next trigger; 0 if cancelled or already due."""
        with with_lock(self._lock):
            event = self._event_for(handle)
            if event is None or event.cancelled:
                return 0.0
            return max(0.0, event.next_trigger_time - self._time_source.now())

    def get_scheduled_time(self, handle: EventHandle) -> datetime:
        """The next (or last, for a fired one-shot) trigger time in UTC."""
        with with_lock(self._lock):
            event = self._event_for(handle)
            if event is None:
                raise InvalidArgumentError("handle belongs to another scheduler", {"handle": handle})
            return TimeSource.from_epoch(event.next_trigger_time)

    def is_scheduled(self, handle: EventHandle) -> bool:
        with with_lock(self._lock):
            event = self._event_for(handle)
            return event is not None and self._is_registered(event)

    def get_active_count(self) -> int:
        with with_lock(self._lock):
            return sum(1 for event in self._events.values() if not event.cancelled)

    def list_active(self) -> List[ScheduledEventInfo]:
        """Snapshot of active events in registration order, for debugging."""
        with with_lock(self._lock):
            now = self._time_source.now()
            return [
                ScheduledEventInfo(
                    id=event.id,
                    next_trigger=TimeSource.from_epoch(event.next_trigger_time),
                    time_remaining=max(0.0, event.next_trigger_time - now),
                    recurring=event.recurring,
                )
                for event in sorted(self._events.values(), key=lambda e: e.id)
                if not event.cancelled
            ]

    # ------------------------------------------------------------------
    # Tick loop
    # ------------------------------------------------------------------
    def _is_stale(self, entry: _HeapEntry) -> bool:
        _, event_id, version = entry
        event = self._events.get(event_id)
        return event is None or event.cancelled or event.version != version

    def _peek_next_trigger(self) -> Optional[float]:
        while self._heap and self._is_stale(self._heap[0]):
            heapq.heappop(self._heap)
        return self._heap[0][0] if self._heap else None

    def _ticks(self) -> TickProvider:
        return self._tick_source if self._tick_source is not None else default_heartbeat()

    def _runner(self) -> CallbackRunner:
        return self._dispatcher if self._dispatcher is not None else default_dispatcher()

    def _update_subscription(self) -> None:
        """Connect to the tick source iff an active event remains."""
        if self._peek_next_trigger() is None:
            # Only cancelled records can remain; sweep them now.
            self._events.clear()
            if self._connection is not None:
                self._connection.disconnect()
                self._connection = None
                logger.debug("Scheduler idle; tick subscription released")
        elif self._connection is None or not self._connection.connected:
            # The source may have dropped us, e.g. a default heartbeat closed by reset_defaults().
            self._connection = self._ticks().connect(self.poll)
            logger.debug("Scheduler active; tick subscription acquired")

    def poll(self) -> int:
        """
        Run one scheduler pass: fire every event whose trigger time has been
        reached, in registration order. Normally called by the tick source.

        :return: Number of callbacks handed to the dispatcher.
        """
        with with_lock(self._lock):
            now = self._time_source.now()
            next_trigger = self._peek_next_trigger()
            if next_trigger is None or now < next_trigger - self._config.jitter_tolerance:
                return 0

            due: List[_ScheduledEvent] = []
            while self._heap and self._heap[0][0] <= now:
                entry = heapq.heappop(self._heap)
                if not self._is_stale(entry):
                    due.append(self._events[entry[1]])
            due.sort(key=lambda e: e.id)

            for event in due:
                if event.recurring:
                    event.next_trigger_time = now + event.delay
                    heapq.heappush(self._heap, (event.next_trigger_time, event.id, event.version))
                else:
                    del self._events[event.id]
                    event.version += 1

            for event_id in [i for i, e in self._events.items() if e.cancelled]:
                del self._events[event_id]
            self._update_subscription()
            callbacks = [event.callback for event in due]

        for callback in callbacks:
            try:
                self._runner().submit(callback)
            except ChronosError:
                logger.exception("Could not dispatch %s", callback_name(callback))
        return len(callbacks)

    def __repr__(self) -> str:
        return f"Scheduler(active={self.get_active_count()}, subscribed={self.is_active})"
