# chronos/core/timer.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional, Union

from chronos.config import ChronosConfig, coerce_config
from chronos.core import formatting
from chronos.core.errors import ChronosError, InvalidArgumentError
from chronos.core.time_source import TimeSource, coerce_time_source
from chronos.core.validation import require_callable, require_non_negative
from chronos.interfaces.protocols import CallbackRunner, Subscription, TickProvider
from chronos.interfaces.types import CompletionListener, TickListener
from chronos.runtime.concurrency import get_reentrant_lock, with_lock
from chronos.runtime.defaults import default_dispatcher, default_heartbeat, resolve_dispatcher, resolve_tick_source
from chronos.runtime.dispatch import InlineDispatcher, callback_name

logger = logging.getLogger(__name__)

_callback_ids = itertools.count(1)


class TimerMode(Enum):
    """Direction a timer counts in."""

    COUNTDOWN = "countdown"  # remaining time, completes at 0
    COUNTUP = "countup"  # elapsed time, runs unbounded


class TimerState(Enum):
    IDLE = auto()  # Not started, stopped, or completed
    RUNNING = auto()  # Counting and receiving ticks
    PAUSED = auto()  # Elapsed time frozen


@dataclass(frozen=True)
class CallbackHandle:
    """
    Opaque token returned by ``Timer.on_tick``/``Timer.on_complete`` and
    accepted by the matching removal method. Ids are unique process-wide, so
    a handle from one timer never removes another timer's callback.
    """

    id: int
    kind: str


def _coerce_mode(mode: Union[TimerMode, str]) -> TimerMode:
    if isinstance(mode, TimerMode):
        return mode
    if isinstance(mode, str):
        try:
            return TimerMode(mode.lower())
        except ValueError:
            pass
    raise InvalidArgumentError(
        "mode must be TimerMode.COUNTDOWN or TimerMode.COUNTUP", {"argument": "mode", "value": mode}
    )


class Timer:
    """
    Countdown/countup timer with pause/resume, progress queries, rate-limited
    tick notifications and a completion notification.

    Time is computed lazily from the time source on every query. While the
    timer is running or paused it is subscribed to a tick source; each tick
    fires tick callbacks (at most once per ``tick_callback_interval``) and
    detects countdown completion. Callers must ``stop()`` or ``close()`` a
    timer to detach it from the tick source.

    Countup timers never complete on their own; they keep counting past
    their nominal duration and their progress caps at 1.
    """

    def __init__(
        self,
        duration: float,
        mode: Union[TimerMode, str] = TimerMode.COUNTDOWN,
        tick_source: Optional[TickProvider] = None,
        time_source: Optional[TimeSource] = None,
        dispatcher: Optional[CallbackRunner] = None,
        config: Optional[ChronosConfig] = None,
    ) -> None:
        """
        :param duration: Length in seconds, >= 0.
        :param mode: ``TimerMode`` or its string value ("countdown"/"countup").
        :param tick_source: Tick signal; the shared default heartbeat if omitted.
        :param time_source: Clock; the host clock if omitted.
        :param dispatcher: Runs completion callbacks; the shared thread pool if omitted.
        :param config: Tunables, see ``ChronosConfig``.
        :raises InvalidArgumentError: On a negative duration or unknown mode.
        """
        self._duration = require_non_negative(duration, "duration")
        self._mode = _coerce_mode(mode)
        self._config = coerce_config(config)
        self._time_source = coerce_time_source(time_source)
        # None means "the process-wide default", looked up on each use
        self._tick_source = None if tick_source is None else resolve_tick_source(tick_source)
        self._dispatcher = None if dispatcher is None else resolve_dispatcher(dispatcher)
        self._tick_runner = InlineDispatcher()

        self._lock = get_reentrant_lock()
        self._state = TimerState.IDLE
        self._start_time = 0.0
        self._pause_time = 0.0
        self._end_time: Optional[float] = None
        self._last_tick_time: Optional[float] = None
        self._completed = False
        self._connection: Optional[Subscription] = None

        self._tick_callbacks: Dict[int, TickListener] = {}
        self._complete_callbacks: Dict[int, CompletionListener] = {}

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def duration(self) -> float:
        return self._duration

    @property
    def mode(self) -> TimerMode:
        return self._mode

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def completed(self) -> bool:
        """True after a countdown finished on its own, until restarted or stopped."""
        return self._completed

    def is_running(self) -> bool:
        return self._state is TimerState.RUNNING

    def is_paused(self) -> bool:
        return self._state is TimerState.PAUSED

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    def start(self) -> bool:
        """
        Start counting from now. Only valid from IDLE.

        :return: False if the timer is already running or paused.
        """
        with with_lock(self._lock):
            if self._state is not TimerState.IDLE:
                return False
            self._start_time = self._time_source.now()
            if self._mode is TimerMode.COUNTDOWN:
                self._end_time = self._start_time + self._duration
            self._state = TimerState.RUNNING
            self._completed = False
            self._last_tick_time = None
            self._connection = self._ticks().connect(self._on_tick)
            logger.debug("Timer %s started (%s, %.3fs)", id(self), self._mode.value, self._duration)
            return True

    def pause(self) -> bool:
        with with_lock(self._lock):
            if self._state is not TimerState.RUNNING:
                return False
            self._pause_time = self._time_source.now()
            self._state = TimerState.PAUSED
            return True

    def resume(self) -> bool:
        """
        Continue after a pause. The paused gap is excluded from elapsed time by
        shifting the start time forward.
        """
        with with_lock(self._lock):
            if self._state is not TimerState.PAUSED:
                return False
            self._start_time += self._time_source.now() - self._pause_time
            if self._mode is TimerMode.COUNTDOWN:
                self._end_time = self._start_time + self._duration
            self._state = TimerState.RUNNING
            return True

    def stop(self) -> bool:
        """
        Detach from the tick source and return to IDLE from any state.

        :return: True if the timer was running or paused.
        """
        with with_lock(self._lock):
            was_active = self._state is not TimerState.IDLE
            self._teardown()
            self._completed = False
            if was_active:
                logger.debug("Timer %s stopped", id(self))
            return was_active

    def close(self) -> None:
        self.stop()

    def __enter__(self) -> "Timer":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def set_duration(self, new_duration: float) -> bool:
        """
        Change the duration at any time. A running countdown whose elapsed
        time already meets the new duration completes immediately.
        """
        new_duration = require_non_negative(new_duration, "new_duration")
        completions: List[CompletionListener] = []
        with with_lock(self._lock):
            self._duration = new_duration
            self._completed = False
            if self._mode is TimerMode.COUNTDOWN and self._state is TimerState.RUNNING:
                elapsed = self._time_source.now() - self._start_time
                if elapsed >= new_duration:
                    completions = self._complete()
                else:
                    self._end_time = self._start_time + new_duration
        self._dispatch_completions(completions)
        return True

    def _ticks(self) -> TickProvider:
        return self._tick_source if self._tick_source is not None else default_heartbeat()

    def _runner(self) -> CallbackRunner:
        return self._dispatcher if self._dispatcher is not None else default_dispatcher()

    def _teardown(self) -> None:
        if self._connection is not None:
            self._connection.disconnect()
            self._connection = None
        self._state = TimerState.IDLE
        self._start_time = 0.0
        self._pause_time = 0.0
        self._end_time = None
        self._last_tick_time = None

    def _complete(self) -> List[CompletionListener]:
        """Transition to IDLE as completed; returns the callbacks to fire."""
        callbacks = list(self._complete_callbacks.values())
        self._teardown()
        self._completed = True
        logger.debug("Timer %s completed", id(self))
        return callbacks

    def _dispatch_completions(self, callbacks: List[CompletionListener]) -> None:
        for callback in callbacks:
            try:
                self._runner().submit(callback)
            except ChronosError:
                logger.exception("Could not dispatch completion callback %s", callback_name(callback))

    def _on_tick(self) -> None:
        tick_callbacks: List[TickListener] = []
        completions: List[CompletionListener] = []
        with with_lock(self._lock):
            if self._state is not TimerState.RUNNING:
                return
            now = self._time_source.now()
            current = self._current_time(now)
            if self._last_tick_time is None or now - self._last_tick_time >= self._config.tick_callback_interval:
                tick_callbacks = list(self._tick_callbacks.values())
                self._last_tick_time = now
            if self._mode is TimerMode.COUNTDOWN and current <= 0:
                completions = self._complete()

        for callback in tick_callbacks:
            self._tick_runner.submit(callback, current)
        self._dispatch_completions(completions)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def _current_time(self, now: float) -> float:
        countdown = self._mode is TimerMode.COUNTDOWN
        if self._state is TimerState.IDLE:
            if countdown:
                return 0.0 if self._completed else self._duration
            return 0.0
        reference = self._pause_time if self._state is TimerState.PAUSED else now
        elapsed = max(0.0, reference - self._start_time)
        if countdown:
            return max(0.0, self._duration - elapsed)
        return elapsed

    def get_time(self) -> float:
        """
        Remaining seconds (countdown) or elapsed seconds (countup).

        IDLE reports the full duration for a countdown (0 once it has
        completed) and 0 for a countup. PAUSED reports the value frozen at
        the moment of pausing.
        """
        with with_lock(self._lock):
            return self._current_time(self._time_source.now())

    def get_progress(self) -> float:
        """
        Normalized progress in [0, 1]. Countdown goes from 0 at start to 1 at
        completion; countup approaches 1 as elapsed nears the duration and is
        capped there.
        """
        with with_lock(self._lock):
            if self._state is TimerState.IDLE:
                return 1.0 if (self._completed and self._mode is TimerMode.COUNTDOWN) else 0.0
            if self._duration == 0:
                return 1.0
            current = self._current_time(self._time_source.now())
            if self._mode is TimerMode.COUNTDOWN:
                return min(1.0, max(0.0, 1.0 - current / self._duration))
            return min(current / self._duration, 1.0)

    def get_end_date_time(self) -> Optional[datetime]:
        """
        When a countdown will complete, or None for countup and idle timers.
        While paused this is "now + remaining", so it moves with the clock.
        """
        with with_lock(self._lock):
            if self._mode is not TimerMode.COUNTDOWN or self._state is TimerState.IDLE:
                return None
            if self._state is TimerState.PAUSED:
                now = self._time_source.now()
                return TimeSource.from_epoch(now + self._current_time(now))
            return TimeSource.from_epoch(self._end_time)

    def get_time_string(self, style: Optional[str] = None) -> str:
        """
        :param style: "human", "compact", or None for ``MM:SS`` (``HH:MM:SS``
            from one hour up).
        """
        return formatting.format_duration(self.get_time(), style)

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------
    def on_tick(self, callback: Callable[[float], Any]) -> CallbackHandle:
        """
        Register ``callback(current_time)`` for ticks while running.
        """
        require_callable(callback, "callback")
        handle = CallbackHandle(next(_callback_ids), "tick")
        with with_lock(self._lock):
            self._tick_callbacks[handle.id] = callback
        return handle

    def on_complete(self, callback: Callable[[], Any]) -> CallbackHandle:
        require_callable(callback, "callback")
        handle = CallbackHandle(next(_callback_ids), "complete")
        with with_lock(self._lock):
            self._complete_callbacks[handle.id] = callback
        return handle

    def _remove(self, handle: CallbackHandle, kind: str, registry: Dict[int, Any]) -> bool:
        if not isinstance(handle, CallbackHandle):
            raise InvalidArgumentError("handle must be a CallbackHandle", {"argument": "handle", "value": handle})
        if handle.kind != kind:
            return False
        with with_lock(self._lock):
            return registry.pop(handle.id, None) is not None

    def remove_tick_callback(self, handle: CallbackHandle) -> bool:
        return self._remove(handle, "tick", self._tick_callbacks)

    def remove_complete_callback(self, handle: CallbackHandle) -> bool:
        return self._remove(handle, "complete", self._complete_callbacks)

    def __repr__(self) -> str:
        return f"Timer(duration={self._duration!r}, mode={self._mode.value!r}, state={self._state.name})"
