"""chronos: real-time event timing for interactive applications

This package schedules one-shot and recurring callbacks, runs countdown and
countup timers, and throttles repeated actions with cooldowns. Everything is
advanced by a periodic tick signal and read against a wall-clock time source.

Responsibilities:
    - Event scheduling with deterministic, registration-ordered firing
    - Timer state machine with pause/resume and progress queries
    - Cooldown readiness tracking
    - UTC date arithmetic and display formatting

Interactions:
    - Client code through the public API and the convenience functions below
    - Host environment through TickSource and TimeSource implementations
    - Logging system for diagnostics (``chronos`` logger, NullHandler by default)

Cross-cutting Concerns:
    Thread Safety:
        - Scheduler, Timer and Cooldown guard their state with locks
        - User callbacks never run while a lock is held

    Error Handling:
        - InvalidArgumentError raised before any mutation
        - Unknown or cancelled handles reported as False, not raised
        - Callback failures isolated, logged and never propagated
"""

import logging
import threading
import time
from datetime import datetime
from typing import Callable, Optional, Tuple, Union

from chronos.core import (
    CallbackHandle,
    ChronosError,
    Cooldown,
    DispatchError,
    InvalidArgumentError,
    ManualTimeSource,
    SystemTimeSource,
    TickSourceError,
    TimeSource,
    Timer,
    TimerMode,
    TimerState,
)
from chronos.core import formatting
from chronos.config import DEFAULT_CONFIG, ChronosConfig
from chronos.core.validation import require_non_negative
from chronos.interfaces.types import ScheduledEventInfo
from chronos.runtime import (
    AsyncHeartbeat,
    AsyncioDispatcher,
    Connection,
    Dispatcher,
    EventHandle,
    Heartbeat,
    InlineDispatcher,
    ManualTickSource,
    Scheduler,
    ThreadPoolDispatcher,
    TickSource,
)
from chronos.runtime.defaults import reset_defaults

__version__ = "0.1.0"
version_info = (0, 1, 0)

logging.getLogger(__name__).addHandler(logging.NullHandler())
logger = logging.getLogger(__name__)

_clock = SystemTimeSource()
_default_lock = threading.Lock()
_default_scheduler: Optional[Scheduler] = None


def default_scheduler() -> Scheduler:
    """The process-wide scheduler used by :func:`schedule` and :func:`recur`."""
    global _default_scheduler
    with _default_lock:
        if _default_scheduler is None or _default_scheduler.closed:
            _default_scheduler = Scheduler()
        return _default_scheduler


def shutdown(wait: bool = True) -> None:
    """
    Close the default scheduler and release the shared heartbeat and
    dispatcher threads.
    """
    global _default_scheduler
    with _default_lock:
        scheduler, _default_scheduler = _default_scheduler, None
    if scheduler is not None:
        scheduler.close()
    reset_defaults(wait=wait)


def now() -> float:
    """Current epoch seconds."""
    return _clock.now()


def date_time() -> datetime:
    return _clock.date_time()


def schedule(delay: float, callback: Callable[[], object]) -> EventHandle:
    """Schedule a one-time callback on the default scheduler."""
    return default_scheduler().schedule_once(delay, callback)


def recur(interval: float, callback: Callable[[], object]) -> EventHandle:
    """Schedule a recurring callback on the default scheduler."""
    return default_scheduler().schedule_recurring(interval, callback)


def create_cooldown(duration: float) -> Cooldown:
    return Cooldown(duration)


def create_timer(duration: float, mode: Union[TimerMode, str] = TimerMode.COUNTDOWN) -> Timer:
    return Timer(duration, mode)


def format_time(seconds: float) -> str:
    """Format seconds as ``MM:SS``."""
    return formatting.as_minutes_and_seconds(seconds)


def create_date_time(
    year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0
) -> datetime:
    return TimeSource.create_date_time(year, month, day, hour, minute, second)


def from_unix_timestamp(timestamp: float) -> datetime:
    return TimeSource.from_epoch(timestamp)


def format_date_time(value: datetime, fmt: Optional[str] = None, locale: Optional[str] = None) -> str:
    return TimeSource.to_string(value, fmt, locale)


def wait(seconds: float = 0.0001, debug: bool = False) -> Tuple[float, float]:
    """
    Block the calling thread for ``seconds`` and measure how long it really
    took. This is the only blocking helper in the package; never call it
    from a tick callback.

    :param debug: Log requested vs. actual wait at INFO.
    :return: ``(requested, actual)`` seconds.
    """
    seconds = require_non_negative(seconds, "seconds")
    started = time.perf_counter()
    time.sleep(seconds)
    actual = time.perf_counter() - started
    if debug:
        logger.info("Wait: requested %.4fs, actual %.4fs (delta: %.4fs)", seconds, actual, actual - seconds)
    return seconds, actual


__all__ = [
    "__version__",
    "version_info",
    "ChronosConfig",
    "DEFAULT_CONFIG",
    "ChronosError",
    "InvalidArgumentError",
    "TickSourceError",
    "DispatchError",
    "TimeSource",
    "SystemTimeSource",
    "ManualTimeSource",
    "Cooldown",
    "Timer",
    "TimerMode",
    "TimerState",
    "CallbackHandle",
    "Scheduler",
    "EventHandle",
    "ScheduledEventInfo",
    "TickSource",
    "Connection",
    "ManualTickSource",
    "Heartbeat",
    "AsyncHeartbeat",
    "Dispatcher",
    "InlineDispatcher",
    "ThreadPoolDispatcher",
    "AsyncioDispatcher",
    "formatting",
    "default_scheduler",
    "shutdown",
    "now",
    "date_time",
    "schedule",
    "recur",
    "create_cooldown",
    "create_timer",
    "format_time",
    "create_date_time",
    "from_unix_timestamp",
    "format_date_time",
    "wait",
]
