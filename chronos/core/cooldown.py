# chronos/core/cooldown.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import threading
from typing import Optional

from chronos.core.time_source import TimeSource, coerce_time_source
from chronos.core.validation import require_non_negative


class Cooldown:
    """
    Single-action throttle. Records when an action was last used and reports
    whether enough time has passed to use it again.

    Nothing is driven by ticks: every query reads the time source lazily.
    ``use()`` does not enforce the cooldown itself; callers gate with
    ``is_ready()`` first.

    Note that ``get_progress()`` is readiness-oriented: 1 means ready and 0
    means just used, the inverse of a countdown timer's progress.
    """

    def __init__(self, duration: float, time_source: Optional[TimeSource] = None) -> None:
        """
        :param duration: Cooldown length in seconds, >= 0.
        :param time_source: Clock to read; the host clock by default.
        :raises InvalidArgumentError: If ``duration`` is negative or not a number.
        """
        self._duration = require_non_negative(duration, "duration")
        self._time_source = coerce_time_source(time_source)
        self._last_used = 0.0
        self._active = False
        self._lock = threading.Lock()

    @property
    def duration(self) -> float:
        return self._duration

    def _remaining(self) -> float:
        if not self._active:
            return 0.0
        elapsed = self._time_source.now() - self._last_used
        return max(0.0, self._duration - elapsed)

    def is_ready(self) -> bool:
        with self._lock:
            if not self._active:
                return True
            return self._time_source.now() - self._last_used >= self._duration

    def get_remaining(self) -> float:
        """Seconds until ready, 0 when already ready."""
        with self._lock:
            return self._remaining()

    def get_progress(self) -> float:
        with self._lock:
            if not self._active or self._duration == 0:
                return 1.0
            progress = 1.0 - self._remaining() / self._duration
            return min(1.0, max(0.0, progress))

    def use(self) -> bool:
        """Start the cooldown from now. Always succeeds."""
        with self._lock:
            self._last_used = self._time_source.now()
            self._active = True
        return True

    def reset(self) -> bool:
        """Make the action immediately ready again."""
        with self._lock:
            self._active = False
        return True

    def set_duration(self, new_duration: float) -> None:
        new_duration = require_non_negative(new_duration, "new_duration")
        with self._lock:
            self._duration = new_duration

    def __repr__(self) -> str:
        return f"Cooldown(duration={self._duration!r}, ready={self.is_ready()!r})"
