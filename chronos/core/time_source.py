# chronos/core/time_source.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from chronos.core.errors import InvalidArgumentError
from chronos.core.validation import require_datetime, require_non_negative, require_number

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400

_UNIT_SECONDS: Dict[str, int] = {
    "seconds": 1,
    "minutes": SECONDS_PER_MINUTE,
    "hours": SECONDS_PER_HOUR,
    "days": SECONDS_PER_DAY,
}

DEFAULT_LOCALE = "en-us"


def _shift(date_time: datetime, seconds: float) -> datetime:
    try:
        return date_time + timedelta(seconds=seconds)
    except OverflowError as exc:
        raise InvalidArgumentError(
            "resulting datetime is out of range", {"date_time": date_time, "seconds": seconds}
        ) from exc


class TimeSource(ABC):
    """
    Access to "now" (seconds since the Unix epoch) plus stateless UTC date
    arithmetic. Consumers treat ``now()`` as non-decreasing; the host clock's
    monotonicity is not independently verified.

    Subclasses only provide ``now()``. Everything else is derived from it or
    is pure arithmetic on timezone-aware ``datetime`` values.
    """

    @abstractmethod
    def now(self) -> float:
        """Seconds since epoch."""

    def now_millis(self) -> int:
        return int(self.now() * 1000)

    def date_time(self) -> datetime:
        """The current time as a UTC datetime."""
        return self.from_epoch(self.now())

    def has_time_passed(self, target: float) -> bool:
        """
        :param target: Absolute epoch seconds.
        :return: True once ``now()`` has reached ``target``.
        """
        return self.now() >= require_number(target, "target")

    def seconds_until(self, target: float) -> float:
        """Seconds until ``target``, 0 if it has already arrived."""
        return max(0.0, require_number(target, "target") - self.now())

    @staticmethod
    def from_epoch(seconds: float) -> datetime:
        """
        Build a UTC datetime from epoch seconds.

        :param seconds: Seconds since 1970-01-01T00:00:00Z, may be fractional.
        :raises InvalidArgumentError: If the value is not finite or out of range.
        """
        return _shift(EPOCH, require_number(seconds, "seconds"))

    @staticmethod
    def from_epoch_millis(milliseconds: float) -> datetime:
        return _shift(EPOCH, require_number(milliseconds, "milliseconds") / 1000.0)

    @staticmethod
    def to_epoch(date_time: datetime) -> float:
        return (require_datetime(date_time, "date_time") - EPOCH).total_seconds()

    @staticmethod
    def add_seconds(date_time: datetime, seconds: float) -> datetime:
        require_datetime(date_time, "date_time")
        return _shift(date_time, require_number(seconds, "seconds"))

    @staticmethod
    def add_minutes(date_time: datetime, minutes: float) -> datetime:
        return TimeSource.add_seconds(date_time, require_number(minutes, "minutes") * SECONDS_PER_MINUTE)

    @staticmethod
    def add_hours(date_time: datetime, hours: float) -> datetime:
        return TimeSource.add_seconds(date_time, require_number(hours, "hours") * SECONDS_PER_HOUR)

    @staticmethod
    def add_days(date_time: datetime, days: float) -> datetime:
        return TimeSource.add_seconds(date_time, require_number(days, "days") * SECONDS_PER_DAY)

    @staticmethod
    def difference(a: datetime, b: datetime, unit: str = "seconds") -> float:
        """
        Time from ``a`` until ``b`` in the given unit, clamped to >= 0. A ``b``
        that precedes ``a`` has "already arrived" and yields 0.

        :param a: Reference datetime.
        :param b: Target datetime.
        :param unit: One of "seconds", "minutes", "hours", "days".
        """
        require_datetime(a, "a")
        require_datetime(b, "b")
        if not isinstance(unit, str) or unit not in _UNIT_SECONDS:
            raise InvalidArgumentError(
                f"unit must be one of {sorted(_UNIT_SECONDS)}", {"argument": "unit", "value": unit}
            )
        seconds = max(0.0, (b - a).total_seconds())
        return seconds / _UNIT_SECONDS[unit]

    @staticmethod
    def difference_in_seconds(a: datetime, b: datetime) -> float:
        return TimeSource.difference(a, b, "seconds")

    @staticmethod
    def difference_in_minutes(a: datetime, b: datetime) -> float:
        return TimeSource.difference(a, b, "minutes")

    @staticmethod
    def difference_in_hours(a: datetime, b: datetime) -> float:
        return TimeSource.difference(a, b, "hours")

    @staticmethod
    def difference_in_days(a: datetime, b: datetime) -> float:
        return TimeSource.difference(a, b, "days")

    @staticmethod
    def to_string(date_time: datetime, fmt: Optional[str] = None, locale: Optional[str] = None) -> str:
        """
        Render a datetime in UTC.

        With no ``fmt`` the ISO-8601 form is produced, e.g.
        ``2024-05-01T12:30:00Z`` (``.123Z`` suffix when there are milliseconds).
        Otherwise ``fmt`` is a ``strftime`` pattern.

        :param locale: Accepted for call compatibility; names are rendered in "en-us".
        """
        require_datetime(date_time, "date_time")
        if fmt is not None and not isinstance(fmt, str):
            raise InvalidArgumentError("fmt must be a string", {"argument": "fmt", "value": fmt})
        if locale is not None and not isinstance(locale, str):
            raise InvalidArgumentError("locale must be a string", {"argument": "locale", "value": locale})

        utc = date_time.astimezone(timezone.utc)
        if fmt is None:
            base = utc.strftime("%Y-%m-%dT%H:%M:%S")
            millis = utc.microsecond // 1000
            return f"{base}.{millis:03d}Z" if millis else f"{base}Z"
        return utc.strftime(fmt)

    @staticmethod
    def create_date_time(
        year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0
    ) -> datetime:
        """Construct a UTC datetime from calendar fields."""
        fields = {"year": year, "month": month, "day": day, "hour": hour, "minute": minute, "second": second}
        for name, value in fields.items():
            number = require_number(value, name)
            if not number.is_integer():
                raise InvalidArgumentError(f"{name} must be a whole number", {"argument": name, "value": value})

        logger.debug(
            "Creating datetime from: Year: %d | Month: %d | Day: %d | Hour: %d | Minute: %d | Second: %d",
            year,
            month,
            day,
            hour,
            minute,
            second,
        )
        try:
            return datetime(
                int(year), int(month), int(day), int(hour), int(minute), int(second), tzinfo=timezone.utc
            )
        except ValueError as exc:
            raise InvalidArgumentError(str(exc), fields) from exc


class SystemTimeSource(TimeSource):
    """Host wall clock via ``time.time()``."""

    def now(self) -> float:
        return time.time()

    def __repr__(self) -> str:
        return "SystemTimeSource()"


class ManualTimeSource(TimeSource):
    """
    A clock that only moves when told to. Used for deterministic tests and for
    simulations driven by their own notion of time.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = require_number(start, "start")
        self._lock = threading.Lock()

    def now(self) -> float:
        with self._lock:
            return self._now

    def set(self, value: float) -> float:
        """
        Jump to an absolute time.

        :raises InvalidArgumentError: If ``value`` would move the clock backwards.
        """
        value = require_number(value, "value")
        with self._lock:
            if value < self._now:
                raise InvalidArgumentError(
                    "manual clock cannot move backwards", {"current": self._now, "value": value}
                )
            self._now = value
            return self._now

    def advance(self, seconds: float) -> float:
        seconds = require_non_negative(seconds, "seconds")
        with self._lock:
            self._now += seconds
            return self._now

    def __repr__(self) -> str:
        return f"ManualTimeSource(now={self.now()!r})"


def coerce_time_source(value: Any) -> TimeSource:
    """Return ``value`` or a new ``SystemTimeSource`` when it is None."""
    if value is None:
        return SystemTimeSource()
    if not isinstance(value, TimeSource):
        raise InvalidArgumentError(
            "time_source must be a TimeSource", {"argument": "time_source", "value": value}
        )
    return value
