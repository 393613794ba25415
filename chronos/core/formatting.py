# chronos/core/formatting.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Stateless rendering of durations and datetimes for display.
"""

import math
from datetime import datetime
from typing import List, Optional

from chronos.core.errors import InvalidArgumentError
from chronos.core.time_source import SECONDS_PER_HOUR, TimeSource
from chronos.core.validation import require_datetime, require_number

DURATION_STYLES = ("human", "compact", "clock")


def as_minutes_and_seconds(seconds: float) -> str:
    """Format as ``MM:SS``; minutes are not wrapped at an hour."""
    seconds = max(0.0, require_number(seconds, "seconds"))
    minutes = math.floor(seconds / 60)
    remaining = math.floor(seconds % 60)
    return f"{minutes:02d}:{remaining:02d}"


def as_hours_minutes_seconds(seconds: float) -> str:
    """Format as ``HH:MM:SS``."""
    seconds = max(0.0, require_number(seconds, "seconds"))
    hours = math.floor(seconds / SECONDS_PER_HOUR)
    minutes = math.floor((seconds % SECONDS_PER_HOUR) / 60)
    remaining = math.floor(seconds % 60)
    return f"{hours:02d}:{minutes:02d}:{remaining:02d}"


def _unit(value: int, singular: str, short_suffix: str, short: bool) -> str:
    if short:
        return f"{value}{short_suffix}"
    return f"{value} {singular}" if value == 1 else f"{value} {singular}s"


def as_human_readable(
    seconds: float,
    show_hours: bool = True,
    show_minutes: bool = True,
    show_seconds: bool = True,
    short: bool = False,
) -> str:
    """
    Format as e.g. ``"2 hours, 5 minutes, 10 seconds"``.

    A unit is included when it is non-zero or its ``show_*`` flag is set.

    :param short: Produce ``"2h 5m 10s"`` instead.
    """
    total = math.floor(max(0.0, require_number(seconds, "seconds")))
    hours = total // SECONDS_PER_HOUR
    minutes = (total % SECONDS_PER_HOUR) // 60
    remaining = total % 60

    parts: List[str] = []
    if hours > 0 or show_hours:
        parts.append(_unit(hours, "hour", "h", short))
    if minutes > 0 or show_minutes:
        parts.append(_unit(minutes, "minute", "m", short))
    if remaining > 0 or show_seconds:
        parts.append(_unit(remaining, "second", "s", short))
    return (" " if short else ", ").join(parts)


def as_compact(seconds: float) -> str:
    return as_human_readable(seconds, short=True)


def format_duration(seconds: float, style: Optional[str] = None) -> str:
    """
    Render a duration in one of the supported styles.

    "human" and "compact" map to :func:`as_human_readable` and
    :func:`as_compact`. Anything else ("clock" or None) picks ``MM:SS`` below
    one hour and ``HH:MM:SS`` from one hour up.
    """
    if style is not None and not isinstance(style, str):
        raise InvalidArgumentError("style must be a string", {"argument": "style", "value": style})
    if style == "compact":
        return as_compact(seconds)
    if style == "human":
        return as_human_readable(seconds)
    if require_number(seconds, "seconds") >= SECONDS_PER_HOUR:
        return as_hours_minutes_seconds(seconds)
    return as_minutes_and_seconds(seconds)


def date_time(value: datetime, fmt: Optional[str] = None, locale: Optional[str] = None) -> str:
    return TimeSource.to_string(value, fmt, locale)


def date_time_range(start: datetime, end: datetime, fmt: str = "%Y-%m-%d") -> str:
    """Render ``"<start> to <end>"`` with both ends in the same format."""
    require_datetime(start, "start")
    require_datetime(end, "end")
    return f"{date_time(start, fmt)} to {date_time(end, fmt)}"
