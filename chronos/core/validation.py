# chronos/core/validation.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import math
from datetime import datetime
from typing import Any, Callable

from chronos.core.errors import InvalidArgumentError


def require_number(value: Any, name: str) -> float:
    """
    Return ``value`` as a float, rejecting booleans, non-numbers and
    non-finite values.

    :param value: The candidate value.
    :param name: Argument name used in the error message.
    :raises InvalidArgumentError: If the value is not a finite real number.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidArgumentError(
            f"{name} must be a number, got {type(value).__name__}",
            {"argument": name, "value": value},
        )
    if not math.isfinite(value):
        raise InvalidArgumentError(f"{name} must be finite, got {value!r}", {"argument": name, "value": value})
    return float(value)


def require_non_negative(value: Any, name: str) -> float:
    """Validate a finite number that is >= 0."""
    number = require_number(value, name)
    if number < 0:
        raise InvalidArgumentError(f"{name} must be a non-negative number", {"argument": name, "value": value})
    return number


def require_positive(value: Any, name: str) -> float:
    """Validate a finite number that is > 0."""
    number = require_number(value, name)
    if number <= 0:
        raise InvalidArgumentError(f"{name} must be a positive number", {"argument": name, "value": value})
    return number


def require_callable(value: Any, name: str) -> Callable[..., Any]:
    if not callable(value):
        raise InvalidArgumentError(f"{name} must be callable", {"argument": name, "value": value})
    return value


def require_datetime(value: Any, name: str) -> datetime:
    """
    Validate a timezone-aware datetime. Naive datetimes are rejected since all
    arithmetic is done in UTC.
    """
    if not isinstance(value, datetime):
        raise InvalidArgumentError(
            f"{name} must be a datetime, got {type(value).__name__}",
            {"argument": name, "value": value},
        )
    if value.tzinfo is None or value.utcoffset() is None:
        raise InvalidArgumentError(f"{name} must be timezone-aware", {"argument": name, "value": value})
    return value
