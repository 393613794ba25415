# tests/unit/core/test_time_source.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import logging
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from hypothesis import given
from hypothesis import strategies as st

from chronos.core.errors import InvalidArgumentError
from chronos.core.time_source import EPOCH, ManualTimeSource, SystemTimeSource, TimeSource, coerce_time_source


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_system_time_source_reads_host_clock():
    with patch("time.time", return_value=1234.5):
        source = SystemTimeSource()
        assert source.now() == 1234.5
        assert source.now_millis() == 1234500
        assert source.date_time() == EPOCH + timedelta(seconds=1234.5)


def test_system_time_source_is_close_to_real_time():
    assert abs(SystemTimeSource().now() - time.time()) < 1.0


def test_manual_time_source_moves_only_forward():
    clock = ManualTimeSource(100)
    assert clock.advance(5) == 105
    assert clock.set(200) == 200
    with pytest.raises(InvalidArgumentError):
        clock.set(150)
    with pytest.raises(InvalidArgumentError):
        clock.advance(-1)
    assert clock.now() == 200


def test_has_time_passed_and_seconds_until(clock):
    target = clock.now() + 10
    assert clock.has_time_passed(target) is False
    assert clock.seconds_until(target) == pytest.approx(10)
    clock.advance(10)
    assert clock.has_time_passed(target) is True
    clock.advance(5)
    assert clock.seconds_until(target) == 0


def test_from_epoch_and_back():
    dt = TimeSource.from_epoch(0)
    assert dt == utc(1970, 1, 1)
    assert dt.tzinfo is not None
    assert TimeSource.from_epoch_millis(1500) == utc(1970, 1, 1, 0, 0, 1, 500000)
    assert TimeSource.to_epoch(utc(2024, 1, 1)) == 1704067200


@given(st.floats(min_value=0, max_value=4_000_000_000, allow_nan=False))
def test_epoch_conversion_is_stable(seconds):
    assert TimeSource.to_epoch(TimeSource.from_epoch(seconds)) == pytest.approx(seconds, abs=1e-5)


@pytest.mark.parametrize("value", [float("nan"), float("inf"), "0", None])
def test_from_epoch_rejects_invalid(value):
    with pytest.raises(InvalidArgumentError):
        TimeSource.from_epoch(value)


def test_from_epoch_out_of_range():
    with pytest.raises(InvalidArgumentError):
        TimeSource.from_epoch(1e15)


def test_date_arithmetic():
    base = utc(2024, 2, 28, 23, 30)
    assert TimeSource.add_seconds(base, 30) == utc(2024, 2, 28, 23, 30, 30)
    assert TimeSource.add_minutes(base, 45) == utc(2024, 2, 29, 0, 15)
    assert TimeSource.add_hours(base, -24) == utc(2024, 2, 27, 23, 30)
    assert TimeSource.add_days(base, 2) == utc(2024, 3, 1, 23, 30)


def test_arithmetic_rejects_naive_datetimes():
    with pytest.raises(InvalidArgumentError):
        TimeSource.add_seconds(datetime(2024, 1, 1), 1)
    with pytest.raises(InvalidArgumentError):
        TimeSource.to_epoch(datetime(2024, 1, 1))


def test_difference_in_units():
    a = utc(2024, 1, 1)
    b = utc(2024, 1, 2, 12)
    assert TimeSource.difference_in_seconds(a, b) == 129600
    assert TimeSource.difference_in_minutes(a, b) == 2160
    assert TimeSource.difference_in_hours(a, b) == 36
    assert TimeSource.difference_in_days(a, b) == 1.5


def test_difference_is_clamped_when_target_has_passed():
    assert TimeSource.difference(utc(2024, 1, 2), utc(2024, 1, 1), "hours") == 0


def test_difference_rejects_unknown_unit():
    with pytest.raises(InvalidArgumentError) as exc_info:
        TimeSource.difference(utc(2024, 1, 1), utc(2024, 1, 2), "weeks")
    assert exc_info.value.details["argument"] == "unit"


def test_to_string_iso_default():
    assert TimeSource.to_string(utc(2024, 5, 1, 12, 30)) == "2024-05-01T12:30:00Z"
    assert TimeSource.to_string(utc(2024, 5, 1, 12, 30, 0, 123000)) == "2024-05-01T12:30:00.123Z"


def test_to_string_converts_to_utc():
    plus_two = timezone(timedelta(hours=2))
    value = datetime(2024, 5, 1, 14, 0, tzinfo=plus_two)
    assert TimeSource.to_string(value, "%H:%M") == "12:00"


def test_to_string_with_pattern_and_locale():
    value = utc(2024, 5, 1, 9, 5)
    assert TimeSource.to_string(value, "%Y/%m/%d %H:%M", "en-us") == "2024/05/01 09:05"


def test_to_string_rejects_bad_arguments():
    with pytest.raises(InvalidArgumentError):
        TimeSource.to_string("2024-05-01")
    with pytest.raises(InvalidArgumentError):
        TimeSource.to_string(utc(2024, 5, 1), fmt=5)
    with pytest.raises(InvalidArgumentError):
        TimeSource.to_string(utc(2024, 5, 1), locale=5)


def test_create_date_time(caplog):
    with caplog.at_level(logging.DEBUG, logger="chronos.core.time_source"):
        value = TimeSource.create_date_time(2024, 12, 25, 8, 30, 15)
    assert value == utc(2024, 12, 25, 8, 30, 15)
    assert "Year: 2024" in caplog.text


@pytest.mark.parametrize(
    "fields",
    [(2024, 13, 1), (2023, 2, 29), (2024, 1, 1.5), (2024, "1", 1), (2024, 1, 1, 25)],
)
def test_create_date_time_rejects_invalid(fields):
    with pytest.raises(InvalidArgumentError):
        TimeSource.create_date_time(*fields)


def test_coerce_time_source(clock):
    assert coerce_time_source(clock) is clock
    assert isinstance(coerce_time_source(None), SystemTimeSource)
    with pytest.raises(InvalidArgumentError):
        coerce_time_source(time.time)
