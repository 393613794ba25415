# tests/unit/core/test_timer.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from unittest.mock import MagicMock

import pytest
from hypothesis import given
from hypothesis import strategies as st

from chronos.core.errors import InvalidArgumentError
from chronos.core.time_source import ManualTimeSource, TimeSource
from chronos.core.timer import CallbackHandle, Timer, TimerMode, TimerState
from chronos.runtime.dispatch import InlineDispatcher, ThreadPoolDispatcher
from chronos.runtime.heartbeat import ManualTickSource


def advance(clock, ticks, seconds):
    clock.advance(seconds)
    ticks.tick()


def test_new_timer_is_idle(timer_factory):
    t = timer_factory(10)
    assert t.state is TimerState.IDLE
    assert t.is_running() is False
    assert t.is_paused() is False
    assert t.get_time() == 10
    assert t.get_progress() == 0
    assert t.get_end_date_time() is None


def test_pause_resume_excludes_paused_gap(timer_factory, clock):
    t = timer_factory(10)
    assert t.start() is True
    clock.advance(4)
    assert t.get_progress() == pytest.approx(0.4)

    assert t.pause() is True
    clock.advance(5)
    assert t.get_time() == pytest.approx(6)

    assert t.resume() is True
    clock.advance(1)
    assert t.get_time() == pytest.approx(5)
    assert t.get_progress() == pytest.approx(0.5)


def test_invalid_transitions_return_false(timer_factory):
    t = timer_factory(10)
    assert t.pause() is False
    assert t.resume() is False
    assert t.stop() is False

    t.start()
    assert t.start() is False
    assert t.resume() is False

    t.pause()
    assert t.pause() is False
    assert t.start() is False
    assert t.stop() is True
    assert t.state is TimerState.IDLE


def test_start_and_stop_manage_subscription(timer_factory, ticks):
    t = timer_factory(10)
    t.start()
    assert ticks.subscriber_count == 1
    t.pause()
    assert ticks.subscriber_count == 1
    t.stop()
    assert ticks.subscriber_count == 0


def test_tick_callbacks_are_rate_limited(timer_factory, clock, ticks):
    seen = []
    t = timer_factory(10)
    t.on_tick(seen.append)
    t.start()

    ticks.tick()
    advance(clock, ticks, 0.01)
    advance(clock, ticks, 0.03)
    assert seen == [pytest.approx(10)]

    advance(clock, ticks, 0.1)
    assert len(seen) == 2
    assert seen[1] == pytest.approx(10 - 0.14)


def test_no_tick_callbacks_while_paused(timer_factory, clock, ticks, callback):
    t = timer_factory(10)
    t.on_tick(callback)
    t.start()
    t.pause()
    for _ in range(3):
        advance(clock, ticks, 1)
    callback.assert_not_called()


def test_countdown_completes_once_and_stops(timer_factory, clock, ticks, callback):
    t = timer_factory(2)
    t.on_complete(callback)
    t.start()

    advance(clock, ticks, 1)
    callback.assert_not_called()

    advance(clock, ticks, 1)
    callback.assert_called_once_with()
    assert t.state is TimerState.IDLE
    assert t.completed is True
    assert t.get_time() == 0
    assert t.get_progress() == 1
    assert ticks.subscriber_count == 0

    advance(clock, ticks, 1)
    callback.assert_called_once_with()


def test_completion_goes_through_dispatcher(clock, ticks, callback):
    runner = MagicMock()
    t = Timer(1, tick_source=ticks, time_source=clock, dispatcher=runner)
    t.on_complete(callback)
    t.start()
    advance(clock, ticks, 1)
    runner.submit.assert_called_once_with(callback)


def test_zero_duration_completes_on_first_tick(timer_factory, ticks, callback):
    t = timer_factory(0)
    t.on_complete(callback)
    t.start()
    assert t.get_progress() == 1
    ticks.tick()
    callback.assert_called_once_with()


def test_failing_tick_callback_does_not_block_completion(timer_factory, clock, ticks, callback, caplog):
    def boom(current):
        raise ValueError("tick failed")

    t = timer_factory(1)
    t.on_tick(boom)
    t.on_complete(callback)
    t.start()
    advance(clock, ticks, 1)

    callback.assert_called_once_with()
    assert "tick failed" in caplog.text


def test_failing_completion_callback_does_not_block_siblings(timer_factory, clock, ticks, caplog):
    healthy = MagicMock()

    def boom():
        raise RuntimeError("completion failed")

    t = timer_factory(1)
    t.on_complete(boom)
    t.on_complete(healthy)
    t.start()
    advance(clock, ticks, 1)

    healthy.assert_called_once_with()
    assert "completion failed" in caplog.text
    assert t.completed is True


def test_set_duration_with_shut_down_dispatcher_logs_instead_of_raising(clock, ticks, caplog):
    runner = ThreadPoolDispatcher(max_workers=1)
    first, second = MagicMock(), MagicMock()
    t = Timer(10, tick_source=ticks, time_source=clock, dispatcher=runner)
    t.on_complete(first)
    t.on_complete(second)
    t.start()
    runner.shutdown()
    clock.advance(3)

    assert t.set_duration(1) is True
    assert t.state is TimerState.IDLE
    assert t.completed is True
    assert caplog.text.count("Could not dispatch completion callback") == 2
    first.assert_not_called()
    second.assert_not_called()


def test_completing_tick_with_shut_down_dispatcher_is_logged(timer_factory, clock, ticks, dispatcher, caplog):
    t = timer_factory(1)
    t.on_complete(MagicMock())
    t.start()
    dispatcher.shutdown()
    advance(clock, ticks, 1)

    assert t.completed is True
    assert "Could not dispatch completion callback" in caplog.text
    assert "Tick subscriber" not in caplog.text


def test_progress_is_frozen_while_paused(timer_factory, clock, ticks):
    t = timer_factory(10)
    t.start()
    advance(clock, ticks, 3)
    t.pause()
    frozen = t.get_progress()
    assert frozen == pytest.approx(0.3)

    for _ in range(5):
        advance(clock, ticks, 2)
        assert t.get_progress() == frozen
    t.resume()
    assert t.get_progress() == pytest.approx(frozen)


@given(
    duration=st.floats(min_value=0.5, max_value=50),
    mode=st.sampled_from(list(TimerMode)),
    steps=st.lists(st.floats(min_value=0, max_value=5), min_size=1, max_size=30),
)
def test_progress_never_decreases_while_running(duration, mode, steps):
    clock = ManualTimeSource(1000.0)
    ticks = ManualTickSource()
    t = Timer(duration, mode, tick_source=ticks, time_source=clock, dispatcher=InlineDispatcher())
    t.start()
    previous = t.get_progress()
    for step in steps:
        clock.advance(step)
        ticks.tick()
        current = t.get_progress()
        assert 0.0 <= current <= 1.0
        assert current >= previous
        previous = current
    t.close()


def test_restart_after_completion_clears_flag(timer_factory, clock, ticks):
    t = timer_factory(1)
    t.start()
    advance(clock, ticks, 1)
    assert t.completed is True
    assert t.start() is True
    assert t.completed is False
    assert t.get_time() == pytest.approx(1)


def test_set_duration_shorter_than_elapsed_completes(timer_factory, clock, callback):
    t = timer_factory(10)
    t.on_complete(callback)
    t.start()
    clock.advance(5)
    assert t.set_duration(4) is True
    callback.assert_called_once_with()
    assert t.state is TimerState.IDLE
    assert t.completed is True


def test_set_duration_longer_extends_running_timer(timer_factory, clock):
    t = timer_factory(10)
    t.start()
    clock.advance(5)
    t.set_duration(20)
    assert t.get_time() == pytest.approx(15)
    assert t.get_end_date_time() == TimeSource.from_epoch(clock.now() + 15)


def test_set_duration_rejects_negative(timer_factory):
    t = timer_factory(10)
    with pytest.raises(InvalidArgumentError):
        t.set_duration(-1)
    assert t.duration == 10


def test_countup_keeps_counting_and_caps_progress(timer_factory, clock, ticks, callback):
    t = timer_factory(10, TimerMode.COUNTUP)
    t.on_complete(callback)
    assert t.get_time() == 0
    t.start()
    advance(clock, ticks, 5)
    assert t.get_progress() == pytest.approx(0.5)
    advance(clock, ticks, 10)

    assert t.get_time() == pytest.approx(15)
    assert t.get_progress() == 1
    assert t.is_running() is True
    assert t.get_end_date_time() is None
    callback.assert_not_called()


def test_mode_accepts_string_value(timer_factory):
    assert timer_factory(5, "countup").mode is TimerMode.COUNTUP


@pytest.mark.parametrize("mode", ["sideways", 1, None])
def test_invalid_mode_is_rejected(timer_factory, mode):
    with pytest.raises(InvalidArgumentError):
        timer_factory(5, mode)


@pytest.mark.parametrize("duration", [-1, float("nan"), "10"])
def test_invalid_duration_is_rejected(timer_factory, duration):
    with pytest.raises(InvalidArgumentError):
        timer_factory(duration)


def test_end_date_time_moves_while_paused(timer_factory, clock):
    t = timer_factory(10)
    t.start()
    assert t.get_end_date_time() == TimeSource.from_epoch(clock.now() + 10)

    clock.advance(4)
    t.pause()
    clock.advance(100)
    expected = TimeSource.from_epoch(clock.now() + 6)
    assert abs((t.get_end_date_time() - expected).total_seconds()) < 1e-3


def test_time_string_styles(timer_factory):
    t = timer_factory(125)
    assert t.get_time_string() == "02:05"
    assert t.get_time_string("human") == "0 hours, 2 minutes, 5 seconds"
    assert t.get_time_string("compact") == "0h 2m 5s"
    assert timer_factory(3725).get_time_string() == "01:02:05"


def test_callback_removal(timer_factory, clock, ticks):
    t = timer_factory(10)
    tick_cb = MagicMock()
    tick_handle = t.on_tick(tick_cb)
    complete_handle = t.on_complete(MagicMock())

    assert isinstance(tick_handle, CallbackHandle)
    assert t.remove_complete_callback(tick_handle) is False
    assert t.remove_tick_callback(complete_handle) is False
    assert t.remove_tick_callback(tick_handle) is True
    assert t.remove_tick_callback(tick_handle) is False

    t.start()
    ticks.tick()
    tick_cb.assert_not_called()


def test_remove_requires_handle(timer_factory):
    t = timer_factory(10)
    with pytest.raises(InvalidArgumentError):
        t.remove_tick_callback(1)


def test_handles_do_not_cross_timers(timer_factory):
    first = timer_factory(10)
    second = timer_factory(10)
    handle = first.on_tick(lambda current: None)
    assert second.remove_tick_callback(handle) is False
    assert first.remove_tick_callback(handle) is True


def test_callback_removing_itself_mid_round(timer_factory, ticks):
    t = timer_factory(10)
    calls = []

    def once(current):
        calls.append("once")
        t.remove_tick_callback(handle)

    handle = t.on_tick(once)
    t.on_tick(lambda current: calls.append("always"))
    t.start()

    ticks.tick()
    assert calls == ["once", "always"]


def test_context_manager_stops_timer(timer_factory, ticks):
    with timer_factory(10) as t:
        t.start()
        assert ticks.subscriber_count == 1
    assert t.state is TimerState.IDLE
    assert ticks.subscriber_count == 0


def test_repr(timer_factory):
    assert repr(timer_factory(3)) == "Timer(duration=3.0, mode='countdown', state=IDLE)"
