# tests/conftest.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from unittest.mock import MagicMock

import pytest

START = 1_700_000_000.0


def pytest_configure(config):
    """Register custom marks."""
    config.addinivalue_line("markers", "stress: mark test as a stress test")
    config.addinivalue_line("markers", "property: mark test as a property-based test")


@pytest.fixture
def clock():
    """A manual clock starting at a fixed epoch second."""
    from chronos.core.time_source import ManualTimeSource

    return ManualTimeSource(start=START)


@pytest.fixture
def ticks():
    """A tick source driven explicitly by the test."""
    from chronos.runtime.heartbeat import ManualTickSource

    return ManualTickSource()


@pytest.fixture
def dispatcher():
    """Runs callbacks synchronously, still isolating failures."""
    from chronos.runtime.dispatch import InlineDispatcher

    return InlineDispatcher()


@pytest.fixture
def scheduler(clock, ticks, dispatcher):
    from chronos.runtime.scheduler import Scheduler

    s = Scheduler(tick_source=ticks, time_source=clock, dispatcher=dispatcher)
    yield s
    s.close()


@pytest.fixture
def timer_factory(clock, ticks, dispatcher):
    """Returns a factory building timers wired to the manual clock and ticks."""
    from chronos.core.timer import Timer, TimerMode

    created = []

    def _factory(duration=10.0, mode=TimerMode.COUNTDOWN, **kwargs):
        t = Timer(duration, mode, tick_source=ticks, time_source=clock, dispatcher=dispatcher, **kwargs)
        created.append(t)
        return t

    yield _factory
    for t in created:
        t.close()


@pytest.fixture
def cooldown_factory(clock):
    from chronos.core.cooldown import Cooldown

    def _factory(duration=5.0):
        return Cooldown(duration, time_source=clock)

    return _factory


@pytest.fixture
def callback():
    """A mock usable as a scheduler or timer callback."""
    return MagicMock()


@pytest.fixture(scope="session", autouse=True)
def release_defaults():
    yield
    import chronos

    chronos.shutdown()
