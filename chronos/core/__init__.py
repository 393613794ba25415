"""
Core package providing time arithmetic and the time-driven state machines.

Architecture:
- Time source and UTC date arithmetic
- Cooldown throttle and countdown/countup Timer
- Duration and date formatting for display

Cross-cutting:
- Fail-fast argument validation raising InvalidArgumentError
- Per-object locks around mutable timing state
"""

from .errors import ChronosError, DispatchError, InvalidArgumentError, TickSourceError
from .time_source import ManualTimeSource, SystemTimeSource, TimeSource
from .cooldown import Cooldown
from .timer import CallbackHandle, Timer, TimerMode, TimerState

__all__ = [
    "ChronosError",
    "DispatchError",
    "InvalidArgumentError",
    "TickSourceError",
    "TimeSource",
    "SystemTimeSource",
    "ManualTimeSource",
    "Cooldown",
    "Timer",
    "TimerMode",
    "TimerState",
    "CallbackHandle",
]
