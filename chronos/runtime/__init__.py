"""
Runtime package for tick delivery, callback dispatch and event scheduling.

Architecture:
- Tick sources drive all time-based advancement
- Dispatchers run user callbacks with fault isolation
- Scheduler fires one-shot and recurring events on ticks

Cross-cutting:
- Thread safety via reentrant locks; callbacks run outside locks
- Subscriptions held only while there is work to do
"""

from .heartbeat import AsyncHeartbeat, Connection, Heartbeat, ManualTickSource, TickSource
from .dispatch import AsyncioDispatcher, Dispatcher, InlineDispatcher, ThreadPoolDispatcher
from .scheduler import EventHandle, Scheduler

__all__ = [
    "TickSource",
    "Connection",
    "ManualTickSource",
    "Heartbeat",
    "AsyncHeartbeat",
    "Dispatcher",
    "InlineDispatcher",
    "ThreadPoolDispatcher",
    "AsyncioDispatcher",
    "Scheduler",
    "EventHandle",
]
