# chronos/interfaces/types.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details
from datetime import datetime
from typing import Any, Callable, NamedTuple

EventID = int
Seconds = float


class ScheduledEventInfo(NamedTuple):
    """Point-in-time view of one active scheduled event."""

    id: EventID
    next_trigger: datetime
    time_remaining: Seconds
    recurring: bool


# Callback Types
EventCallback = Callable[[], Any]
TickListener = Callable[[Seconds], Any]
CompletionListener = Callable[[], Any]
