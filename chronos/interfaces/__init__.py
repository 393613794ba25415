"""
Structural protocols and shared type aliases.
"""

from .protocols import CallbackRunner, Subscription, TickProvider
from .types import ScheduledEventInfo

__all__ = ["CallbackRunner", "Subscription", "TickProvider", "ScheduledEventInfo"]
