# chronos/runtime/defaults.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Process-wide default tick source and dispatcher, created on first use.

Schedulers and timers built without an explicit tick source or dispatcher
share these, mirroring a host that exposes a single heartbeat signal.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from chronos.config import DEFAULT_CONFIG
from chronos.core.errors import InvalidArgumentError
from chronos.interfaces.protocols import CallbackRunner, TickProvider
from chronos.runtime.dispatch import ThreadPoolDispatcher
from chronos.runtime.heartbeat import Heartbeat

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_heartbeat: Optional[Heartbeat] = None
_dispatcher: Optional[ThreadPoolDispatcher] = None


def default_heartbeat() -> Heartbeat:
    global _heartbeat
    with _lock:
        if _heartbeat is None:
            _heartbeat = Heartbeat(config=DEFAULT_CONFIG)
        return _heartbeat


def default_dispatcher() -> ThreadPoolDispatcher:
    global _dispatcher
    with _lock:
        if _dispatcher is None or _dispatcher.closed:
            _dispatcher = ThreadPoolDispatcher(config=DEFAULT_CONFIG)
        return _dispatcher


def reset_defaults(wait: bool = True) -> None:
    """
    Stop the default heartbeat and shut down the default dispatcher. Objects
    built on the defaults look them up on use and so pick up fresh ones; a
    scheduler resubscribes the next time an event is scheduled or rescheduled.
    """
    global _heartbeat, _dispatcher
    with _lock:
        heartbeat, _heartbeat = _heartbeat, None
        dispatcher, _dispatcher = _dispatcher, None
    if heartbeat is not None:
        heartbeat.close()
    if dispatcher is not None:
        dispatcher.shutdown(wait=wait)
    logger.debug("Default heartbeat and dispatcher released")


def resolve_tick_source(value: Any) -> TickProvider:
    """Return ``value`` or the default heartbeat when it is None."""
    if value is None:
        return default_heartbeat()
    if not isinstance(value, TickProvider):
        raise InvalidArgumentError(
            "tick_source must provide connect(callback)", {"argument": "tick_source", "value": value}
        )
    return value


def resolve_dispatcher(value: Any) -> CallbackRunner:
    """Return ``value`` or the default dispatcher when it is None."""
    if value is None:
        return default_dispatcher()
    if not isinstance(value, CallbackRunner):
        raise InvalidArgumentError(
            "dispatcher must provide submit() and shutdown()", {"argument": "dispatcher", "value": value}
        )
    return value
