# chronos/core/errors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from typing import Any, Dict, Optional


class ChronosError(Exception):
    """
    Base exception class for errors within the chronos timing library.

    :param message: Human readable description of the failure.
    :param details: Optional structured context (offending argument, value, ...).
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details) if details else {}


class InvalidArgumentError(ChronosError):
    """
    Raised at a call boundary when an argument is non-finite, negative where
    that is disallowed, or of the wrong kind. No state is mutated before this
    is raised.
    """


class TickSourceError(ChronosError):
    """
    Raised when a tick source cannot deliver ticks, e.g. an asynchronous
    heartbeat connected outside of a running event loop.
    """


class DispatchError(ChronosError):
    """
    Raised when work is submitted to a dispatcher that has been shut down.
    """
