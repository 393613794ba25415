# chronos/interfaces/protocols.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details
from typing import Any, Callable, Protocol, runtime_checkable


@runtime_checkable
class Subscription(Protocol):
    """
    A live connection to a tick source.

    Runtime Invariants:
    - After disconnect() returns, no new tick is delivered through it.
    - disconnect() is idempotent.
    """

    @property
    def connected(self) -> bool: ...

    def disconnect(self) -> bool: ...


@runtime_checkable
class TickProvider(Protocol):
    """
    Periodic host signal.

    Runtime Invariants:
    - No fixed period is guaranteed; consumers read the clock themselves.
    - Subscribers may connect or disconnect from inside a tick.
    """

    def connect(self, callback: Callable[[], None]) -> Subscription: ...


@runtime_checkable
class CallbackRunner(Protocol):
    """
    Executes callbacks with fault isolation.

    Error Handling:
    - A failing callback is reported (logged) and never re-raised to the submitter.
    """

    def submit(self, callback: Callable[..., Any], *args: Any) -> Any: ...

    def shutdown(self, wait: bool = True) -> None: ...
