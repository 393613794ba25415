# chronos/runtime/concurrency.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, Union

LockType = Union["threading.Lock", "threading.RLock"]


def get_reentrant_lock() -> threading.RLock:
    """
    Provide a lock that the holding thread may re-acquire. Used where a
    public method calls another public method on the same object.
    """
    return threading.RLock()


@contextmanager
def with_lock(lock: LockType) -> Iterator[None]:
    """
    A convenience context manager that acquires the given lock upon entry and
    releases it upon exit, ensuring safe access to shared resources.
    """
    lock.acquire()
    try:
        yield
    finally:
        lock.release()
