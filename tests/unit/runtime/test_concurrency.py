# tests/unit/runtime/test_concurrency.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from unittest.mock import MagicMock

from chronos.runtime.concurrency import get_reentrant_lock, with_lock


def test_reentrant_lock_can_be_reacquired():
    lock = get_reentrant_lock()
    with with_lock(lock):
        with with_lock(lock):
            pass
    assert lock.acquire(blocking=False)
    lock.release()


def test_with_lock():
    """Test that with_lock properly acquires and releases the lock."""
    lock = MagicMock()
    with with_lock(lock):
        lock.acquire.assert_called_once()
    lock.release.assert_called_once()


def test_with_lock_exception():
    """Test that with_lock releases the lock even when an exception occurs."""
    lock = MagicMock()
    try:
        with with_lock(lock):
            raise Exception("Test error")
    except Exception:
        pass
    lock.acquire.assert_called_once()
    lock.release.assert_called_once()
