# chronos/runtime/dispatch.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Fault-isolated execution of user callbacks.

A callback that raises never propagates into the scheduler, timer or tick
source that fired it and never prevents its siblings from running. The
failure is logged with its traceback and handed to an optional
``error_handler(exc, callback)``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Optional, Set

from chronos.config import ChronosConfig, coerce_config
from chronos.core.errors import DispatchError
from chronos.core.validation import require_callable

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[BaseException, Callable[..., Any]], None]


def callback_name(callback: Callable[..., Any]) -> str:
    return getattr(callback, "__qualname__", None) or repr(callback)


class Dispatcher(ABC):
    """
    Runs callbacks as independent units of work.

    :param error_handler: Optional hook called with ``(exc, callback)`` after a
        callback failure has been logged.
    """

    def __init__(self, error_handler: Optional[ErrorHandler] = None) -> None:
        if error_handler is not None:
            require_callable(error_handler, "error_handler")
        self._error_handler = error_handler
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, callback: Callable[..., Any], *args: Any) -> Optional[Future]:
        """
        Schedule ``callback(*args)``.

        :raises DispatchError: If the dispatcher has been shut down.
        """
        require_callable(callback, "callback")
        if self._closed:
            raise DispatchError(
                f"{type(self).__name__} is shut down", {"callback": callback_name(callback)}
            )
        return self._submit(callback, args)

    @abstractmethod
    def _submit(self, callback: Callable[..., Any], args: tuple) -> Optional[Future]:
        ...

    def shutdown(self, wait: bool = True) -> None:
        self._closed = True

    def _invoke(self, callback: Callable[..., Any], args: tuple) -> Any:
        try:
            return callback(*args)
        except Exception as exc:
            self._report(exc, callback)
            return None

    def _report(self, exc: BaseException, callback: Callable[..., Any]) -> None:
        logger.error("Callback %s raised an exception", callback_name(callback), exc_info=exc)
        if self._error_handler is None:
            return
        try:
            self._error_handler(exc, callback)
        except Exception:
            logger.exception("Error handler failed while handling a failure of %s", callback_name(callback))


class InlineDispatcher(Dispatcher):
    """
    Runs each callback immediately on the calling thread, still isolating its
    failures. Deterministic; intended for game loops and tests.
    """

    def _submit(self, callback: Callable[..., Any], args: tuple) -> None:
        self._invoke(callback, args)
        return None


class ThreadPoolDispatcher(Dispatcher):
    """
    Runs callbacks on a lazily created ``ThreadPoolExecutor`` so that a slow
    callback cannot stall the tick that fired it.
    """

    def __init__(
        self,
        max_workers: Optional[int] = None,
        config: Optional[ChronosConfig] = None,
        error_handler: Optional[ErrorHandler] = None,
    ) -> None:
        super().__init__(error_handler)
        config = coerce_config(config)
        if max_workers is not None:
            config = config.replace(max_workers=max_workers)
        self._config = config
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._config.max_workers,
                    thread_name_prefix=f"{self._config.thread_name_prefix}-callback",
                )
            return self._executor

    def _submit(self, callback: Callable[..., Any], args: tuple) -> Future:
        try:
            return self._get_executor().submit(self._invoke, callback, args)
        except RuntimeError as exc:
            # Interpreter shutdown or a concurrent shutdown() call.
            raise DispatchError("thread pool is shut down", {"callback": callback_name(callback)}) from exc

    def shutdown(self, wait: bool = True) -> None:
        super().shutdown(wait)
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)


class AsyncioDispatcher(Dispatcher):
    """
    Schedules callbacks onto an asyncio event loop. Coroutine functions (and
    any callback returning an awaitable) are run as tasks whose failures are
    reported like synchronous ones. Safe to submit from other threads.

    :param loop: Target loop. When omitted, the loop running at the first
        ``submit`` is used.
    """

    def __init__(
        self, loop: Optional[asyncio.AbstractEventLoop] = None, error_handler: Optional[ErrorHandler] = None
    ) -> None:
        super().__init__(error_handler)
        self._loop = loop
        self._tasks: Set[asyncio.Task] = set()

    def _resolve_loop(self, callback: Callable[..., Any]) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError as exc:
                raise DispatchError(
                    "AsyncioDispatcher needs a loop or a running event loop", {"callback": callback_name(callback)}
                ) from exc
        return self._loop

    def _submit(self, callback: Callable[..., Any], args: tuple) -> None:
        loop = self._resolve_loop(callback)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            loop.call_soon(self._start, callback, args)
        else:
            loop.call_soon_threadsafe(self._start, callback, args)
        return None

    def _start(self, callback: Callable[..., Any], args: tuple) -> None:
        result = self._invoke(callback, args)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(partial(self._task_done, callback))

    def _task_done(self, callback: Callable[..., Any], task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._report(exc, callback)

    async def drain(self) -> None:
        """Wait for every callback task started so far to finish."""
        await asyncio.sleep(0)
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
