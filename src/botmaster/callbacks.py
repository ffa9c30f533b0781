"""Dual awaitable/callback settlement for send operations.

A send is run exactly once, as a task on the running loop. The task is
returned to the caller (the awaitable channel) and, when a completion
callback is supplied, the same task's settlement is forwarded to it as
``callback(error, None)`` or ``callback(None, result)``. An ``async``
callback is scheduled as its own task. Both observers are driven from
that single settlement, so they always see the same outcome.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Coroutine
from functools import partial, wraps
from typing import Any, TypeVar

T = TypeVar("T")

Callback = Callable[[BaseException | None, Any], Any]

_pending_callbacks: set[asyncio.Future] = set()


def settle(
    coro: Coroutine[Any, Any, T], callback: Callback | None = None
) -> asyncio.Task[T]:
    """Schedule ``coro`` and fan its outcome out to the task and ``callback``.

    Raises:
        RuntimeError: No event loop is running in this thread.
    """
    if callback is not None and not callable(callback):
        coro.close()
        raise TypeError("callback must be callable")
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        coro.close()
        raise RuntimeError(
            "botmaster send methods must be called from a running event loop"
        ) from None

    task = loop.create_task(coro)
    if callback is not None:
        task.add_done_callback(partial(_notify, callback))
    return task


def _notify(callback: Callback, task: asyncio.Task) -> None:
    if task.cancelled():
        outcome = callback(asyncio.CancelledError(), None)
    elif task.exception() is not None:
        outcome = callback(task.exception(), None)
    else:
        outcome = callback(None, task.result())

    # async callbacks run as their own task, held until they finish
    if inspect.isawaitable(outcome):
        pending = asyncio.ensure_future(outcome)
        _pending_callbacks.add(pending)
        pending.add_done_callback(_pending_callbacks.discard)


def dual_channel(
    method: Callable[..., Coroutine[Any, Any, T]],
) -> Callable[..., asyncio.Task[T]]:
    """Turn an ``async`` send method into one returning a settled task.

    The wrapped method gains a keyword-only ``callback`` argument.
    """

    @wraps(method)
    def wrapper(self, *args: Any, callback: Callback | None = None, **kwargs: Any):
        return settle(method(self, *args, **kwargs), callback)

    return wrapper
