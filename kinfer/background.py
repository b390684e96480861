"""Supervision for the long-lived asyncio tasks behind the inference queue.

Tasks started through ``spawn`` stay referenced until they finish, failures
are logged with the task name, and ``running`` lets health checks see which
named tasks are still alive.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Set

logger = logging.getLogger(__name__)

_background_tasks: Set[asyncio.Task[Any]] = set()


def spawn(coro: Awaitable[Any], *, name: Optional[str] = None,
          on_error: Optional[Callable[[BaseException], None]] = None) -> asyncio.Task[Any]:
    """Start ``coro`` as a supervised task.

    ``on_error`` receives the exception of a task that dies; cancellation
    is a normal shutdown and only logged at debug level.
    """
    task = asyncio.create_task(coro, name=name)  # type: ignore[arg-type]
    _background_tasks.add(task)
    task.add_done_callback(lambda t: _reap(t, on_error))
    return task


def _reap(task: asyncio.Task[Any], on_error: Optional[Callable[[BaseException], None]]) -> None:
    _background_tasks.discard(task)
    label = task.get_name()
    if task.cancelled():
        logger.debug("Background task %s cancelled", label)
        return
    exc = task.exception()
    if exc is None:
        logger.debug("Background task %s finished", label)
        return
    if on_error:
        try:
            on_error(exc)
        except Exception:  # noqa: BLE001
            logger.exception("Error in on_error callback for task %s", label)
    logger.error("Background task %s died", label, exc_info=exc)


def running(prefix: str = "") -> List[str]:
    """Names of supervised tasks still alive, optionally filtered by name prefix."""
    return sorted(t.get_name() for t in _background_tasks if not t.done() and t.get_name().startswith(prefix))


__all__ = ["spawn", "running"]
