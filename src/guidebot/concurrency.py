"""Helpers for awaiting external collaborators from the async pipelines."""
from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable

from starlette.concurrency import run_in_threadpool

from guidebot.errors import StepTimeout


async def _maybe_await(result: Any) -> Any:
    """Await result if it is awaitable."""

    if inspect.isawaitable(result):
        return await result
    return result


async def call_external(
    func: Callable[..., Any],
    *args: Any,
    timeout: float | None = None,
    **kwargs: Any,
) -> Any:
    """Run one external call as a suspension point.

    Coroutine functions are awaited directly; blocking callables run in the
    starlette thread pool so the event loop stays free. When *timeout* is set
    the call is bounded and expiry raises :class:`StepTimeout`.
    """

    async def _invoke() -> Any:
        if inspect.iscoroutinefunction(func):
            return await func(*args, **kwargs)
        result = await run_in_threadpool(func, *args, **kwargs)
        return await _maybe_await(result)

    if timeout is None:
        return await _invoke()

    try:
        return await asyncio.wait_for(_invoke(), timeout)
    except asyncio.TimeoutError as error:
        name = getattr(func, "__qualname__", repr(func))
        raise StepTimeout(f"{name} exceeded {timeout:.3f}s", cause=error) from error


__all__ = ["call_external"]
