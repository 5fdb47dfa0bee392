from __future__ import annotations

import asyncio
import threading
import time

import pytest

from guidebot.concurrency import call_external
from guidebot.errors import StepTimeout


def test_blocking_callables_run_off_the_event_loop() -> None:
    async def runner() -> tuple[int, bool]:
        loop_thread = threading.get_ident()

        def blocking(value: int) -> tuple[int, bool]:
            return value * 2, threading.get_ident() != loop_thread

        return await call_external(blocking, 21)

    assert asyncio.run(runner()) == (42, True)


def test_coroutine_functions_are_awaited() -> None:
    async def coroutine(value: str, *, suffix: str) -> str:
        await asyncio.sleep(0)
        return value + suffix

    assert asyncio.run(call_external(coroutine, "a", suffix="b")) == "ab"


def test_timeout_raises_step_timeout() -> None:
    async def slow() -> None:
        await asyncio.sleep(1)

    with pytest.raises(StepTimeout):
        asyncio.run(call_external(slow, timeout=0.01))


def test_blocking_call_within_timeout_succeeds() -> None:
    def quick() -> str:
        time.sleep(0.001)
        return "done"

    assert asyncio.run(call_external(quick, timeout=5)) == "done"
