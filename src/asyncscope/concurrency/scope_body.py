"""
Driver that runs a scope body together with everything it spawns.

The body runs as its own asyncio task. The driver sleeps until the body or a
spawned task finishes, then polls the scope to hand out results, so a
termination is always seen before any later result is delivered.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from asyncscope.concurrency.scope import Scope, ensure_coroutine
from asyncscope.concurrency.task_registry import Context
from asyncscope.config.logging_config import get_logger

log = get_logger(__name__)

R = TypeVar("R")


class _Waker:
    """Parks the driver until the body or a spawned task can make progress."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._future: asyncio.Future[None] | None = None
        self._woken = False

    def wake(self, *_: Any) -> None:
        self._woken = True
        if self._future is not None and not self._future.done():
            self._future.set_result(None)

    async def wait(self) -> None:
        if self._woken:
            # still give the event loop a turn
            await asyncio.sleep(0)
        else:
            self._future = self._loop.create_future()
            try:
                await self._future
            finally:
                self._future = None
        self._woken = False


class ScopeBody(Generic[R]):
    """
    Runs ``body(scope)`` and drives the scope's spawned tasks alongside it.

    The result is the termination value if any task or the body called
    ``scope.terminate``; otherwise the body's own return value, once every
    spawned task has completed. If the body raises, pending tasks are
    abandoned and the exception propagates.

    Example:
        async def body(scope: Scope[int]) -> int:
            handles = [scope.spawn(compute(i)) for i in range(3)]
            return sum([await h for h in handles])

        total = await ScopeBody(body).run()
    """

    def __init__(
        self,
        body: Callable[[Scope[R]], Awaitable[R]],
        *,
        poll_budget: int | None = None,
    ) -> None:
        self._body = body
        self._poll_budget = poll_budget
        self._started = False

    async def run(self) -> R:
        if self._started:
            raise RuntimeError("ScopeBody can only run once")
        self._started = True

        loop = asyncio.get_running_loop()
        scope: Scope[R] = Scope(poll_budget=self._poll_budget)
        waker = _Waker(loop)
        context = Context(waker.wake)

        try:
            awaitable = self._body(scope)
        except BaseException:
            scope.clear()
            raise
        body = loop.create_task(ensure_coroutine(awaitable))
        body.add_done_callback(waker.wake)

        try:
            while True:
                poll = scope.poll_step_all(context)
                if poll.is_terminated:
                    log.debug(f"Scope finished by termination: {poll.value!r}")
                    return poll.value  # type: ignore[return-value]
                if body.done():
                    if body.cancelled() or body.exception() is not None:
                        return body.result()
                    if poll.is_quiescent:
                        log.debug("Scope body and all spawned tasks completed")
                        return body.result()

                await waker.wait()
        finally:
            if not body.done():
                body.cancel()
            scope.clear()
            await asyncio.gather(body, return_exceptions=True)
            await scope.wait_cleared()


async def async_scope(
    body: Callable[[Scope[R]], Awaitable[R]],
    *,
    poll_budget: int | None = None,
) -> R:
    """
    Run ``body`` inside a fresh scope and return the scope's result.

    Args:
        body: Callable receiving the Scope and returning an awaitable.
        poll_budget: Override for the number of task results delivered per
            scope poll before the driver yields to the event loop.

    Returns:
        The termination value if the scope was terminated, otherwise the
        body's return value.

    Example:
        result = await async_scope(lambda scope: search(scope, needle))
    """
    return await ScopeBody(body, poll_budget=poll_budget).run()


__all__ = ["ScopeBody", "async_scope"]
