"""
Structured concurrency scope.

A Scope owns every coroutine spawned into it and an optional termination
value. Spawned work may reference anything that outlives the scope; none of
it outlives the scope, because the scope is cleared before it is torn down.

Each spawned coroutine runs as an asyncio task, but its result only reaches
its handle when the scope is polled. A driver (see scope_body) calls
``poll_step_all`` repeatedly while the enclosing body runs, and acts on the
result:

- PENDING: nothing can make progress; wait until the context is woken.
- TERMINATED: ``terminate`` was called; clear the scope and finish with the
  termination value.
- QUIESCENT: no spawned work is outstanding right now.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import functools
from collections.abc import Awaitable, Coroutine
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from asyncscope.concurrency.faults import MutationGuard, ScopeMisuseError
from asyncscope.concurrency.oneshot import Sender, channel
from asyncscope.concurrency.spawned import Outcome, Spawned
from asyncscope.concurrency.task_registry import Context, RegistryPoll, TaskRegistry
from asyncscope.config.environment import Environment
from asyncscope.config.logging_config import get_logger

log = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

_UNSET: Any = object()


class PollState(enum.Enum):
    PENDING = "pending"
    TERMINATED = "terminated"
    QUIESCENT = "quiescent"


@dataclass(frozen=True)
class ScopePoll(Generic[R]):
    """Result of Scope.poll_step_all. ``value`` is only set when terminated."""

    state: PollState
    value: R | None = None

    @classmethod
    def terminated(cls, value: R) -> ScopePoll[R]:
        return cls(PollState.TERMINATED, value)

    @property
    def is_pending(self) -> bool:
        return self.state is PollState.PENDING

    @property
    def is_terminated(self) -> bool:
        return self.state is PollState.TERMINATED

    @property
    def is_quiescent(self) -> bool:
        return self.state is PollState.QUIESCENT


PENDING: ScopePoll[Any] = ScopePoll(PollState.PENDING)
QUIESCENT: ScopePoll[Any] = ScopePoll(PollState.QUIESCENT)


def _deliver(sender: Sender[Outcome[T]], task: asyncio.Task[T]) -> None:
    if task.cancelled():
        log.debug(f"Spawned task {task.get_name()} was cancelled")
        sender.send(Outcome.failure(asyncio.CancelledError()))
        return
    error = task.exception()
    if error is None:
        sender.send(Outcome.success(task.result()))
    elif isinstance(error, (Exception, asyncio.CancelledError)):
        log.debug(f"Spawned task {task.get_name()} raised {error!r}")
        sender.send(Outcome.failure(error))
    else:
        # faults are not task outcomes; they end the poll
        raise error


async def _as_coroutine(awaitable: Awaitable[T]) -> T:
    return await awaitable


def ensure_coroutine(awaitable: Awaitable[T]) -> Coroutine[Any, Any, T]:
    if inspect.iscoroutine(awaitable):
        return awaitable
    return _as_coroutine(awaitable)


async def _suspend_forever() -> None:
    await asyncio.get_running_loop().create_future()


class Scope(Generic[R]):
    """
    Coordinator for a set of interleaved coroutines with early termination.

    Example:
        async def body(scope: Scope[str]) -> str:
            a = scope.spawn(fetch("a"))
            b = scope.spawn(fetch("b"))
            if not await a:
                await scope.terminate("missing a")
            return await b

        result = await async_scope(body)
    """

    def __init__(self, *, poll_budget: int | None = None) -> None:
        if poll_budget is None:
            poll_budget = Environment.get_poll_budget()
        if poll_budget < 1:
            raise ValueError(f"poll_budget must be >= 1, got {poll_budget}")
        self._poll_budget = poll_budget
        self._pending = TaskRegistry()
        self._termination: Any = _UNSET
        self._terminated = False
        self._guard = MutationGuard("scope")

    @property
    def pending_count(self) -> int:
        """Number of spawned tasks that have not completed yet."""
        return len(self._pending)

    @property
    def is_terminated(self) -> bool:
        """Return True once ``terminate`` has been called."""
        return self._terminated

    def spawn(self, task: Awaitable[T]) -> Spawned[T]:
        """
        Spawn a task that runs interleaved with everything else in the scope.

        The scope does not finish until the task completes or the scope is
        terminated.

        Args:
            task: An awaitable, typically a coroutine object.

        Returns:
            A handle that resolves to the task's result.

        Raises:
            TypeError: If ``task`` is not awaitable.
        """
        if not inspect.isawaitable(task):
            raise TypeError(f"spawn() expects an awaitable, got {type(task).__name__}")
        self._guard.check_thread()

        sender, receiver = channel()
        self._pending.push(
            ensure_coroutine(task),
            on_done=functools.partial(_deliver, sender),
            on_drop=sender.close,
        )
        log.debug(f"Spawned {task!r} ({len(self._pending)} pending)")
        return Spawned(receiver)

    def terminate(self, value: R) -> Spawned[Any]:
        """
        Terminate the scope with ``value`` as its final result.

        The next poll reports the termination before any further task result
        is delivered, and the driver then cancels every pending task. Only
        the first call has an effect; later calls keep the first value.

        Returns:
            A handle that never resolves. Awaiting it makes the caller stop
            at that point, since the scope is torn down before it could.
        """
        with self._guard:
            first = not self._terminated
            if first:
                self._terminated = True
                self._termination = value

        if first:
            log.debug(f"Scope terminated with {value!r}")
            self._pending.wake()
        return self.spawn(_suspend_forever())

    def poll_step_all(self, context: Context) -> ScopePoll[R]:
        """
        Deliver finished task results until none is left or the scope ends.

        Termination is checked before the registry is touched and again after
        every delivered result, so it always wins over ordinary completions.
        After ``poll_budget`` deliveries the context is woken and PENDING is
        returned, giving the event loop a turn.

        Raises:
            ScopeMisuseError: If called again after returning TERMINATED.
        """
        for _ in range(self._poll_budget):
            with self._guard:
                if self._termination is not _UNSET:
                    value, self._termination = self._termination, _UNSET
                    return ScopePoll.terminated(value)
                if self._terminated:
                    raise ScopeMisuseError("scope polled after it was terminated")

            step = self._pending.poll_step(context)
            if step is RegistryPoll.PENDING:
                return PENDING
            if step is RegistryPoll.EMPTY:
                return QUIESCENT

        context.wake()
        return PENDING

    def clear(self) -> None:
        """
        Drop all pending tasks. Safe to call repeatedly.

        Their handles fail with AbandonedResultError; running tasks are
        cancelled and never deliver a result, whatever their cleanup does.
        """
        self._pending.clear()

    async def wait_cleared(self) -> None:
        """Wait for the tasks cancelled by ``clear`` to finish unwinding."""
        await self._pending.wait_cleared()

    def __repr__(self) -> str:
        state = "terminated" if self._terminated else "active"
        return f"<Scope {state} pending={len(self._pending)}>"


__all__ = [
    "PENDING",
    "QUIESCENT",
    "PollState",
    "Scope",
    "ScopePoll",
    "ensure_coroutine",
]
