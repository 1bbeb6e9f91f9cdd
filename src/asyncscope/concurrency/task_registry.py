"""
Registry of pending coroutines, each run as its own asyncio task.

Coroutines are pushed unstarted and become tasks on the next poll. A task
that finishes is not reported right away: its completion is queued and
handed out one at a time by ``poll_step``, so the poller decides when (and
whether) a completion becomes visible.

Entries live in an arena of slots. Completion callbacks carry the slot index
and its generation, so a callback for an entry that was released or cleared
is dropped instead of touching whatever now occupies the slot.
"""

from __future__ import annotations

import asyncio
import enum
import functools
from collections import deque
from collections.abc import Callable, Coroutine
from typing import Any

from asyncscope.concurrency.faults import MutationGuard
from asyncscope.config.logging_config import get_logger

log = get_logger(__name__)


class Context:
    """Carries the waker a poller wants to be notified through."""

    def __init__(self, waker: Callable[[], None]) -> None:
        self._waker = waker

    def wake(self) -> None:
        self._waker()


class RegistryPoll(enum.Enum):
    """Result of a single TaskRegistry.poll_step call."""

    PENDING = "pending"
    ADVANCED = "advanced"
    EMPTY = "empty"


def _retrieve(task: asyncio.Task[Any]) -> None:
    # keeps "exception was never retrieved" out of the logs for abandoned tasks
    if not task.cancelled():
        task.exception()


class _Entry:
    __slots__ = ("coro", "task", "generation", "on_done", "on_drop")

    def __init__(
        self,
        coro: Coroutine[Any, Any, Any],
        generation: int,
        on_done: Callable[[asyncio.Task[Any]], None] | None,
        on_drop: Callable[[], None] | None,
    ) -> None:
        self.coro: Coroutine[Any, Any, Any] | None = coro
        self.task: asyncio.Task[Any] | None = None
        self.generation = generation
        self.on_done = on_done
        self.on_drop = on_drop

    def drop(self) -> None:
        on_drop, self.on_drop = self.on_drop, None
        self.on_done = None
        if on_drop is not None:
            on_drop()

    def abandon(self) -> asyncio.Task[Any] | None:
        """Stop the entry without letting it finish normally."""
        coro, self.coro = self.coro, None
        if coro is not None:
            coro.close()
            return None
        task = self.task
        if task is not None and not task.done():
            task.cancel()
        return task


class TaskRegistry:
    """
    An unordered, growable set of coroutines polled to completion.

    Coroutines may be pushed at any time, including from inside one of the
    registry's own running tasks. Completion order is whatever order the
    tasks finish in.

    After ``clear`` the registry is closed: it abandons everything it holds
    and drops anything pushed later.

    Example:
        registry = TaskRegistry()
        registry.push(do_work())

        cx = Context(event.set)
        while (step := registry.poll_step(cx)) is not RegistryPoll.EMPTY:
            if step is RegistryPoll.PENDING:
                await event.wait()
                event.clear()
    """

    def __init__(self) -> None:
        self._slots: list[_Entry | None] = []
        self._generations: list[int] = []
        self._free: list[int] = []
        self._unstarted: deque[tuple[int, int]] = deque()
        self._finished: deque[tuple[int, int]] = deque()
        self._live = 0
        self._closed = False
        self._context: Context | None = None
        self._cancelled: set[asyncio.Task[Any]] = set()
        self._guard = MutationGuard("task registry")

    def __len__(self) -> int:
        return self._live

    @property
    def closed(self) -> bool:
        return self._closed

    def push(
        self,
        coro: Coroutine[Any, Any, Any],
        *,
        on_done: Callable[[asyncio.Task[Any]], None] | None = None,
        on_drop: Callable[[], None] | None = None,
    ) -> None:
        """
        Add a coroutine to the registry. It starts on the next poll.

        Args:
            coro: The coroutine to run.
            on_done: Called with the finished task when ``poll_step`` reports
                its completion.
            on_drop: Called once when the entry leaves the registry, whether
                it completed or was cleared.
        """
        with self._guard:
            if not self._closed:
                if self._free:
                    index = self._free.pop()
                else:
                    index = len(self._slots)
                    self._slots.append(None)
                    self._generations.append(0)
                generation = self._generations[index]
                self._slots[index] = _Entry(coro, generation, on_done, on_drop)
                self._unstarted.append((index, generation))
                self._live += 1
            context = self._context

        if self._closed:
            log.debug(f"Dropping {coro!r} pushed after clear")
            coro.close()
            if on_drop is not None:
                on_drop()
            return
        if context is not None:
            context.wake()

    def wake(self) -> None:
        """Wake the most recent poller, if any."""
        self._guard.check_thread()
        if self._context is not None:
            self._context.wake()

    def poll_step(self, context: Context) -> RegistryPoll:
        """
        Start newly pushed coroutines and report at most one completion.

        Returns:
            ADVANCED when a finished task was handed to its ``on_done``,
            PENDING when none has finished yet (the context is woken once one
            does), EMPTY when the registry holds nothing.
        """
        self._guard.check_thread()
        self._context = context

        with self._guard:
            to_start = list(self._unstarted)
            self._unstarted.clear()
        if to_start:
            self._start(to_start)

        while True:
            with self._guard:
                if self._live == 0:
                    return RegistryPoll.EMPTY
                if not self._finished:
                    return RegistryPoll.PENDING
                index, generation = self._finished.popleft()
                entry = self._slots[index]
                if entry is None or entry.generation != generation:
                    continue
                self._release(index)

            assert entry.task is not None
            try:
                if entry.on_done is not None:
                    entry.on_done(entry.task)
                else:
                    _retrieve(entry.task)
            finally:
                entry.drop()
            return RegistryPoll.ADVANCED

    def clear(self) -> None:
        """
        Drop every entry and close the registry.

        Result hooks are dropped first, so nothing an abandoned task does
        afterwards is delivered anywhere. Unstarted coroutines are closed,
        running tasks are cancelled; ``wait_cleared`` waits for the latter.
        """
        with self._guard:
            self._closed = True
            entries = [entry for entry in self._slots if entry is not None]
            for index, entry in enumerate(self._slots):
                if entry is not None:
                    self._release(index)
            self._unstarted.clear()
            self._finished.clear()

        if entries:
            log.debug(f"Clearing {len(entries)} pending task(s)")
        for entry in entries:
            entry.drop()
            task = entry.abandon()
            if task is not None:
                self._cancelled.add(task)
                task.add_done_callback(_retrieve)

    async def wait_cleared(self) -> None:
        """Wait until every task cancelled by ``clear`` has unwound."""
        while self._cancelled:
            tasks = list(self._cancelled)
            self._cancelled.clear()
            await asyncio.gather(*tasks, return_exceptions=True)

    def _start(self, to_start: list[tuple[int, int]]) -> None:
        loop = asyncio.get_running_loop()
        for index, generation in to_start:
            entry = self._slots[index]
            if entry is None or entry.generation != generation or entry.coro is None:
                continue
            coro, entry.coro = entry.coro, None
            entry.task = loop.create_task(coro)
            entry.task.add_done_callback(functools.partial(self._on_task_done, index, generation))

    def _release(self, index: int) -> None:
        # caller holds the guard
        self._slots[index] = None
        self._generations[index] += 1
        self._free.append(index)
        self._live -= 1

    def _on_task_done(self, index: int, generation: int, task: asyncio.Task[Any]) -> None:
        with self._guard:
            entry = self._slots[index]
            if entry is None or entry.generation != generation:
                return
            self._finished.append((index, generation))
            context = self._context
        if context is not None:
            context.wake()


__all__ = [
    "Context",
    "RegistryPoll",
    "TaskRegistry",
]
