from __future__ import annotations

from collections.abc import Generator
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from asyncscope.concurrency.faults import AbandonedResultError
from asyncscope.concurrency.oneshot import Canceled, Receiver

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """What a spawned task produced: a value or the exception it raised."""

    value: T | None = None
    error: BaseException | None = None

    @classmethod
    def success(cls, value: T) -> Outcome[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: BaseException) -> Outcome[T]:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, or re-raise the exception the task raised."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


class Spawned(Generic[T]):
    """
    Handle to the eventual result of a task spawned into a Scope.

    Awaiting the handle suspends until the task has been polled to
    completion, then returns its value or re-raises its exception. The
    handle may be awaited once. Dropping it does not affect the task.

    If the task is abandoned before delivering its result (the scope was
    cleared while someone still waited on it), awaiting raises
    AbandonedResultError.
    """

    def __init__(self, receiver: Receiver[Outcome[T]]) -> None:
        self._receiver = receiver

    def done(self) -> bool:
        """Return True if the task's result has been delivered or abandoned."""
        return self._receiver.ready

    def close(self) -> None:
        """Give up interest in the result. The task itself keeps running."""
        self._receiver.close()

    async def result(self) -> T:
        try:
            outcome = await self._receiver
        except Canceled as e:
            raise AbandonedResultError() from e
        return outcome.unwrap()

    def __await__(self) -> Generator[Any, None, T]:
        return self.result().__await__()

    def __repr__(self) -> str:
        state = "done" if self.done() else "pending"
        return f"<Spawned {state}>"


__all__ = ["Outcome", "Spawned"]
