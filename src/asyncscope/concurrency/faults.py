"""
Fatal faults raised by the scope machinery.

These signal broken usage of a scope rather than failures of the work
running inside it, so they derive from BaseException: an ordinary
``except Exception`` in user code will not swallow them.
"""

from __future__ import annotations

import threading


class ScopeFault(BaseException):
    """Base class for unrecoverable scope faults."""

    pass


class AbandonedResultError(ScopeFault):
    """Raised when a spawned task was dropped before it delivered its result."""

    def __init__(self, message: str = "spawned task was dropped before producing a result"):
        self.message = message
        super().__init__(self.message)


class ConcurrentMutationError(ScopeFault):
    """Raised when scope state is mutated from overlapping execution contexts."""

    pass


class ScopeMisuseError(ScopeFault):
    """Raised when a scope is driven in violation of its polling contract."""

    pass


class MutationGuard:
    """
    Single-writer guard for state that is only ever touched from one thread.

    Entering the guard while it is already held, or from a thread other than
    the one that created it, raises ConcurrentMutationError. Cooperative
    re-entrancy is fine as long as it happens between guarded sections:

        guard = MutationGuard("registry")

        with guard:
            items.append(item)
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._owner = threading.get_ident()
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def check_thread(self) -> None:
        """Raise ConcurrentMutationError if called off the owning thread."""
        ident = threading.get_ident()
        if ident != self._owner:
            raise ConcurrentMutationError(
                f"{self._name} is owned by thread {self._owner} but was accessed from thread {ident}"
            )

    def __enter__(self) -> MutationGuard:
        self.check_thread()
        if self._held:
            raise ConcurrentMutationError(f"{self._name} is already being mutated")
        self._held = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._held = False


__all__ = [
    "AbandonedResultError",
    "ConcurrentMutationError",
    "MutationGuard",
    "ScopeFault",
    "ScopeMisuseError",
]
