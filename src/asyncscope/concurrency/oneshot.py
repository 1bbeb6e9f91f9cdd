"""
Single-use channel for handing one value from a producer to a consumer.

The producer side is best-effort: sending after the consumer went away is
silently discarded. The consumer side fails with Canceled when the producer
is closed without ever sending.
"""

from __future__ import annotations

import asyncio
from collections.abc import Generator
from typing import Any, Generic, TypeVar

T = TypeVar("T")

_EMPTY: Any = object()


class Canceled(Exception):
    """Raised by a receiver whose sender was closed without sending a value."""

    def __init__(self, message: str = "oneshot sender closed without sending"):
        self.message = message
        super().__init__(self.message)


class _Slot(Generic[T]):
    __slots__ = ("value", "sender_closed", "receiver_closed", "waiter")

    def __init__(self) -> None:
        self.value: T = _EMPTY
        self.sender_closed = False
        self.receiver_closed = False
        self.waiter: asyncio.Future[None] | None = None

    def notify(self) -> None:
        if self.waiter is not None and not self.waiter.done():
            self.waiter.set_result(None)


class Sender(Generic[T]):
    """Producer end of a oneshot channel."""

    def __init__(self, slot: _Slot[T]) -> None:
        self._slot = slot

    @property
    def closed(self) -> bool:
        """Return True once a value was sent or the sender was closed."""
        return self._slot.sender_closed

    @property
    def receiver_closed(self) -> bool:
        """Return True if nobody will ever receive from this channel."""
        slot = self._slot
        return slot.receiver_closed or (slot.waiter is not None and slot.waiter.cancelled())

    def send(self, value: T) -> bool:
        """
        Deliver the value to the receiver.

        Args:
            value: The value to hand over.

        Returns:
            True if the value was stored, False if the receiver is already gone.

        Raises:
            RuntimeError: If the sender was already used or closed.
        """
        slot = self._slot
        if slot.sender_closed:
            raise RuntimeError("oneshot sender already used")
        slot.sender_closed = True
        if self.receiver_closed:
            return False
        slot.value = value
        slot.notify()
        return True

    def close(self) -> None:
        """Drop the sender. A receiver still waiting fails with Canceled."""
        slot = self._slot
        if slot.sender_closed:
            return
        slot.sender_closed = True
        slot.notify()


class Receiver(Generic[T]):
    """Consumer end of a oneshot channel. Can be awaited exactly once."""

    def __init__(self, slot: _Slot[T]) -> None:
        self._slot = slot
        self._consumed = False

    @property
    def ready(self) -> bool:
        """Return True if a receive would complete without suspending."""
        return self._slot.sender_closed

    @property
    def closed(self) -> bool:
        return self._slot.receiver_closed

    def close(self) -> None:
        """Signal that the value is no longer wanted."""
        self._slot.receiver_closed = True

    async def recv(self) -> T:
        """
        Wait for the value.

        Returns:
            The value handed to Sender.send().

        Raises:
            Canceled: If the sender was closed without sending.
            RuntimeError: If the value was already received.
        """
        if self._consumed:
            raise RuntimeError("oneshot receiver already consumed")
        if self._slot.receiver_closed:
            raise RuntimeError("oneshot receiver is closed")
        self._consumed = True

        slot = self._slot
        if not slot.sender_closed:
            slot.waiter = asyncio.get_running_loop().create_future()
            try:
                await slot.waiter
            except BaseException:
                # cancelled or closed while waiting: nobody reads the value now
                self.close()
                raise
            finally:
                slot.waiter = None

        value, slot.value = slot.value, _EMPTY
        if value is _EMPTY:
            raise Canceled()
        return value

    def __await__(self) -> Generator[Any, None, T]:
        return self.recv().__await__()


def channel() -> tuple[Sender[T], Receiver[T]]:
    """
    Create a connected sender/receiver pair.

    Example:
        tx, rx = channel()
        tx.send(42)
        assert await rx == 42
    """
    slot: _Slot[T] = _Slot()
    return Sender(slot), Receiver(slot)


__all__ = [
    "Canceled",
    "Receiver",
    "Sender",
    "channel",
]
