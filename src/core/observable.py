"""Push-based current-value streams."""
import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Unsubscribe = Callable[[], None]


class ValueStream(Generic[T]):
    """
    Holds a current value and pushes every change to subscribers.

    Subscribing replays the current value immediately, then delivers each
    published value in publish order. Callbacks run synchronously inside
    `publish`; a failing callback is logged and does not affect other subscribers.
    """

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._callbacks: list[Callable[[T], None]] = []
        self._queues: set[asyncio.Queue[T]] = set()

    @property
    def value(self) -> T:
        """Get the current value."""
        return self._value

    def publish(self, value: T) -> None:
        """Replace the current value and notify every subscriber."""
        self._value = value
        for callback in list(self._callbacks):
            self._notify(callback, value)
        for queue in self._queues:
            queue.put_nowait(value)

    def replace(self, value: T) -> None:
        """Replace the current value without notifying subscribers."""
        self._value = value

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        """
        Register a callback, replaying the current value first.

        Returns:
            A function that removes the callback. Calling it twice is harmless.
        """
        self._callbacks.append(callback)
        self._notify(callback, self._value)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    async def values(self) -> AsyncIterator[T]:
        """Iterate over the current value and every later change."""
        queue: asyncio.Queue[T] = asyncio.Queue()
        queue.put_nowait(self._value)
        self._queues.add(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._queues.discard(queue)

    @staticmethod
    def _notify(callback: Callable[[T], None], value: T) -> None:
        try:
            callback(value)
        except Exception:
            logger.exception("value_stream_subscriber_failed")
