"""
StateStream: a value holder that pushes distinct changes to subscribers.

Each subscriber gets the current value first, then every later value that
differs from the one before it.
"""

import asyncio
from typing import Any, AsyncGenerator, Generic, TypeVar

T = TypeVar("T")


class StateStream(Generic[T]):
    def __init__(self, initial: T):
        self._value = initial
        self._queues: list[asyncio.Queue] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> bool:
        """Publish `value`. Returns False when it equals the current value."""
        if value == self._value:
            return False
        self._value = value
        for queue in list(self._queues):
            queue.put_nowait(value)
        return True

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)

    async def subscribe(self) -> AsyncGenerator[T, None]:
        queue: asyncio.Queue[Any] = asyncio.Queue()
        queue.put_nowait(self._value)
        self._queues.append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            try:
                self._queues.remove(queue)
            except ValueError:
                pass
