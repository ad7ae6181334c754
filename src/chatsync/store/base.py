"""
Backing store interface.

A store is a tree of keyed collections. It offers one-shot reads of a whole
collection and a live stream of child events per collection. Writes go to
slash-separated paths such as "messages/<id>/reactions/<id>".
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from chatsync.models.events import ChildEvent


class Subscription:
    """Live child events for one collection.

    Attached as soon as it is created, so nothing delivered after listen()
    returns is missed. Iterate it with `async for`. close() detaches and is
    idempotent.
    """

    def __init__(self, collection: str, on_close: Optional[Callable[[], None]] = None):
        self.collection = collection
        self._queue: asyncio.Queue[Optional[ChildEvent]] = asyncio.Queue()
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, event: ChildEvent) -> None:
        if not self._closed:
            self._queue.put_nowait(event)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ChildEvent:
        if self._closed:
            raise StopAsyncIteration
        event = await self._queue.get()
        if event is None:
            raise StopAsyncIteration
        return event

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)
        if self._on_close is not None:
            self._on_close()


class BackingStore(ABC):
    @abstractmethod
    async def fetch(self, collection: str) -> dict[str, Any]:
        """One-shot read of every child of `collection`, keyed by id."""

    @abstractmethod
    def listen(self, collection: str) -> Subscription:
        """Attach a live listener for `collection`.

        Like most realtime databases, attaching may first replay an Added for
        each child that already exists.
        """

    @abstractmethod
    async def push(self, path: str, value: dict[str, Any]) -> str:
        """Append `value` under a store-generated key and return the key."""

    @abstractmethod
    async def set(self, path: str, value: dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def remove(self, path: str) -> None:
        pass


def split_path(path: str) -> list[str]:
    segments = [s for s in path.strip("/").split("/") if s]
    if not segments:
        raise ValueError(f"Invalid store path: {path!r}")
    return segments
