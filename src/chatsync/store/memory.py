"""
In-process backing store.

Mirrors realtime-database listener semantics: attaching a listener replays
Added for every existing child, a write to a top-level child surfaces as
Added/Changed/Removed, and a nested write (a reaction under a message)
surfaces as Changed of the top-level child carrying its full new value.
"""

import copy
import uuid
from typing import Any, Optional

from chatsync.models.events import ChildEvent
from chatsync.store.base import BackingStore, Subscription, split_path


class MemoryStore(BackingStore):
    def __init__(self, data: Optional[dict[str, dict[str, Any]]] = None):
        self._tree: dict[str, dict[str, Any]] = copy.deepcopy(data) if data else {}
        self._listeners: dict[str, list[Subscription]] = {}

    @staticmethod
    def generate_key() -> str:
        return uuid.uuid4().hex

    def snapshot(self, collection: str) -> dict[str, Any]:
        return copy.deepcopy(self._tree.get(collection, {}))

    def listener_count(self, collection: str) -> int:
        return len(self._listeners.get(collection, []))

    async def fetch(self, collection: str) -> dict[str, Any]:
        return self.snapshot(collection)

    def listen(self, collection: str) -> Subscription:
        subscriptions = self._listeners.setdefault(collection, [])

        def detach() -> None:
            if subscription in subscriptions:
                subscriptions.remove(subscription)

        subscription = Subscription(collection, on_close=detach)
        for key, value in self.snapshot(collection).items():
            subscription.put(ChildEvent.added(collection, key, value))
        subscriptions.append(subscription)
        return subscription

    def inject(self, event: ChildEvent) -> None:
        """Deliver `event` to live listeners without touching stored data."""
        for subscription in list(self._listeners.get(event.collection, [])):
            subscription.put(event)

    async def push(self, path: str, value: dict[str, Any]) -> str:
        key = self.generate_key()
        self._write(split_path(path) + [key], value)
        return key

    async def set(self, path: str, value: dict[str, Any]) -> None:
        self._write(split_path(path), value)

    async def remove(self, path: str) -> None:
        self._write(split_path(path), None)

    def _write(self, segments: list[str], value: Optional[dict[str, Any]]) -> None:
        if len(segments) < 2:
            raise ValueError(f"Cannot write a whole collection: {'/'.join(segments)!r}")
        collection, key = segments[0], segments[1]
        children = self._tree.setdefault(collection, {})
        existed = key in children
        if value is None and not existed:
            return

        if len(segments) == 2:
            if value is None:
                children.pop(key, None)
            else:
                children[key] = copy.deepcopy(value)
        else:
            node = children.setdefault(key, {})
            for segment in segments[2:-1]:
                node = node.setdefault(segment, {})
            if value is None:
                node.pop(segments[-1], None)
            else:
                node[segments[-1]] = copy.deepcopy(value)

        if key not in children:
            if existed:
                self.inject(ChildEvent.removed(collection, key))
        elif existed:
            self.inject(ChildEvent.changed(collection, key, copy.deepcopy(children[key])))
        else:
            self.inject(ChildEvent.added(collection, key, copy.deepcopy(children[key])))
