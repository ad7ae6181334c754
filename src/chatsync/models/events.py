"""
Child events: normalized incremental notifications for a keyed collection.
"""

from typing import Any, Optional

from pydantic import BaseModel


class Collection:
    USERS = "users"
    MESSAGES = "messages"


class ChildEventKind:
    ADDED = "child_added"
    CHANGED = "child_changed"
    REMOVED = "child_removed"
    MOVED = "child_moved"


CHILD_EVENT_KINDS = {
    ChildEventKind.ADDED,
    ChildEventKind.CHANGED,
    ChildEventKind.REMOVED,
    ChildEventKind.MOVED,
}


class RealtimeEvent:
    """Socket.IO event names used by the realtime store."""
    READY = "ready"
    SUBSCRIBE = "db:subscribe"
    UNSUBSCRIBE = "db:unsubscribe"


class ChildEvent:
    __slots__ = ("kind", "collection", "key", "data")

    def __init__(self, kind: str, collection: str, key: str, data: Any = None):
        self.kind = kind
        self.collection = collection
        self.key = key
        self.data = data

    @classmethod
    def added(cls, collection: str, key: str, data: Any) -> "ChildEvent":
        return cls(ChildEventKind.ADDED, collection, key, data)

    @classmethod
    def changed(cls, collection: str, key: str, data: Any) -> "ChildEvent":
        return cls(ChildEventKind.CHANGED, collection, key, data)

    @classmethod
    def removed(cls, collection: str, key: str) -> "ChildEvent":
        return cls(ChildEventKind.REMOVED, collection, key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ChildEvent):
            return NotImplemented
        return (self.kind, self.collection, self.key, self.data) == (
            other.kind, other.collection, other.key, other.data,
        )

    def __repr__(self) -> str:
        return f"ChildEvent(kind={self.kind!r}, collection={self.collection!r}, key={self.key!r})"


class ChildEventPayload(BaseModel):
    collection: str
    key: str
    data: Optional[Any] = None


class ChildEventEnvelope(BaseModel):
    """S2C realtime envelope: {event_id, timestamp, payload}"""
    event_id: Optional[str] = None
    timestamp: Optional[str] = None
    payload: ChildEventPayload
