"""
Remote backing store: REST for reads and writes, Socket.IO for live events.

Baseline reads and writes go over HttpClient (GET/POST/PUT/DELETE on
/api/db/<path>). After a `db:subscribe` emit, the server streams
child_added/child_changed/child_removed/child_moved envelopes for the
collection over SocketIOManager.
"""

from typing import Any, Optional

from chatsync.errors import StoreError
from chatsync.models.events import RealtimeEvent
from chatsync.store.base import BackingStore, Subscription, split_path
from chatsync.transport.envelope import parse_child_event
from chatsync.transport.http import HttpClient
from chatsync.transport.socketio import SocketIOManager


def _db_path(path: str) -> str:
    return "/db/" + "/".join(split_path(path))


class RealtimeStore(BackingStore):
    def __init__(self, http: HttpClient, sio: SocketIOManager):
        self._http = http
        self._sio = sio

    async def fetch(self, collection: str) -> dict[str, Any]:
        data = await self._http.get(_db_path(collection))
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise StoreError(f"Expected an object for {collection!r}, got {type(data).__name__}")
        return data

    def listen(self, collection: str) -> Subscription:
        def handler(event: str, raw: Any) -> None:
            child_event = parse_child_event(event, raw)
            if child_event is not None and child_event.collection == collection:
                subscription.put(child_event)

        def detach() -> None:
            remove_handler()
            if self._sio.connected:
                self._sio.emit(RealtimeEvent.UNSUBSCRIBE, {"collection": collection})

        subscription = Subscription(collection, on_close=detach)
        remove_handler = self._sio.add_event_handler(handler)
        try:
            self._sio.emit(RealtimeEvent.SUBSCRIBE, {"collection": collection})
        except Exception:
            remove_handler()
            raise
        return subscription

    async def push(self, path: str, value: dict[str, Any]) -> str:
        result: Optional[dict[str, Any]] = await self._http.post(_db_path(path), value)
        if not result or "name" not in result:
            raise StoreError(f"Push to {path!r} returned no key")
        return result["name"]

    async def set(self, path: str, value: dict[str, Any]) -> None:
        await self._http.put(_db_path(path), value)

    async def remove(self, path: str) -> None:
        await self._http.delete(_db_path(path))
