"""
Socket.IO connection manager: the live child-event channel.

Connection: {base_url}/socket.io/ with auth={token}.
Waits for the `ready` event before resolving connect().
"""

import asyncio
import logging
from typing import Any, Callable, Optional

import socketio

from chatsync.errors import ConnectionError
from chatsync.models.events import RealtimeEvent
from chatsync.transport.envelope import build_envelope

SOCKETIO_PATH = "/socket.io/"

logger = logging.getLogger(__name__)


class SocketIOManager:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        transports: Optional[list[str]] = None,
        ready_timeout: float = 15.0,
        socketio_path: str = SOCKETIO_PATH,
    ):
        self._base_url = base_url
        self._token = token
        self._transports = transports or ["websocket"]
        self._ready_timeout = ready_timeout
        self._socketio_path = socketio_path
        self._sio: Optional[socketio.AsyncClient] = None
        self._connected = False
        self._event_handlers: list[Callable[[str, Any], None]] = []

    @property
    def connected(self) -> bool:
        return self._connected and self._sio is not None and self._sio.connected

    def add_event_handler(self, handler: Callable[[str, Any], None]) -> Callable[[], None]:
        """Add an event handler. Returns a cleanup function. Supports multiple concurrent handlers."""
        self._event_handlers.append(handler)
        def remove() -> None:
            try:
                self._event_handlers.remove(handler)
            except ValueError:
                pass
        return remove

    def dispatch(self, event: str, data: Any) -> None:
        for handler in list(self._event_handlers):
            handler(event, data)

    async def connect(self) -> None:
        """Connect and wait for the server's `ready` event."""
        if self._sio and self._sio.connected:
            return

        self._sio = socketio.AsyncClient()
        ready_event = asyncio.Event()

        @self._sio.event
        async def connect() -> None:
            pass

        @self._sio.on(RealtimeEvent.READY)
        async def on_ready(*_args: Any) -> None:
            self._connected = True
            ready_event.set()

        @self._sio.on("*")
        async def on_any(event: str, data: Any) -> None:
            if event in ("connect", "disconnect", "connect_error", RealtimeEvent.READY):
                return
            self.dispatch(event, data)

        @self._sio.event
        async def disconnect(_reason: str = "") -> None:
            self._connected = False

        await self._sio.connect(
            self._base_url,
            auth={"token": self._token} if self._token else None,
            transports=self._transports,
            socketio_path=self._socketio_path,
        )

        try:
            await asyncio.wait_for(ready_event.wait(), timeout=self._ready_timeout)
        except asyncio.TimeoutError:
            await self._sio.disconnect()
            raise ConnectionError(f"Timed out waiting for 'ready' event after {self._ready_timeout}s")

    def emit(self, event_type: str, data: Any) -> None:
        """Emit an event with envelope wrapping.

        Schedules the async emit on the running event loop. Errors are logged
        rather than silently swallowed.
        """
        if not self._sio or not self._sio.connected:
            raise ConnectionError("Socket.IO not connected")
        envelope = build_envelope(data)

        async def _do_emit() -> None:
            try:
                await self._sio.emit(event_type, envelope)  # type: ignore[union-attr]
            except Exception as e:
                logger.error(f"Emit failed for {event_type}: {e}")

        asyncio.get_running_loop().create_task(_do_emit())

    async def disconnect(self) -> None:
        self._connected = False
        if self._sio:
            await self._sio.disconnect()
            self._sio = None
