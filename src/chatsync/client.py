"""
AsyncChatClient — wires transports, store, identity and the sync engine.
"""

from typing import AsyncGenerator, Optional

from chatsync.engine import SyncEngine
from chatsync.errors import ConnectionError
from chatsync.identity import IdentityManager
from chatsync.models.chat import ChatState
from chatsync.store.base import BackingStore
from chatsync.store.realtime import RealtimeStore
from chatsync.transport.http import DEFAULT_BASE_URL, HttpClient
from chatsync.transport.socketio import SocketIOManager


class AsyncChatClient:
    """Async chat client.

    Pass `store` to run against something other than the remote database
    (e.g. a MemoryStore); connect() then skips the socket.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        transports: Optional[list[str]] = None,
        ready_timeout: float = 15.0,
        apply_removals: bool = False,
        store: Optional[BackingStore] = None,
    ):
        self._base_url = base_url
        self._access_token = access_token
        self._transports = transports
        self._ready_timeout = ready_timeout
        self._apply_removals = apply_removals

        self.http: Optional[HttpClient] = None
        self._sio: Optional[SocketIOManager] = None
        if store is None:
            self.http = HttpClient(base_url=base_url, token=access_token)
            self._sio = SocketIOManager(
                base_url=base_url,
                token=access_token,
                transports=transports,
                ready_timeout=ready_timeout,
            )
            store = RealtimeStore(self.http, self._sio)
        self.store = store
        self.identity = IdentityManager(store)
        self._engine: Optional[SyncEngine] = None

    @property
    def connected(self) -> bool:
        return self._sio is None or self._sio.connected

    @property
    def engine(self) -> SyncEngine:
        if self._engine is None:
            raise ConnectionError("Not started. Call start() first.")
        return self._engine

    async def connect(self) -> None:
        if self._sio is not None:
            await self._sio.connect()

    async def start(self) -> SyncEngine:
        """Connect if needed and load the baseline."""
        if self._engine is not None:
            return self._engine
        if not self.connected:
            await self.connect()
        self._engine = SyncEngine(self.store, self.identity, apply_removals=self._apply_removals)
        await self._engine.start()
        return self._engine

    async def sign_in(
        self, user_id: str, display_name: Optional[str] = None, avatar_url: Optional[str] = None,
    ) -> None:
        await self.identity.sign_in(user_id, display_name=display_name, avatar_url=avatar_url)

    def sign_out(self) -> None:
        self.identity.sign_out()

    def observe_state(self) -> AsyncGenerator[ChatState, None]:
        return self.engine.observe_state()

    def send_message(self, text: str) -> None:
        """Send a message (fire-and-forget)."""
        self.engine.send_message(text)

    def toggle_reaction(self, emoji: str, message_id: str) -> None:
        self.engine.toggle_reaction(emoji, message_id)

    async def flush(self) -> None:
        if self._engine is not None:
            await self._engine.flush()

    async def disconnect(self) -> None:
        if self._engine is not None:
            await self._engine.flush()
            await self._engine.stop()
            self._engine = None
        if self._sio is not None:
            await self._sio.disconnect()
        if self.http is not None:
            await self.http.close()
