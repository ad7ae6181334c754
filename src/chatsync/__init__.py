"""
chatsync — realtime chat synchronization engine.

Keeps an ordered, locally consistent view of messages, reactions and authors
by merging child events from a hosted realtime database against the current
identity.
"""

from chatsync.client import AsyncChatClient
from chatsync.engine import SyncEngine
from chatsync.identity import IdentityManager
from chatsync.errors import (
    ChatSyncError,
    StoreError,
    ConnectionError,
    TransientFetchFailure,
    MalformedRecord,
    UnauthorizedCommand,
    StaleReference,
)
from chatsync.models.chat import ChatState, Message, Reaction, User, SyncStatus
from chatsync.models.events import ChildEvent, ChildEventKind, Collection
from chatsync.store.memory import MemoryStore

__version__ = "0.1.0"
__all__ = [
    "AsyncChatClient",
    "SyncEngine",
    "IdentityManager",
    "ChatSyncError",
    "StoreError",
    "ConnectionError",
    "TransientFetchFailure",
    "MalformedRecord",
    "UnauthorizedCommand",
    "StaleReference",
    "ChatState",
    "Message",
    "Reaction",
    "User",
    "SyncStatus",
    "ChildEvent",
    "ChildEventKind",
    "Collection",
    "MemoryStore",
]
