"""
Domain models: materialized users, messages and reactions, and the derived
state published to the presentation layer.
"""

from typing import Optional

from pydantic import BaseModel

from chatsync.models.identity import IdentityState, Unknown


class User(BaseModel):
    id: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None

    model_config = {"frozen": True}


class Reaction(BaseModel):
    id: str
    emoji: str
    author_id: str
    created_at: int
    author: Optional[User] = None
    is_self: bool = False

    model_config = {"frozen": True}


class Message(BaseModel):
    """A chat message.

    `is_self` is derived from `author_id` and the current identity. It is only
    ever written by materialization and by the reconciler.
    """
    id: str
    text: str
    author_id: str
    created_at: int
    reactions: tuple[Reaction, ...] = ()
    author: Optional[User] = None
    is_self: bool = False

    model_config = {"frozen": True}

    @property
    def author_name(self) -> Optional[str]:
        return self.author.display_name if self.author else None


class SyncStatus:
    IDLE = "idle"
    LOADING = "loading"
    LIVE = "live"
    FAILED = "failed"
    STOPPED = "stopped"


class ChatState(BaseModel):
    """Derived state: identity plus the newest-first message list."""
    identity: IdentityState = Unknown()
    messages: tuple[Message, ...] = ()
    status: str = SyncStatus.IDLE

    model_config = {"frozen": True}

    def message(self, message_id: str) -> Optional[Message]:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None
