"""
Stream merger: fold child events for users, messages and nested reactions
into the current snapshot.

All state is held in a MergeState owned by the caller and passed in
explicitly. The message list is newest-first: the baseline is installed in
reverse delivery order and live additions are spliced in at the front, so
existing entries never move.
"""

import logging
from typing import Any, Optional

from pydantic import BaseModel, ValidationError

from chatsync.cache import EntityCache
from chatsync.errors import MalformedRecord, StaleReference
from chatsync.models.chat import Message, Reaction, User
from chatsync.models.events import Collection
from chatsync.models.records import MessageRecord, ReactionRecord, UserRecord
from chatsync.reconciler import resolve_is_self

logger = logging.getLogger(__name__)

REACTIONS = "reactions"


class MergeState:
    __slots__ = ("messages", "seen", "users")

    def __init__(self) -> None:
        self.messages: list[Message] = []
        self.seen: set[str] = set()
        self.users: EntityCache[User] = EntityCache()

    def index_of(self, key: str) -> Optional[int]:
        for i, message in enumerate(self.messages):
            if message.id == key:
                return i
        return None


def _decode(model: type[BaseModel], collection: str, key: str, data: Any) -> Any:
    if not isinstance(data, dict):
        raise MalformedRecord(collection, key, reason=f"expected an object, got {type(data).__name__}")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedRecord(collection, key, reason=str(e))


def _require(collection: str, key: str, record: BaseModel, fields: tuple[str, ...]) -> None:
    missing = [name for name in fields if getattr(record, name) is None]
    if missing:
        raise MalformedRecord(collection, key, missing)


def decode_user(key: str, data: Any) -> User:
    record: UserRecord = _decode(UserRecord, Collection.USERS, key, data)
    return User(id=key, display_name=record.display_name, avatar_url=record.avatar_url)


def materialize_reaction(
    message_key: str, key: str, data: Any, users: EntityCache[User], user_id: Optional[str],
) -> Reaction:
    collection = f"{Collection.MESSAGES}/{message_key}/{REACTIONS}"
    record: ReactionRecord = _decode(ReactionRecord, collection, key, data)
    _require(collection, key, record, ("emoji", "author_id", "created_at"))
    return Reaction(
        id=key,
        emoji=record.emoji,
        author_id=record.author_id,
        created_at=record.created_at,
        author=users.get(record.author_id),
        is_self=resolve_is_self(record.author_id, user_id),
    )


def materialize_message(key: str, data: Any, users: EntityCache[User], user_id: Optional[str]) -> Message:
    """Resolve a raw message record into a Message.

    Author and is_self come from the cache and identity as of now. Nested
    reactions are resolved from the same record. A malformed reaction is
    skipped on its own and the message still materializes.
    """
    record: MessageRecord = _decode(MessageRecord, Collection.MESSAGES, key, data)
    _require(Collection.MESSAGES, key, record, ("text", "author_id", "created_at"))

    reactions: list[Reaction] = []
    for reaction_key, reaction_data in (record.reactions or {}).items():
        try:
            reactions.append(materialize_reaction(key, reaction_key, reaction_data, users, user_id))
        except MalformedRecord as e:
            logger.warning(f"Skipping reaction: {e}")

    return Message(
        id=key,
        text=record.text,
        author_id=record.author_id,
        created_at=record.created_at,
        reactions=tuple(reactions),
        author=users.get(record.author_id),
        is_self=resolve_is_self(record.author_id, user_id),
    )


def install_user_baseline(state: MergeState, snapshot: Optional[dict[str, Any]]) -> int:
    installed = 0
    for key, data in (snapshot or {}).items():
        try:
            state.users.upsert(key, decode_user(key, data))
            installed += 1
        except MalformedRecord as e:
            logger.warning(f"Skipping user in baseline: {e}")
    return installed


def install_message_baseline(
    state: MergeState, snapshot: Optional[dict[str, Any]], user_id: Optional[str],
) -> int:
    """Replace the message list with the baseline snapshot.

    Every baseline key seeds the dedup set, including keys whose record was
    malformed, so a listener replay of the same record is ignored.
    """
    snapshot = snapshot or {}
    state.seen.update(snapshot.keys())
    materialized: list[Message] = []
    for key, data in snapshot.items():
        try:
            materialized.append(materialize_message(key, data, state.users, user_id))
        except MalformedRecord as e:
            logger.warning(f"Skipping message in baseline: {e}")
    materialized.reverse()
    state.messages = materialized
    return len(materialized)


def apply_message_added(state: MergeState, key: str, data: Any, user_id: Optional[str]) -> bool:
    """Splice a new message at the newest end. First arrival wins for a key."""
    if key in state.seen:
        return False
    message = materialize_message(key, data, state.users, user_id)
    state.seen.add(key)
    state.messages.insert(0, message)
    return True


def apply_message_changed(state: MergeState, key: str, data: Any, user_id: Optional[str]) -> Message:
    """Whole-record replace of the entry with `key`, in place."""
    index = state.index_of(key)
    if index is None:
        raise StaleReference(Collection.MESSAGES, key)
    message = materialize_message(key, data, state.users, user_id)
    state.messages[index] = message
    return message


def remove_message(state: MergeState, key: str) -> bool:
    """Drop a message from the list.

    The key stays in the dedup set so a replayed Added cannot bring it back.
    Only used when the engine is configured to apply removals.
    """
    index = state.index_of(key)
    if index is None:
        return False
    del state.messages[index]
    return True


def apply_user_added(state: MergeState, key: str, data: Any) -> Optional[User]:
    if key in state.users:
        return None
    user = decode_user(key, data)
    state.users.upsert(key, user)
    return user


def apply_user_changed(state: MergeState, key: str, data: Any) -> User:
    user = decode_user(key, data)
    state.users.upsert(key, user)
    return user


def rebind_author(messages: list[Message], user: User) -> list[Message]:
    """Point every message and reaction written by `user` at its new record."""
    rebound: list[Message] = []
    for message in messages:
        update: dict[str, Any] = {}
        if message.author_id == user.id and message.author != user:
            update["author"] = user
        if any(r.author_id == user.id and r.author != user for r in message.reactions):
            update["reactions"] = tuple(
                r.model_copy(update={"author": user}) if r.author_id == user.id else r
                for r in message.reactions
            )
        rebound.append(message.model_copy(update=update) if update else message)
    return rebound
