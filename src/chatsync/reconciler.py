"""
Reconciler: recompute self/other authorship after an identity transition.

Pure functions: they take the message list and identity and return a new
list. Nothing here touches engine state.
"""

from typing import Optional, Sequence

from chatsync.models.chat import Message, Reaction
from chatsync.models.identity import IdentityState, current_user_id, is_signed_in


def resolve_is_self(author_id: Optional[str], user_id: Optional[str]) -> bool:
    return user_id is not None and user_id == author_id


def needs_reconcile(previous: Optional[IdentityState], current: IdentityState) -> bool:
    """True only when crossing the SignedIn boundary, in either direction.

    Moves between two non-SignedIn phases (SigningIn -> SigningOut and the
    like) leave authorship unchanged and are skipped.
    """
    was_signed_in = previous is not None and is_signed_in(previous)
    return was_signed_in != is_signed_in(current)


def reconcile_reaction(reaction: Reaction, user_id: Optional[str]) -> Reaction:
    is_self = resolve_is_self(reaction.author_id, user_id)
    if reaction.is_self == is_self:
        return reaction
    return reaction.model_copy(update={"is_self": is_self})


def reconcile_message(message: Message, user_id: Optional[str]) -> Message:
    reactions = tuple(reconcile_reaction(r, user_id) for r in message.reactions)
    is_self = resolve_is_self(message.author_id, user_id)
    if is_self == message.is_self and reactions == message.reactions:
        return message
    return message.model_copy(update={"is_self": is_self, "reactions": reactions})


def reconcile(messages: Sequence[Message], identity: IdentityState) -> list[Message]:
    """Recompute `is_self` for every message and nested reaction."""
    user_id = current_user_id(identity)
    return [reconcile_message(m, user_id) for m in messages]
