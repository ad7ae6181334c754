"""
Identity manager: the process-wide authentication state.

Sign-in itself belongs to an external identity provider. This class records
the phases the provider moves through and publishes them as a stream. On
sign-in it also writes the user's profile into the shared user directory,
best effort.
"""

import logging
from typing import AsyncGenerator, Optional

from chatsync.flow import StateStream
from chatsync.models.events import Collection
from chatsync.models.identity import (
    IdentityState, SignedIn, SignedOut, SigningIn, SigningOut, Unknown,
)
from chatsync.models.records import UserRecord, to_wire
from chatsync.store.base import BackingStore

logger = logging.getLogger(__name__)


class IdentityManager:
    def __init__(self, store: Optional[BackingStore] = None):
        self._store = store
        self._state: StateStream[IdentityState] = StateStream(Unknown())

    @property
    def state(self) -> IdentityState:
        return self._state.value

    def subscribe(self) -> AsyncGenerator[IdentityState, None]:
        return self._state.subscribe()

    def set_state(self, state: IdentityState) -> None:
        self._state.set(state)

    def mark_signed_out(self) -> None:
        """Resolve the initial Unknown phase when the provider has no user."""
        self._state.set(SignedOut())

    def begin_sign_in(self) -> None:
        self._state.set(SigningIn())

    async def sign_in(
        self, user_id: str, display_name: Optional[str] = None, avatar_url: Optional[str] = None,
    ) -> None:
        self._state.set(SigningIn())
        if self._store is not None and (display_name is not None or avatar_url is not None):
            profile = UserRecord(display_name=display_name, avatar_url=avatar_url)
            try:
                await self._store.set(f"{Collection.USERS}/{user_id}", to_wire(profile))
            except Exception as e:
                logger.error(f"Profile write failed for {user_id}: {e}")
        self._state.set(SignedIn(user_id=user_id))

    def sign_out(self) -> None:
        self._state.set(SigningOut())
        self._state.set(SignedOut())
