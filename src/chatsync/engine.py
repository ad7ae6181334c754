"""
Sync engine: keeps a locally consistent, newest-first view of messages,
reactions and authors.

Startup:
1. Fetch the users baseline, install it, attach the users listener.
2. Fetch the messages baseline (reactions inline), install it, attach the
   messages listener.

Step 2 starts only after step 1 completes, so author lookups during message
materialization never see an empty cache. The identity stream is consumed
concurrently. Each time the SignedIn boundary is crossed, the list is
reconciled.

All mutation happens in this object's handlers on one event loop. Callers
read `observe_state()` and invoke `send_message()` / `toggle_reaction()`.
Neither command raises. Failures are logged, and the view degrades to whatever
has been loaded.
"""

import asyncio
import logging
import time
from typing import Any, AsyncGenerator, Awaitable, Callable, Optional

from chatsync.errors import (
    MalformedRecord, StaleReference, TransientFetchFailure, UnauthorizedCommand,
)
from chatsync.flow import StateStream
from chatsync.identity import IdentityManager
from chatsync.merger import (
    MergeState,
    apply_message_added,
    apply_message_changed,
    apply_user_added,
    apply_user_changed,
    install_message_baseline,
    install_user_baseline,
    rebind_author,
    remove_message,
)
from chatsync.models.chat import ChatState, Message, SyncStatus
from chatsync.models.events import ChildEvent, ChildEventKind, Collection
from chatsync.models.identity import IdentityState, current_user_id
from chatsync.models.records import MessageRecord, ReactionRecord, to_wire
from chatsync.reconciler import needs_reconcile, reconcile
from chatsync.store.base import BackingStore, Subscription

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Client clock in epoch milliseconds. Used as createdAt, so skewed
    sender clocks show up as skewed timestamps."""
    return int(time.time() * 1000)


class SyncEngine:
    def __init__(self, store: BackingStore, identity: IdentityManager, apply_removals: bool = False):
        self._store = store
        self._identity = identity
        self._apply_removals = apply_removals
        self._merge = MergeState()
        self._identity_state: IdentityState = identity.state
        self._state: StateStream[ChatState] = StateStream(ChatState(identity=self._identity_state))
        self._tasks: list[asyncio.Task] = []
        self._subscriptions: list[Subscription] = []
        self._writes: set[asyncio.Task] = set()
        self._started = False
        self._stopped = False

    @property
    def state(self) -> ChatState:
        return self._state.value

    def observe_state(self) -> AsyncGenerator[ChatState, None]:
        """Live derived state. Yields the current value, then each change."""
        return self._state.subscribe()

    # ---- lifecycle ----

    async def start(self) -> None:
        """Load both baselines and attach listeners. Returns once the
        messages baseline is installed, or once loading has failed. A stopped
        engine stays stopped."""
        if self._started or self._stopped:
            return
        self._started = True
        self._identity_state = self._identity.state
        self._spawn(self._watch_identity(), "identity")
        await self._load()

    async def stop(self) -> None:
        """Detach every listener. Idempotent. Pending writes still run."""
        if self._stopped:
            return
        self._stopped = True
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.close()
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._publish(SyncStatus.STOPPED)

    async def flush(self) -> None:
        """Wait for pending fire-and-forget writes. Does not wait for echoes."""
        while self._writes:
            await asyncio.gather(*list(self._writes), return_exceptions=True)

    def _spawn(self, coro: Awaitable[Any], name: str) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        task.set_name(f"chatsync-{name}")
        self._tasks.append(task)

    async def _fetch(self, collection: str) -> dict[str, Any]:
        try:
            return await self._store.fetch(collection)
        except Exception as e:
            raise TransientFetchFailure(collection, e) from e

    async def _load(self) -> None:
        self._publish(SyncStatus.LOADING)
        try:
            users = await self._fetch(Collection.USERS)
            install_user_baseline(self._merge, users)
            if not self._stopped:
                self._attach(Collection.USERS, self._on_user_event)

            messages = await self._fetch(Collection.MESSAGES)
            count = install_message_baseline(self._merge, messages, current_user_id(self._identity_state))
        except TransientFetchFailure as e:
            logger.error(f"Baseline load failed, continuing with a partial view: {e}")
            self._publish(SyncStatus.STOPPED if self._stopped else SyncStatus.FAILED)
            return

        logger.debug(f"Installed baseline: {len(self._merge.users)} users, {count} messages")
        if self._stopped:
            self._publish(SyncStatus.STOPPED)
            return
        self._publish(SyncStatus.LIVE)
        self._attach(Collection.MESSAGES, self._on_message_event)

    # ---- event handling ----

    def _publish(self, status: Optional[str] = None) -> None:
        self._state.set(ChatState(
            identity=self._identity_state,
            messages=tuple(self._merge.messages),
            status=status or self._state.value.status,
        ))

    def _attach(self, collection: str, handler: Callable[[ChildEvent], bool]) -> None:
        try:
            subscription = self._store.listen(collection)
        except Exception as e:
            logger.error(f"Could not attach listener for {collection!r}: {e}")
            return
        self._subscriptions.append(subscription)
        self._spawn(self._consume(subscription, handler), collection)

    async def _consume(self, subscription: Subscription, handler: Callable[[ChildEvent], bool]) -> None:
        try:
            async for event in subscription:
                try:
                    changed = handler(event)
                except MalformedRecord as e:
                    logger.warning(f"Skipping record: {e}")
                    continue
                except StaleReference as e:
                    logger.debug(f"Ignoring {event.kind}: {e}")
                    continue
                if changed:
                    self._publish()
        except Exception as e:
            logger.error(f"Listener for {subscription.collection!r} ended: {e}")
        finally:
            subscription.close()

    def _on_message_event(self, event: ChildEvent) -> bool:
        user_id = current_user_id(self._identity_state)
        if event.kind == ChildEventKind.ADDED:
            return apply_message_added(self._merge, event.key, event.data, user_id)
        if event.kind == ChildEventKind.CHANGED:
            apply_message_changed(self._merge, event.key, event.data, user_id)
            return True
        if event.kind == ChildEventKind.REMOVED:
            if self._apply_removals:
                return remove_message(self._merge, event.key)
            logger.debug(f"Message {event.key!r} removed remotely; keeping local copy")
            return False
        if event.kind == ChildEventKind.MOVED:
            return False
        logger.warning(f"Unknown child event kind {event.kind!r} for {event.collection}")
        return False

    def _on_user_event(self, event: ChildEvent) -> bool:
        if event.kind == ChildEventKind.ADDED:
            user = apply_user_added(self._merge, event.key, event.data)
        elif event.kind == ChildEventKind.CHANGED:
            user = apply_user_changed(self._merge, event.key, event.data)
        else:
            # Users are never deleted in-session.
            return False
        if user is None:
            return False
        self._merge.messages = rebind_author(self._merge.messages, user)
        return True

    async def _watch_identity(self) -> None:
        async for state in self._identity.subscribe():
            self._on_identity(state)

    def _on_identity(self, state: IdentityState) -> None:
        previous, self._identity_state = self._identity_state, state
        if needs_reconcile(previous, state):
            self._merge.messages = reconcile(self._merge.messages, state)
        self._publish()

    # ---- commands ----

    def _require_user(self, command: str) -> str:
        user_id = current_user_id(self._identity.state)
        if user_id is None:
            raise UnauthorizedCommand(command)
        return user_id

    def _find_message(self, message_id: str) -> Message:
        index = self._merge.index_of(message_id)
        if index is None:
            raise StaleReference(Collection.MESSAGES, message_id)
        return self._merge.messages[index]

    def _schedule_write(self, description: str, coro: Awaitable[Any]) -> None:
        async def _do_write() -> None:
            try:
                await coro
            except Exception as e:
                logger.error(f"{description} failed: {e}")

        task = asyncio.get_running_loop().create_task(_do_write())
        self._writes.add(task)
        task.add_done_callback(self._writes.discard)

    def send_message(self, text: str) -> None:
        """Append a message authored by the current user. Fire-and-forget.

        The list is not updated locally. The message appears when the store
        echoes it back as a live Added event.
        """
        try:
            user_id = self._require_user("send_message")
        except UnauthorizedCommand as e:
            logger.debug(f"Ignoring command: {e}")
            return
        record = MessageRecord(text=text, author_id=user_id, created_at=now_ms())
        self._schedule_write(
            f"Send message to {Collection.MESSAGES}",
            self._store.push(Collection.MESSAGES, to_wire(record)),
        )

    def toggle_reaction(self, emoji: str, message_id: str) -> None:
        """Remove the current user's `emoji` reaction on the message, or add
        one if absent.

        Read-then-write without a transaction: concurrent toggles from two
        clients of the same user can both add.
        """
        try:
            user_id = self._require_user("toggle_reaction")
            message = self._find_message(message_id)
        except (UnauthorizedCommand, StaleReference) as e:
            logger.debug(f"Ignoring command: {e}")
            return

        reactions_path = f"{Collection.MESSAGES}/{message_id}/reactions"
        existing = next((r for r in message.reactions if r.author_id == user_id and r.emoji == emoji), None)
        if existing is not None:
            self._schedule_write(
                f"Remove reaction {existing.id}",
                self._store.remove(f"{reactions_path}/{existing.id}"),
            )
        else:
            record = ReactionRecord(emoji=emoji, author_id=user_id, created_at=now_ms())
            self._schedule_write(
                f"Add reaction to {message_id}",
                self._store.push(reactions_path, to_wire(record)),
            )
