"""Sync engine scenarios over an in-memory store."""

import asyncio

import pytest

from chatsync import ChildEvent, ChildEventKind, IdentityManager, MemoryStore, SyncEngine, SyncStatus
from chatsync.models.identity import SignedIn, SignedOut


class TestBaseline:
    @pytest.mark.asyncio
    async def test_authors_resolved_immediately_after_start(self, make_engine, seed):
        _, _, engine = make_engine(seed)
        await engine.start()

        state = engine.state
        assert state.status == SyncStatus.LIVE
        assert [m.id for m in state.messages] == ["m2", "m1"]
        assert all(m.author is not None for m in state.messages)
        assert state.message("m1").author_name == "Ann"
        assert state.message("m2").reactions[0].author.display_name == "Ann"
        await engine.stop()

    @pytest.mark.asyncio
    async def test_users_fetched_before_messages(self, seed):
        calls = []

        class RecordingStore(MemoryStore):
            async def fetch(self, collection):
                calls.append(collection)
                await asyncio.sleep(0)
                return await super().fetch(collection)

        identity = IdentityManager()
        identity.mark_signed_out()
        engine = SyncEngine(RecordingStore(seed), identity)
        await engine.start()
        assert calls == ["users", "messages"]
        await engine.stop()

    @pytest.mark.asyncio
    async def test_listener_replay_is_not_double_applied(self, make_engine, seed, wait_for):
        store, _, engine = make_engine(seed)
        await engine.start()
        await store.push("messages", {"text": "new", "authorId": "u2", "createdAt": 300})

        state = await wait_for(engine, lambda s: len(s.messages) == 3)
        assert state.messages[0].text == "new"
        assert [m.id for m in state.messages[1:]] == ["m2", "m1"]
        await engine.stop()

    @pytest.mark.asyncio
    async def test_fetch_failure_leaves_empty_view(self, seed):
        class FailingStore(MemoryStore):
            async def fetch(self, collection):
                if collection == "messages":
                    raise ConnectionResetError("network down")
                return await super().fetch(collection)

        store = FailingStore(seed)
        identity = IdentityManager()
        identity.mark_signed_out()
        engine = SyncEngine(store, identity)
        await engine.start()

        assert engine.state.status == SyncStatus.FAILED
        assert engine.state.messages == ()
        assert store.listener_count("messages") == 0
        await engine.stop()


class TestLiveEvents:
    @pytest.mark.asyncio
    async def test_changed_replaces_in_place(self, make_engine, seed, wait_for):
        store, _, engine = make_engine(seed)
        await engine.start()
        store.inject(ChildEvent.changed("messages", "m1", {"text": "edited", "authorId": "u1", "createdAt": 100}))

        state = await wait_for(engine, lambda s: s.message("m1").text == "edited")
        assert [m.id for m in state.messages] == ["m2", "m1"]
        await engine.stop()

    @pytest.mark.asyncio
    async def test_bad_events_do_not_stop_the_stream(self, make_engine, seed, wait_for):
        store, _, engine = make_engine(seed)
        await engine.start()
        store.inject(ChildEvent.added("messages", "bad", {"text": "no author"}))
        store.inject(ChildEvent.changed("messages", "ghost", {"text": "x", "authorId": "u1", "createdAt": 1}))
        store.inject(ChildEvent.added("messages", "m3", {"text": "ok", "authorId": "u1", "createdAt": 3}))

        state = await wait_for(engine, lambda s: s.message("m3") is not None)
        assert [m.id for m in state.messages] == ["m3", "m2", "m1"]
        await engine.stop()

    @pytest.mark.asyncio
    async def test_removal_is_ignored_by_default(self, make_engine, seed, wait_for):
        store, _, engine = make_engine(seed)
        await engine.start()
        await store.remove("messages/m1")
        await store.push("messages", {"text": "marker", "authorId": "u1", "createdAt": 5})

        state = await wait_for(engine, lambda s: len(s.messages) == 3)
        assert state.message("m1") is not None
        await engine.stop()

    @pytest.mark.asyncio
    async def test_removal_applied_when_enabled(self, make_engine, seed, wait_for):
        store, _, engine = make_engine(seed, apply_removals=True)
        await engine.start()
        await store.remove("messages/m1")

        state = await wait_for(engine, lambda s: s.message("m1") is None)
        assert [m.id for m in state.messages] == ["m2"]
        await engine.stop()

    @pytest.mark.asyncio
    async def test_moved_leaves_order_untouched(self, make_engine, seed, wait_for):
        store, _, engine = make_engine(seed)
        await engine.start()
        store.inject(ChildEvent(ChildEventKind.MOVED, "messages", "m1", {"text": "hi", "authorId": "u1", "createdAt": 100}))
        await store.push("messages", {"text": "marker", "authorId": "u2", "createdAt": 300})

        state = await wait_for(engine, lambda s: len(s.messages) == 3)
        assert [m.id for m in state.messages[1:]] == ["m2", "m1"]
        await engine.stop()

    @pytest.mark.asyncio
    async def test_removed_key_stays_gone_when_added_again(self, make_engine, seed, wait_for):
        store, _, engine = make_engine(seed, apply_removals=True)
        await engine.start()
        await store.remove("messages/m1")
        await wait_for(engine, lambda s: s.message("m1") is None)

        store.inject(ChildEvent.added("messages", "m1", {"text": "hi", "authorId": "u1", "createdAt": 100}))
        await store.push("messages", {"text": "marker", "authorId": "u2", "createdAt": 300})

        state = await wait_for(engine, lambda s: len(s.messages) == 2)
        assert state.message("m1") is None
        assert [m.text for m in state.messages] == ["marker", "hello Ann"]
        await engine.stop()

    @pytest.mark.asyncio
    async def test_user_change_refreshes_authors(self, make_engine, seed, wait_for):
        store, _, engine = make_engine(seed)
        await engine.start()
        await store.set("users/u1", {"displayName": "Annie"})

        state = await wait_for(engine, lambda s: s.message("m1").author_name == "Annie")
        assert state.message("m2").reactions[0].author.display_name == "Annie"
        await engine.stop()

    @pytest.mark.asyncio
    async def test_message_from_user_added_later(self, make_engine, seed, wait_for):
        store, _, engine = make_engine(seed)
        await engine.start()
        await store.push("messages", {"text": "yo", "authorId": "u3", "createdAt": 400})
        state = await wait_for(engine, lambda s: len(s.messages) == 3)
        assert state.messages[0].author is None

        await store.set("users/u3", {"displayName": "Cy"})
        state = await wait_for(engine, lambda s: s.messages[0].author is not None)
        assert state.messages[0].author_name == "Cy"
        await engine.stop()


class TestIdentityTransitions:
    @pytest.mark.asyncio
    async def test_sign_in_then_out_flips_is_self(self, make_engine, seed, wait_for):
        _, identity, engine = make_engine(seed)
        await engine.start()
        assert not any(m.is_self for m in engine.state.messages)

        await identity.sign_in("u1")
        state = await wait_for(engine, lambda s: s.identity == SignedIn(user_id="u1"))
        assert state.message("m1").is_self is True
        assert state.message("m2").is_self is False
        assert state.message("m2").reactions[0].is_self is True

        identity.sign_out()
        state = await wait_for(engine, lambda s: s.identity == SignedOut())
        assert not any(m.is_self for m in state.messages)
        assert not any(r.is_self for m in state.messages for r in m.reactions)
        await engine.stop()

    @pytest.mark.asyncio
    async def test_already_signed_in_at_start(self, seed):
        store = MemoryStore(seed)
        identity = IdentityManager(store)
        await identity.sign_in("u2")
        engine = SyncEngine(store, identity)
        await engine.start()
        assert engine.state.message("m2").is_self is True
        await engine.stop()


class TestCommands:
    @pytest.mark.asyncio
    async def test_commands_ignored_when_signed_out(self, make_engine, seed):
        store, _, engine = make_engine(seed)
        await engine.start()

        engine.send_message("hello?")
        engine.toggle_reaction("👍", "m1")
        await engine.flush()

        assert await store.fetch("messages") == seed["messages"]
        await engine.stop()

    @pytest.mark.asyncio
    async def test_commands_right_after_sign_in(self, make_engine, seed):
        store, identity, engine = make_engine(seed)
        await engine.start()
        await identity.sign_in("u1")

        engine.send_message("after sign in")
        engine.toggle_reaction("👍", "m2")
        await engine.flush()

        stored = await store.fetch("messages")
        assert sorted(m["text"] for m in stored.values()) == ["after sign in", "hello Ann", "hi"]
        assert not stored["m2"].get("reactions")
        await engine.stop()

    @pytest.mark.asyncio
    async def test_send_message_round_trips_through_listener(self, make_engine, seed, wait_for):
        store, identity, engine = make_engine(seed)
        await engine.start()
        await identity.sign_in("u2")
        await wait_for(engine, lambda s: s.identity == SignedIn(user_id="u2"))

        engine.send_message("hey")
        assert len(engine.state.messages) == 2
        await engine.flush()

        state = await wait_for(engine, lambda s: len(s.messages) == 3)
        newest = state.messages[0]
        assert (newest.text, newest.author_id, newest.is_self) == ("hey", "u2", True)
        assert newest.author_name == "Bob"
        assert newest.created_at > 0
        await engine.stop()

    @pytest.mark.asyncio
    async def test_toggle_reaction_twice_restores_reactions(self, make_engine, seed, wait_for):
        _, identity, engine = make_engine(seed)
        await engine.start()
        await identity.sign_in("u2")
        await wait_for(engine, lambda s: s.identity == SignedIn(user_id="u2"))
        original = engine.state.message("m2").reactions

        engine.toggle_reaction("👍", "m2")
        await engine.flush()
        state = await wait_for(engine, lambda s: len(s.message("m2").reactions) == 2)
        mine = [r for r in state.message("m2").reactions if r.is_self]
        assert [(r.emoji, r.author_id) for r in mine] == [("👍", "u2")]

        engine.toggle_reaction("👍", "m2")
        await engine.flush()
        state = await wait_for(engine, lambda s: len(s.message("m2").reactions) == 1)
        assert state.message("m2").reactions == original
        await engine.stop()

    @pytest.mark.asyncio
    async def test_toggle_on_unknown_message_is_noop(self, make_engine, seed):
        store, identity, engine = make_engine(seed)
        await engine.start()
        await identity.sign_in("u1")
        await asyncio.sleep(0)

        engine.toggle_reaction("👍", "missing")
        await engine.flush()
        assert "missing" not in await store.fetch("messages")
        await engine.stop()

    @pytest.mark.asyncio
    async def test_write_failure_is_not_raised(self, seed):
        class ReadOnlyStore(MemoryStore):
            async def push(self, path, value):
                raise PermissionError("read only")

        store = ReadOnlyStore(seed)
        identity = IdentityManager()
        await identity.sign_in("u1")
        engine = SyncEngine(store, identity)
        await engine.start()

        engine.send_message("lost")
        await engine.flush()
        assert len(engine.state.messages) == 2
        await engine.stop()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_stop_is_idempotent_and_detaches(self, make_engine, seed):
        store, _, engine = make_engine(seed)
        await engine.start()
        assert store.listener_count("users") == 1
        assert store.listener_count("messages") == 1

        await engine.stop()
        await engine.stop()

        assert store.listener_count("users") == 0
        assert store.listener_count("messages") == 0
        assert engine.state.status == SyncStatus.STOPPED

    @pytest.mark.asyncio
    async def test_stop_before_start_finishes(self, seed):
        gate = asyncio.Event()

        class SlowStore(MemoryStore):
            async def fetch(self, collection):
                await gate.wait()
                return await super().fetch(collection)

        store = SlowStore(seed)
        identity = IdentityManager()
        identity.mark_signed_out()
        engine = SyncEngine(store, identity)
        start = asyncio.ensure_future(engine.start())
        await asyncio.sleep(0)

        await engine.stop()
        gate.set()
        await start

        assert len(engine.state.messages) == 2
        assert engine.state.status == SyncStatus.STOPPED
        assert store.listener_count("users") == 0
        assert store.listener_count("messages") == 0

    @pytest.mark.asyncio
    async def test_start_after_stop_does_nothing(self, make_engine, seed):
        store, identity, engine = make_engine(seed)
        await engine.stop()
        await engine.start()
        await asyncio.sleep(0)

        assert engine.state.status == SyncStatus.STOPPED
        assert engine.state.messages == ()
        assert store.listener_count("users") == 0
        assert store.listener_count("messages") == 0
        assert identity._state.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_observe_state_emits_only_on_change(self, make_engine, seed):
        store, _, engine = make_engine(seed)
        await engine.start()
        seen = []

        async def collect():
            async for state in engine.observe_state():
                seen.append(state)

        task = asyncio.ensure_future(collect())
        await asyncio.sleep(0)
        # Replays of baseline keys change nothing.
        store.inject(ChildEvent.added("messages", "m1", {"text": "dup", "authorId": "u1", "createdAt": 1}))
        for _ in range(5):
            await asyncio.sleep(0)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        assert len(seen) == 1
        await engine.stop()


@pytest.mark.asyncio
async def test_end_to_end(wait_for):
    store = MemoryStore({
        "users": {"u1": {"displayName": "Ann"}},
        "messages": {"m1": {"text": "hi", "authorId": "u1", "createdAt": 100}},
    })
    identity = IdentityManager(store)
    identity.mark_signed_out()
    engine = SyncEngine(store, identity)
    await engine.start()

    [m1] = engine.state.messages
    assert (m1.id, m1.text, m1.author_name, m1.is_self) == ("m1", "hi", "Ann", False)

    await identity.sign_in("u1")
    state = await wait_for(engine, lambda s: s.message("m1").is_self)
    assert state.message("m1").is_self is True

    engine.toggle_reaction("❤️", "m1")
    await engine.flush()
    state = await wait_for(engine, lambda s: len(s.message("m1").reactions) == 1)
    [reaction] = state.message("m1").reactions
    assert (reaction.emoji, reaction.author_id, reaction.is_self) == ("❤️", "u1", True)
    await engine.stop()
