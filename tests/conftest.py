import asyncio

import pytest

from chatsync import IdentityManager, MemoryStore, SyncEngine


async def _wait_for(engine, predicate, timeout: float = 1.0):
    async def _wait():
        async for state in engine.observe_state():
            if predicate(state):
                return state
    return await asyncio.wait_for(_wait(), timeout=timeout)


@pytest.fixture
def wait_for():
    """Await the first derived state matching a predicate."""
    return _wait_for


@pytest.fixture
def seed():
    return {
        "users": {
            "u1": {"displayName": "Ann", "avatarUrl": "https://example.com/ann.png"},
            "u2": {"displayName": "Bob"},
        },
        "messages": {
            "m1": {"text": "hi", "authorId": "u1", "createdAt": 100},
            "m2": {
                "text": "hello Ann",
                "authorId": "u2",
                "createdAt": 200,
                "reactions": {
                    "r1": {"emoji": "👍", "authorId": "u1", "createdAt": 210},
                },
            },
        },
    }


@pytest.fixture
def make_engine():
    """Build (store, identity, engine) over a MemoryStore."""
    def _make(data=None, signed_out: bool = True, **kwargs):
        store = MemoryStore(data)
        identity = IdentityManager(store)
        if signed_out:
            identity.mark_signed_out()
        return store, identity, SyncEngine(store, identity, **kwargs)
    return _make
