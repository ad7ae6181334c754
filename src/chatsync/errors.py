"""
chatsync error types.

Only StoreError and ConnectionError ever reach callers. The rest are raised and
handled inside the sync engine, which keeps working on a partial view.
"""

from typing import Any, Optional


class ChatSyncError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class StoreError(ChatSyncError):
    def __init__(self, message: str, code: str = "store_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class ConnectionError(ChatSyncError):
    def __init__(self, message: str):
        super().__init__("connection_error", message)


class TransientFetchFailure(ChatSyncError):
    """A baseline read did not complete."""

    def __init__(self, collection: str, cause: Optional[BaseException] = None):
        super().__init__(
            "transient_fetch_failure",
            f"Failed to fetch baseline for {collection!r}: {cause}",
            {"collection": collection},
        )
        self.collection = collection


class MalformedRecord(ChatSyncError):
    """A decoded record lacks a field the domain model requires."""

    def __init__(self, collection: str, key: str, missing: Optional[list[str]] = None, reason: str = ""):
        missing = missing or []
        detail = f"missing {', '.join(missing)}" if missing else reason
        super().__init__(
            "malformed_record",
            f"Malformed {collection} record {key!r}: {detail}",
            {"collection": collection, "key": key, "missing": missing},
        )
        self.collection = collection
        self.key = key
        self.missing = missing


class UnauthorizedCommand(ChatSyncError):
    def __init__(self, command: str):
        super().__init__("unauthorized_command", f"{command} requires a signed-in user")
        self.command = command


class StaleReference(ChatSyncError):
    """An event refers to a key absent from the current snapshot."""

    def __init__(self, collection: str, key: str):
        super().__init__(
            "stale_reference",
            f"No {collection} entry with key {key!r}",
            {"collection": collection, "key": key},
        )
        self.collection = collection
        self.key = key
