"""
Entity cache: keyed store of users for author lookups.

No eviction, no TTL. The cache does not notify dependents, so whoever reads
from it must re-run any derivation that depends on a changed entry.
"""

from typing import Generic, Iterator, Optional, TypeVar

T = TypeVar("T")


class EntityCache(Generic[T]):
    def __init__(self) -> None:
        self._entries: dict[str, T] = {}

    def upsert(self, key: str, record: T) -> None:
        """Insert or replace the whole record for `key`."""
        self._entries[key] = record

    def get(self, key: Optional[str]) -> Optional[T]:
        if key is None:
            return None
        return self._entries.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)
