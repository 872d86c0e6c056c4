"""
Backing store contract.

A store holds named collections as a header row plus data rows of text
cells. It does transport only; filtering, joins and the read-failure
policy live above it.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, List, Sequence, Tuple

Headers = List[str]
RawRows = List[List[Any]]


class BaseStore(ABC):
    """Async access to header + rows collections."""

    def __init__(self):
        self._write_locks: dict[str, asyncio.Lock] = {}

    def write_lock(self, collection: str) -> asyncio.Lock:
        """Per-collection lock serializing read-modify-write cycles in this process."""
        lock = self._write_locks.get(collection)
        if lock is None:
            lock = asyncio.Lock()
            self._write_locks[collection] = lock
        return lock

    @abstractmethod
    async def fetch_rows(self, collection: str) -> Tuple[Headers, RawRows]:
        """
        Fetch every row of a collection.

        Returns (headers, rows) where rows exclude the header row. An empty
        collection returns ([], []). Raises StoreReadError on failure.
        """

    @abstractmethod
    async def append_row(self, collection: str, values: Sequence[Any]) -> None:
        """Append one row after the last data row."""

    @abstractmethod
    async def overwrite_range(self, collection: str, row_index: int, values: Sequence[Any]) -> None:
        """Overwrite the data row at 0-based row_index (the header is not counted)."""

    @abstractmethod
    async def overwrite_all(self, collection: str, headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
        """Replace the whole collection with headers + rows."""
