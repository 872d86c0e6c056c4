"""In-process backing store with the same contract as SheetsStore."""

import copy
import logging
from typing import Any, Dict, List, Optional, Sequence

from ..errors import CollectionNotFoundError
from .base import BaseStore

logger = logging.getLogger(__name__)


class InMemoryStore(BaseStore):
    """
    Collections held as lists of text rows, header first.

    Every fetch hands out copies, so callers never share row state with the
    store. ``fetch_log`` records each fetched collection name in order.
    """

    def __init__(self, collections: Optional[Dict[str, List[List[Any]]]] = None):
        super().__init__()
        self._tables: Dict[str, List[List[Any]]] = {}
        self.fetch_log: List[str] = []
        self.write_log: List[tuple] = []
        for name, table in (collections or {}).items():
            self._tables[name] = [list(r) for r in table]

    @classmethod
    def from_records(cls, collections: Dict[str, List[Dict[str, Any]]]) -> "InMemoryStore":
        """Build a store from lists of dicts; headers are the union of keys in first-seen order."""
        tables = {}
        for name, records in collections.items():
            headers: List[str] = []
            for record in records:
                for key in record:
                    if key not in headers:
                        headers.append(key)
            tables[name] = [headers] + [[r.get(h, '') for h in headers] for r in records]
        return cls(tables)

    def _table(self, collection: str) -> List[List[Any]]:
        if collection not in self._tables:
            raise CollectionNotFoundError(collection, f"Collection '{collection}' does not exist.")
        return self._tables[collection]

    def table(self, collection: str) -> List[List[Any]]:
        """Raw copy of a collection including its header row."""
        return copy.deepcopy(self._table(collection))

    async def fetch_rows(self, collection: str):
        self.fetch_log.append(collection)
        table = self._table(collection)
        if not table:
            return [], []
        return [str(h) for h in table[0]], copy.deepcopy(table[1:])

    async def append_row(self, collection: str, values: Sequence[Any]) -> None:
        self.write_log.append(("append", collection))
        self._table(collection).append(list(values))

    async def overwrite_range(self, collection: str, row_index: int, values: Sequence[Any]) -> None:
        self.write_log.append(("overwrite_range", collection, row_index))
        table = self._table(collection)
        position = row_index + 1  # skip header
        while len(table) <= position:
            table.append([])
        table[position] = list(values)

    async def overwrite_all(self, collection: str, headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
        self.write_log.append(("overwrite_all", collection))
        self._tables[collection] = [list(headers)] + [list(r) for r in rows]
