"""
Query Builder

Accumulates conditions, projection, sort, pagination and relations as a
plain QuerySpec, then runs them over a fully materialized snapshot of the
collection:

    fetch -> AND filter -> OR union -> sort -> offset/limit -> select -> relations

Each execution works on its own copy of the QuerySpec, so a Query can be
executed more than once without one run leaking into the next.
"""

import copy
import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Union

from pydantic import BaseModel

from .comparator import compare, to_text
from .validators import RelationSpec, normalize_relations, validate_non_negative, validate_operator

if TYPE_CHECKING:
    from ..repositories import Repository

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

_MISSING = object()


@dataclass
class Condition:
    """column <operator> value"""
    column: str
    operator: str
    value: Any

    def matches(self, row: Row) -> bool:
        return compare(row.get(self.column), self.operator, self.value)


@dataclass
class QuerySpec:
    """Everything a query needs to run, as plain data."""
    conditions: List[Condition] = field(default_factory=list)
    or_conditions: List[Condition] = field(default_factory=list)
    columns: Optional[List[str]] = None
    sort_column: Optional[str] = None
    sort_direction: str = "asc"
    limit: Optional[int] = None
    offset: int = 0
    relations: List[RelationSpec] = field(default_factory=list)

    def copy(self) -> "QuerySpec":
        return copy.deepcopy(self)


class Pagination(BaseModel):
    """One page of results plus the totals needed to render pagination."""
    data: List[Dict[str, Any]]
    total: int
    per_page: int
    current_page: int
    last_page: int


# =============================================================================
# Pipeline steps
# =============================================================================

def filter_all(rows: Iterable[Row], conditions: Sequence[Condition]) -> List[Row]:
    """Rows matching every condition."""
    return [row for row in rows if all(c.matches(row) for c in conditions)]


def filter_any(rows: Iterable[Row], conditions: Sequence[Condition]) -> List[Row]:
    """Rows matching at least one condition."""
    return [row for row in rows if any(c.matches(row) for c in conditions)]


def union_by_id(primary: Sequence[Row], extra: Sequence[Row], key: str = "id") -> List[Row]:
    """
    primary followed by rows of extra not already present, deduplicated by key.
    A duplicate keeps the position of its first occurrence.
    """
    seen = set()
    result = []
    for row in list(primary) + list(extra):
        marker = row.get(key, _MISSING)
        marker = ("id", marker) if marker is not _MISSING else ("obj", id(row))
        if marker in seen:
            continue
        seen.add(marker)
        result.append(row)
    return result


def _sort_key(value: Any) -> tuple:
    # Numbers before text; anything else compares as its cell text
    if isinstance(value, (int, float)):
        return (0, value)
    return (1, to_text(value))


def sort_rows(rows: List[Row], column: str, direction: str = "asc") -> List[Row]:
    """
    Stable sort on raw cell values (strings sort lexically).
    Rows without the column keep their relative order after the others,
    in either direction.
    """
    present = [r for r in rows if r.get(column) is not None]
    missing = [r for r in rows if r.get(column) is None]
    ordered = sorted(present, key=lambda r: _sort_key(r[column]), reverse=direction == "desc")
    return ordered + missing


def slice_rows(rows: List[Row], offset: int = 0, limit: Optional[int] = None) -> List[Row]:
    """offset first, then limit. A falsy limit means no limit."""
    if offset:
        rows = rows[offset:]
    if limit:
        rows = rows[:limit]
    return rows


def project(rows: List[Row], columns: Sequence[str]) -> List[Row]:
    """Keep only the requested columns; absent columns stay absent."""
    return [{c: row[c] for c in columns if c in row} for row in rows]


def _as_columns(columns: Union[str, Sequence[str]]) -> List[str]:
    return [columns] if isinstance(columns, str) else list(columns)


# =============================================================================
# Builder
# =============================================================================

class Query:
    """Chainable query over one entity's collection."""

    def __init__(self, repository: "Repository", rows: Optional[Sequence[Row]] = None):
        self.repository = repository
        self.spec = QuerySpec()
        # Pre-loaded rows replace the fetch when set
        self._rows = [dict(r) for r in rows] if rows is not None else None

    def __repr__(self):
        return f"<Query {self.repository.entity_name} {self.spec!r}>"

    # --- conditions ---------------------------------------------------------

    @staticmethod
    def _condition(column: str, operator_or_value: Any, value: Any) -> Condition:
        if value is _MISSING:
            return Condition(column, "=", operator_or_value)
        problem = validate_operator(operator_or_value)
        if problem:
            logger.debug(problem["message"])
        return Condition(column, operator_or_value, value)

    def where(self, column: str, operator_or_value: Any, value: Any = _MISSING) -> "Query":
        """where(col, value) or where(col, operator, value); all must match."""
        self.spec.conditions.append(self._condition(column, operator_or_value, value))
        return self

    def or_where(self, column: str, operator_or_value: Any, value: Any = _MISSING) -> "Query":
        """Rows matching any OR condition are added to the result even if they fail the AND list."""
        self.spec.or_conditions.append(self._condition(column, operator_or_value, value))
        return self

    def where_in(self, column: str, values: Iterable[Any] = ()) -> "Query":
        self.spec.conditions.append(Condition(column, "in", list(values)))
        return self

    # --- shaping ------------------------------------------------------------

    def select(self, columns: Union[str, Sequence[str]]) -> "Query":
        self.spec.columns = _as_columns(columns)
        return self

    def order_by(self, column: str, direction: str = "asc") -> "Query":
        self.spec.sort_column = column
        self.spec.sort_direction = "desc" if str(direction).lower() == "desc" else "asc"
        return self

    def limit(self, count: Optional[int]) -> "Query":
        self.spec.limit = None if count is None else validate_non_negative("limit", count)
        return self

    def offset(self, count: int) -> "Query":
        self.spec.offset = validate_non_negative("offset", count)
        return self

    def with_(self, relations: Any) -> "Query":
        """Eager-load relations: a name, a list of names/mappings, or a mapping of name -> nested."""
        self.spec.relations.extend(normalize_relations(relations))
        return self

    # --- execution ----------------------------------------------------------

    async def _snapshot(self) -> List[Row]:
        if self._rows is not None:
            return [dict(r) for r in self._rows]
        return await self.repository.fetch_all_rows()

    async def _collect(self, spec: QuerySpec) -> List[Row]:
        """Filtered and sorted rows, before pagination."""
        rows = await self._snapshot()

        if spec.conditions:
            rows = filter_all(rows, spec.conditions)

        if spec.or_conditions:
            # OR is evaluated against the unfiltered collection, then unioned
            everything = await self._snapshot()
            rows = union_by_id(rows, filter_any(everything, spec.or_conditions))

        if spec.sort_column:
            rows = sort_rows(rows, spec.sort_column, spec.sort_direction)

        return rows

    async def _finish(self, rows: List[Row], spec: QuerySpec, columns=None) -> List[Row]:
        selected = _as_columns(columns) if columns else spec.columns
        if selected:
            rows = project(rows, selected)
        if spec.relations:
            rows = await self.repository.hydrator.hydrate(self.repository, rows, spec.relations)
        return rows

    async def get(self, columns: Optional[Union[str, Sequence[str]]] = None) -> List[Row]:
        spec = self.spec.copy()
        rows = await self._collect(spec)
        rows = slice_rows(rows, spec.offset, spec.limit)
        rows = await self._finish(rows, spec, columns)
        logger.debug("Query on %s returned %d rows", self.repository.entity_name, len(rows))
        return rows

    async def first(self) -> Optional[Row]:
        results = await self.limit(1).get()
        return results[0] if results else None

    async def paginate(self, per_page: int = 10, page: int = 1) -> Pagination:
        """Page over the full filtered/sorted result; limit/offset are ignored."""
        if per_page < 1:
            raise ValueError(f"per_page must be >= 1, got {per_page}")
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")

        spec = self.spec.copy()
        rows = await self._collect(spec)
        total = len(rows)
        start = (page - 1) * per_page
        data = await self._finish(rows[start:start + per_page], spec)

        return Pagination(
            data=data,
            total=total,
            per_page=per_page,
            current_page=page,
            last_page=math.ceil(total / per_page),
        )

    async def count(self) -> int:
        """Number of rows get() would return; relations do not change the count and are not loaded."""
        spec = self.spec.copy()
        rows = await self._collect(spec)
        return len(slice_rows(rows, spec.offset, spec.limit))
