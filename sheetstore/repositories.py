"""
Repository layer for sheet-backed collections
Provides CRUD operations and query entry points for any registered entity
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
from uuid import uuid4

from .config import ReadFailurePolicy
from .errors import DuplicateIdError, SchemaError, StoreError
from .query.builder import Query, Row
from .query.comparator import to_text
from .query.entities import ENTITIES, EntityConfig, EntityRegistry, get_entity_config, get_entity_names
from .query.hydrator import Hydrator, RelationLoader
from .query.validators import normalize_relations, validate_relations
from .store.base import BaseStore

logger = logging.getLogger(__name__)


def rows_to_dicts(headers: Sequence[str], raw_rows: Sequence[Sequence[Any]]) -> List[Row]:
    """Pair each raw row with the header; short rows are padded with ''."""
    return [_row_dict(headers, raw) for raw in raw_rows]


def _row_dict(headers: Sequence[str], raw: Sequence[Any]) -> Row:
    return {h: (raw[i] if i < len(raw) and raw[i] is not None else '') for i, h in enumerate(headers)}


def _cell(value: Any) -> str:
    return to_text(value)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Repository:
    """
    Generic repository for one entity.

    All reads take a fresh snapshot of the collection. Writes re-read the
    collection under the store's per-collection lock to locate rows.
    """

    def __init__(
        self,
        store: BaseStore,
        entity: Union[str, EntityConfig],
        entities: Optional[EntityRegistry] = None,
        read_failure_policy: ReadFailurePolicy = ReadFailurePolicy.DEGRADE,
        hydrator: Optional[Hydrator] = None,
    ):
        self.store = store
        self.entities = ENTITIES if entities is None else entities
        self.read_failure_policy = ReadFailurePolicy(read_failure_policy)
        self.hydrator = hydrator or Hydrator()

        if isinstance(entity, EntityConfig):
            self.entity_config = entity
            self.entity_name = next(
                (name for name, cfg in self.entities.items() if cfg is entity), entity.collection
            )
        else:
            config = get_entity_config(entity, self.entities)
            if config is None:
                raise ValueError(f"Unknown entity '{entity}'. Valid entities: {get_entity_names(self.entities)}")
            self.entity_config = config
            self.entity_name = entity

    def __repr__(self):
        return f"<Repository {self.entity_name} ({self.collection})>"

    @property
    def collection(self) -> str:
        return self.entity_config.collection

    @property
    def primary_key(self) -> str:
        return self.entity_config.primary_key

    def related(self, entity_name: str) -> Optional["Repository"]:
        """Repository for another registered entity sharing this store, registry and policy."""
        if entity_name not in self.entities:
            return None
        return Repository(
            self.store,
            entity_name,
            entities=self.entities,
            read_failure_policy=self.read_failure_policy,
            hydrator=self.hydrator,
        )

    # =========================================================================
    # Reads
    # =========================================================================

    async def fetch_all_rows(self) -> List[Row]:
        """
        Fresh snapshot of the collection.

        Under ReadFailurePolicy.DEGRADE a store failure is logged and reads
        as an empty collection; under RAISE it propagates.
        """
        try:
            headers, raw_rows = await self.store.fetch_rows(self.collection)
        except StoreError as e:
            if self.read_failure_policy is ReadFailurePolicy.RAISE:
                raise
            logger.error("Error fetching data from %s: %s", self.collection, e)
            return []
        return rows_to_dicts(headers, raw_rows)

    def query(self, rows: Optional[Sequence[Row]] = None) -> Query:
        """New query; with rows, the query runs over them instead of fetching."""
        return Query(self, rows=rows)

    def where(self, column: str, *args) -> Query:
        return self.query().where(column, *args)

    def or_where(self, column: str, *args) -> Query:
        return self.query().or_where(column, *args)

    def where_in(self, column: str, values) -> Query:
        return self.query().where_in(column, values)

    def select(self, columns) -> Query:
        return self.query().select(columns)

    def order_by(self, column: str, direction: str = "asc") -> Query:
        return self.query().order_by(column, direction)

    def limit(self, count: int) -> Query:
        return self.query().limit(count)

    def offset(self, count: int) -> Query:
        return self.query().offset(count)

    def with_(self, relations: Any) -> Query:
        return self.query().with_(relations)

    async def all(self) -> List[Row]:
        return await self.fetch_all_rows()

    async def find(self, row_id: Any) -> Optional[Row]:
        target = to_text(row_id)
        for row in await self.fetch_all_rows():
            if to_text(row.get(self.primary_key)) == target:
                return row
        return None

    def loader(self, relation: str) -> RelationLoader:
        return self.hydrator.loader(self, relation)

    def describe_relations(self, relations: Any) -> Dict[str, Any]:
        """Report which requested relations are declared on this entity and where they point."""
        described = {}
        for spec in normalize_relations(relations):
            rel = self.entity_config.relationships.get(spec.name)
            if rel is None:
                described[spec.name] = {"declared": False}
                continue
            described[spec.name] = {
                "declared": True,
                "type": rel.type,
                "target": rel.target_entity,
                "local_key": rel.local_key,
                "target_key": rel.target_key,
                "target_registered": rel.target_entity in self.entities,
            }
        logger.debug("Relations on %s: %s", self.entity_name, described)
        return {
            "entity": self.entity_name,
            "collection": self.collection,
            "relations": described,
            "validation": validate_relations(self.entity_name, self.entity_config, relations),
        }

    # =========================================================================
    # Writes (failures always propagate)
    # =========================================================================

    def _require_primary_key(self, headers: Sequence[str]):
        if self.primary_key not in headers:
            raise SchemaError(
                f"Collection '{self.collection}' has no '{self.primary_key}' column (headers: {list(headers)})"
            )

    def _index_of(self, headers: Sequence[str], raw_rows: Sequence[Sequence[Any]], row_id: Any) -> Optional[int]:
        pk_index = list(headers).index(self.primary_key)
        target = to_text(row_id)
        for i, raw in enumerate(raw_rows):
            if pk_index < len(raw) and to_text(raw[pk_index]) == target:
                return i
        return None

    async def create(self, data: Mapping[str, Any]) -> Row:
        """
        Append a row. A missing id gets a uuid4; an explicit id that already
        exists raises DuplicateIdError. Columns not in the header are dropped.
        On an empty collection the header is created from the data.
        """
        pk = self.primary_key
        payload = dict(data)
        if self.entity_config.timestamps:
            now = _utc_now()
            payload.setdefault('created_at', now)
            payload.setdefault('updated_at', now)

        async with self.store.write_lock(self.collection):
            headers, raw_rows = await self.store.fetch_rows(self.collection)

            explicit_id = to_text(payload.get(pk))
            row_id = explicit_id or str(uuid4())
            payload[pk] = row_id

            if not headers:
                headers = [pk] + [k for k in payload if k != pk]
                values = [_cell(payload.get(h)) for h in headers]
                await self.store.overwrite_all(self.collection, headers, [values])
            else:
                self._require_primary_key(headers)
                if explicit_id and self._index_of(headers, raw_rows, explicit_id) is not None:
                    raise DuplicateIdError(self.collection, explicit_id)
                dropped = [k for k in payload if k not in headers]
                if dropped:
                    logger.debug("Columns %s not in %s header, not written", dropped, self.collection)
                values = [_cell(payload.get(h)) for h in headers]
                await self.store.append_row(self.collection, values)

        logger.info("Created %s row %s", self.collection, row_id)
        return dict(zip(headers, values))

    async def update(self, row_id: Any, data: Mapping[str, Any]) -> Optional[Row]:
        """Overwrite one row in place. Returns the updated row, or None when the id is unknown."""
        pk = self.primary_key
        payload = dict(data)
        if self.entity_config.timestamps:
            payload['updated_at'] = _utc_now()

        async with self.store.write_lock(self.collection):
            headers, raw_rows = await self.store.fetch_rows(self.collection)
            if not headers:
                return None
            self._require_primary_key(headers)

            index = self._index_of(headers, raw_rows, row_id)
            if index is None:
                logger.info("Update skipped: %s row %s not found", self.collection, row_id)
                return None

            current = _row_dict(headers, raw_rows[index])
            values = []
            for h in headers:
                if h == pk:
                    values.append(to_text(row_id))
                elif payload.get(h) is not None:
                    values.append(_cell(payload[h]))
                else:
                    values.append(_cell(current.get(h)))

            await self.store.overwrite_range(self.collection, index, values)

        logger.info("Updated %s row %s", self.collection, row_id)
        return dict(zip(headers, values))

    async def delete(self, row_id: Any) -> bool:
        """Remove one row by rewriting the collection. False when the id is unknown."""
        async with self.store.write_lock(self.collection):
            headers, raw_rows = await self.store.fetch_rows(self.collection)
            if not headers:
                return False
            self._require_primary_key(headers)

            index = self._index_of(headers, raw_rows, row_id)
            if index is None:
                logger.info("Delete skipped: %s row %s not found", self.collection, row_id)
                return False

            remaining = [r for i, r in enumerate(raw_rows) if i != index]
            await self.store.overwrite_all(self.collection, headers, remaining)

        logger.info("Deleted %s row %s", self.collection, row_id)
        return True
