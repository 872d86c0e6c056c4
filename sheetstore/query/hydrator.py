"""
Relationship Hydrator

Batch-loads related entities and nests them into parent rows.
One fetch per relation for the whole parent batch, joined in memory through
a map keyed on the relationship's declared key pair.
"""

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .comparator import normalize
from .entities import RelationshipDef
from .validators import RelationSpec, normalize_relations

if TYPE_CHECKING:
    from ..repositories import Repository

logger = logging.getLogger(__name__)

Row = Dict[str, Any]
RelatedValue = Union[Optional[Row], List[Optional[Row]]]
RelationLoader = Callable[[Union[Row, Sequence[Row]]], Awaitable[RelatedValue]]


def _distinct_keys(rows: Sequence[Row], column: str) -> List[Any]:
    """Non-empty values of column across rows, first occurrence wins."""
    seen = set()
    keys = []
    for row in rows:
        value = row.get(column)
        marker = normalize(value)
        if not marker or marker in seen:
            continue
        seen.add(marker)
        keys.append(value)
    return keys


def _index_by(rows: Sequence[Row], column: str) -> Dict[str, Row]:
    """key -> row; on duplicate keys the last row wins."""
    return {normalize(r.get(column)): r for r in rows}


def _lookup(index: Dict[str, Row], key: str) -> Optional[Row]:
    """Fresh copy of the row indexed under key, or None."""
    match = index.get(key) if key else None
    return dict(match) if match is not None else None


class Hydrator:
    """Batch-loads and attaches related entities to parent result rows."""

    async def hydrate(
        self,
        repository: "Repository",
        rows: List[Row],
        relations: Any,
        stack: Optional[List[str]] = None,
        chain: Optional[List[str]] = None,
    ) -> List[Row]:
        """
        Resolve relations onto rows, in declaration order, depth first.

        Args:
            repository: Repository of the entity the rows belong to
            rows: Parent rows (mutated in place)
            relations: Relation declaration (name, list, mapping or RelationSpecs)
            stack: Relation names in progress along this chain; shared with nested levels
            chain: Entities already loaded along this chain, root first

        Returns:
            The same rows list, with relations attached.
        """
        if not rows or not relations:
            return rows

        specs = relations if _is_spec_list(relations) else normalize_relations(relations)
        stack = [] if stack is None else stack
        chain = [repository.entity_name] if chain is None else chain
        entity_config = repository.entity_config

        for spec in specs:
            if spec.name in stack:
                logger.warning(
                    "Circular relation '%s' on '%s' skipped (in progress: %s)",
                    spec.name, repository.entity_name, " -> ".join(stack),
                )
                continue

            rel = entity_config.relationships.get(spec.name)
            if not rel:
                logger.warning("Unknown relation '%s' on entity '%s'", spec.name, repository.entity_name)
                continue

            target = repository.related(rel.target_entity)
            if target is None:
                logger.warning(
                    "Relation '%s' on '%s' targets unregistered entity '%s'",
                    spec.name, repository.entity_name, rel.target_entity,
                )
                continue

            if rel.target_entity in chain:
                logger.warning(
                    "Circular relation '%s' on '%s' skipped: '%s' is already loaded in this chain (%s)",
                    spec.name, repository.entity_name, rel.target_entity, " -> ".join(chain),
                )
                continue

            stack.append(spec.name)
            chain.append(rel.target_entity)
            try:
                related_rows = await self._fetch_related(target, rel, rows)

                if spec.nested and related_rows:
                    await self.hydrate(target, related_rows, spec.nested, stack, chain)

                self._attach(rows, spec.name, rel, related_rows)
                logger.debug(
                    "Hydrated %s.%s: %d parents, %d related",
                    repository.entity_name, spec.name, len(rows), len(related_rows),
                )
            finally:
                stack.pop()
                chain.pop()

        return rows

    async def _fetch_related(self, target: "Repository", rel: RelationshipDef, parents: Sequence[Row]) -> List[Row]:
        """One where_in query on the target for every key present in the batch."""
        keys = _distinct_keys(parents, rel.local_key)
        if not keys:
            return []
        return await target.query().where_in(rel.target_key, keys).get()

    def _attach(self, rows: List[Row], name: str, rel: RelationshipDef, related: List[Row]):
        if rel.is_many:
            grouped: Dict[str, List[Row]] = defaultdict(list)
            for child in related:
                grouped[normalize(child.get(rel.target_key))].append(child)
            for row in rows:
                key = normalize(row.get(rel.local_key))
                row[name] = list(grouped.get(key, [])) if key else []
            return

        # has_one and belongs_to both resolve to a single row per parent
        index = _index_by(related, rel.target_key)
        for row in rows:
            key = normalize(row.get(rel.local_key))
            row[name] = _lookup(index, key)

    def loader(self, repository: "Repository", name: str) -> RelationLoader:
        """
        Standalone loader for one declared relation.

        has_many returns the flat list of related rows for all parents.
        has_one / belongs_to return a row or None for a single parent, or a
        list aligned with the parents (None where nothing matched).
        """
        rel = repository.entity_config.relationships.get(name)
        if not rel:
            raise ValueError(
                f"Unknown relation '{name}' on entity '{repository.entity_name}'. "
                f"Valid relations: {list(repository.entity_config.relationships)}"
            )
        target = repository.related(rel.target_entity)
        if target is None:
            raise ValueError(f"Relation '{name}' targets unregistered entity '{rel.target_entity}'")

        async def load(parents: Union[Row, Sequence[Row]]) -> RelatedValue:
            single = isinstance(parents, Mapping)
            batch = [parents] if single else list(parents)
            related = await self._fetch_related(target, rel, batch)

            if rel.is_many:
                return related

            index = _index_by(related, rel.target_key)
            matches = []
            for parent in batch:
                key = normalize(parent.get(rel.local_key))
                matches.append(_lookup(index, key))
            return matches[0] if single else matches

        return load


def _is_spec_list(relations: Any) -> bool:
    return isinstance(relations, list) and all(isinstance(r, RelationSpec) for r in relations)
