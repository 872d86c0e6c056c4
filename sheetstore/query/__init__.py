"""
Query layer for sheet-backed collections

Filtering, sorting, pagination and eager loading of relations over
in-memory snapshots of each collection.
"""

from .builder import Condition, Pagination, Query, QuerySpec
from .comparator import compare
from .entities import (
    ENTITIES,
    EntityConfig,
    RelationshipDef,
    belongs_to,
    get_entity_config,
    has_many,
    has_one,
)
from .hydrator import Hydrator
from .validators import RelationSpec, normalize_relations, validate_relations

__all__ = [
    'ENTITIES',
    'EntityConfig',
    'RelationshipDef',
    'belongs_to',
    'has_many',
    'has_one',
    'get_entity_config',
    'compare',
    'Condition',
    'Pagination',
    'Query',
    'QuerySpec',
    'Hydrator',
    'RelationSpec',
    'normalize_relations',
    'validate_relations',
]
