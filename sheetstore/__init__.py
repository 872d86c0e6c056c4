"""
sheetstore - relation-aware querying over Google Sheets collections

Each sheet tab is a collection whose header row is its schema. Repositories
give CRUD plus a chainable query builder with eager loading of has_one,
has_many and belongs_to relations joined in memory.
"""

from .config import ReadFailurePolicy, SheetsConfig, configure_logging
from .container import RepositoryContainer
from .errors import (
    CollectionNotFoundError,
    DuplicateIdError,
    SchemaError,
    SheetStoreError,
    StoreAuthError,
    StoreError,
    StoreReadError,
    StoreTimeoutError,
    StoreWriteError,
)
from .query import ENTITIES, EntityConfig, Pagination, Query, belongs_to, has_many, has_one
from .repositories import Repository
from .store import BaseStore, InMemoryStore, SheetsStore

__version__ = "1.0.0"

__all__ = [
    'ReadFailurePolicy',
    'SheetsConfig',
    'configure_logging',
    'RepositoryContainer',
    'Repository',
    'Query',
    'Pagination',
    'ENTITIES',
    'EntityConfig',
    'belongs_to',
    'has_many',
    'has_one',
    'BaseStore',
    'InMemoryStore',
    'SheetsStore',
    'SheetStoreError',
    'StoreError',
    'StoreReadError',
    'CollectionNotFoundError',
    'StoreWriteError',
    'StoreTimeoutError',
    'StoreAuthError',
    'SchemaError',
    'DuplicateIdError',
]
