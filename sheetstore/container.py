"""
Repository Container - one place to build every entity repository

All repositories share the same store, entity registry, hydrator and
read-failure policy.
"""

from typing import Optional

from .config import ReadFailurePolicy, SheetsConfig
from .query.entities import ENTITIES, EntityRegistry
from .query.hydrator import Hydrator
from .repositories import Repository
from .store.base import BaseStore
from .store.sheets import SheetsStore


class RepositoryContainer:
    """
    Container for repository instances with attribute access.

    Every registered entity is reachable with container[name]; the default
    entities are also attributes (users, departments, roles).
    """
    def __init__(
        self,
        store: BaseStore,
        entities: Optional[EntityRegistry] = None,
        read_failure_policy: ReadFailurePolicy = ReadFailurePolicy.DEGRADE,
    ):
        self.store = store
        self.entities = ENTITIES if entities is None else entities
        self.hydrator = Hydrator()
        self._repositories = {
            name: Repository(
                store, name,
                entities=self.entities,
                read_failure_policy=read_failure_policy,
                hydrator=self.hydrator,
            )
            for name in self.entities
        }

    def __getitem__(self, entity_name: str) -> Repository:
        try:
            return self._repositories[entity_name]
        except KeyError:
            raise KeyError(f"Unknown entity '{entity_name}'. Valid entities: {list(self._repositories)}") from None

    def __contains__(self, entity_name: str) -> bool:
        return entity_name in self._repositories

    @property
    def users(self) -> Repository:
        return self['users']

    @property
    def departments(self) -> Repository:
        return self['departments']

    @property
    def roles(self) -> Repository:
        return self['roles']

    @classmethod
    def from_environment(cls, config: Optional[SheetsConfig] = None) -> "RepositoryContainer":
        """Container over the spreadsheet named by the environment."""
        config = config or SheetsConfig.from_environment()
        return cls(SheetsStore.from_environment(config), read_failure_policy=config.read_failure_policy)
