from .base import BaseStore
from .memory import InMemoryStore
from .sheets import SheetsStore

__all__ = ['BaseStore', 'InMemoryStore', 'SheetsStore']
