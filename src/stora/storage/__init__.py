"""Local storage backends."""

from stora.storage.base import ENTITY_TYPES, BaseStore
from stora.storage.dict_store import DictStore
from stora.storage.sqlite_store import SQLiteStore

__all__ = [
    "BaseStore",
    "DictStore",
    "SQLiteStore",
    "ENTITY_TYPES",
]
