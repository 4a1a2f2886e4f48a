"""
Storage Module for PagePilot.

Fallible-but-never-fatal key/value persistence shared by every adaptive
component. Each component owns a disjoint set of keys.
"""

from .config import StorageConfig, get_storage_config, reset_storage_config
from .kv_store import (
    KeyValueStore,
    InMemoryStore,
    JsonFileStore,
    StorageError,
    StoreResult,
    create_store,
    get_store,
    reset_store,
)

__all__ = [
    "StorageConfig",
    "get_storage_config",
    "reset_storage_config",
    "KeyValueStore",
    "InMemoryStore",
    "JsonFileStore",
    "StorageError",
    "StoreResult",
    "create_store",
    "get_store",
    "reset_store",
]
