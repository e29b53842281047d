"""Pluggable corpus storage: durable JSON documents or mirrored in-memory state."""

from propscout.storage.base import DeleteManyResult, StorageAdapter, StorageStats
from propscout.storage.factory import create_storage, get_storage, reset_storage
from propscout.storage.filesystem import FilesystemStorage
from propscout.storage.local_store import InProcessLocalStore, LocalStore, SqliteLocalStore
from propscout.storage.memory import MemoryStorage

__all__ = [
    "StorageAdapter",
    "DeleteManyResult",
    "StorageStats",
    "FilesystemStorage",
    "MemoryStorage",
    "LocalStore",
    "InProcessLocalStore",
    "SqliteLocalStore",
    "create_storage",
    "get_storage",
    "reset_storage",
]
