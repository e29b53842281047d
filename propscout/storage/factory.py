"""Backend selection and the process-wide storage singleton.

:func:`create_storage` is the pure factory: it inspects the settings (and the
environment, via :attr:`Settings.effective_storage_type`) and builds a fresh
adapter.  :func:`get_storage` caches one adapter per process and is meant
for the composition root only (the CLI); library code receives its adapter
by injection.
"""

from __future__ import annotations

import logging

from propscout.core.exceptions import ConfigError
from propscout.core.settings import Settings
from propscout.storage.base import StorageAdapter
from propscout.storage.filesystem import FilesystemStorage
from propscout.storage.local_store import LocalStore, SqliteLocalStore
from propscout.storage.memory import MemoryStorage

__all__ = ["create_storage", "get_storage", "reset_storage"]

logger = logging.getLogger(__name__)

_instance: StorageAdapter | None = None


async def create_storage(settings: Settings) -> StorageAdapter:
    """Build the adapter selected by *settings*.

    ``memory`` is chosen when configured explicitly or when a serverless
    platform is detected; otherwise the durable ``filesystem`` backend.

    Raises:
        ConfigError: If the configured backend cannot be constructed.
    """
    backend = settings.effective_storage_type
    if backend == "memory":
        local: LocalStore | None = None
        if settings.local_storage_path:
            try:
                local = await SqliteLocalStore.open(settings.local_storage_path)
            except Exception as exc:
                raise ConfigError(
                    f"Cannot open local store at {settings.local_storage_path!r}: {exc}"
                ) from exc
        storage: StorageAdapter = MemoryStorage(local, history_limit=settings.history_limit)
    elif backend == "filesystem":
        storage = FilesystemStorage(
            settings.data_dir_resolved, history_limit=settings.history_limit
        )
    else:  # pragma: no cover - rejected by Settings validation
        raise ConfigError(f"Unsupported storage backend {backend!r}")

    logger.info(
        "Storage backend: %s%s",
        storage.name,
        " (serverless environment detected)" if settings.serverless else "",
    )
    return storage


async def get_storage(settings: Settings | None = None) -> StorageAdapter:
    """Return the process-wide adapter, constructing it on first call."""
    global _instance
    if _instance is None:
        _instance = await create_storage(settings or Settings())
    return _instance


async def reset_storage() -> None:
    """Close and forget the cached adapter (used by tests and shutdown)."""
    global _instance
    if _instance is not None:
        await _instance.close()
        _instance = None
