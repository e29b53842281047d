"""Ephemeral in-memory storage backend.

Intended for environments without durable file access (serverless
platforms).  The corpus is held in process memory, loaded lazily from a
:class:`~propscout.storage.local_store.LocalStore` on first access and
mirrored back to it after every mutation.

Records and history are copied on the way in and out, so callers can never
mutate the held state behind the adapter's back.
"""

from __future__ import annotations

import json
import logging

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from propscout.core.exceptions import AdapterError
from propscout.core.models import HistoryEntry, Property, dump_records
from propscout.storage.base import DEFAULT_HISTORY_LIMIT, StorageAdapter
from propscout.storage.local_store import (
    HISTORY_KEY,
    PROPERTIES_KEY,
    InProcessLocalStore,
    LocalStore,
)

__all__ = ["MemoryStorage"]

logger = logging.getLogger(__name__)

_RECORDS_ADAPTER = TypeAdapter(list[Property])
_HISTORY_ADAPTER = TypeAdapter(list[HistoryEntry])


class MemoryStorage(StorageAdapter):
    """In-memory backend mirrored to a client-local key/value store.

    Args:
        local_store: Mirror target.  Defaults to a fresh
            :class:`InProcessLocalStore`.
        history_limit: Maximum number of history entries kept.
    """

    name = "memory"

    def __init__(
        self,
        local_store: LocalStore | None = None,
        *,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        super().__init__(history_limit=history_limit)
        self._local = local_store if local_store is not None else InProcessLocalStore()
        self._records: list[Property] | None = None
        self._history: list[HistoryEntry] | None = None

    async def _restore(self, key: str, adapter: TypeAdapter) -> list:
        text = await self._local.get(key)
        if text is None:
            return []
        try:
            return adapter.validate_python(json.loads(text))
        except (ValueError, PydanticValidationError) as exc:
            raise AdapterError(f"Corrupt local-store value for {key!r}: {exc}") from exc

    async def _mirror(self, key: str, items: list) -> None:
        try:
            await self._local.set(key, json.dumps(dump_records(items), ensure_ascii=False))
        except Exception as exc:
            raise AdapterError(f"Failed to mirror {key!r} to local store: {exc}") from exc

    async def _load_records(self) -> list[Property]:
        if self._records is None:
            self._records = await self._restore(PROPERTIES_KEY, _RECORDS_ADAPTER)
            logger.debug("Loaded %d records from local store", len(self._records))
        return list(self._records)

    async def _save_records(self, records: list[Property]) -> None:
        snapshot = list(records)
        await self._mirror(PROPERTIES_KEY, snapshot)
        self._records = snapshot

    async def _load_history(self) -> list[HistoryEntry]:
        if self._history is None:
            self._history = await self._restore(HISTORY_KEY, _HISTORY_ADAPTER)
        return list(self._history)

    async def _save_history(self, entries: list[HistoryEntry]) -> None:
        snapshot = list(entries)
        await self._mirror(HISTORY_KEY, snapshot)
        self._history = snapshot

    async def close(self) -> None:
        await self._local.close()
