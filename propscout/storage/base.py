"""Abstract storage adapter contract.

Every persistence backend implements :class:`StorageAdapter`.  The ingestion
pipeline and the query service receive an adapter instance by injection and
never know which backend sits behind it.

Contract shared by all backends
-------------------------------
* ``list_records`` returns a full snapshot in stored order.  Writers keep the
  corpus most-recent-first by prepending new records.
* Every mutating call rewrites the affected collection wholesale; partial
  writes are never observable.
* ``upsert_one`` on an unknown id raises
  :exc:`~propscout.core.exceptions.NotFoundError`; ``delete_one`` on an
  unknown id only logs a warning.
* History is bounded to the most recent ``history_limit`` entries; the
  adapter assigns ``id`` and ``date`` to every appended entry.

Backends MUST produce identical observable results for identical call
sequences.  Shared record/history bookkeeping therefore lives here, and a
backend only supplies the four primitive loaders/savers.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from types import TracebackType

from propscout.core import events
from propscout.core.exceptions import NotFoundError
from propscout.core.ids import new_history_id
from propscout.core.models import HistoryEntry, HistoryEntryCreate, Property

__all__ = [
    "DEFAULT_HISTORY_LIMIT",
    "DeleteManyResult",
    "StorageStats",
    "StorageAdapter",
]

logger = logging.getLogger(__name__)

#: Number of history entries retained when the caller does not say otherwise.
DEFAULT_HISTORY_LIMIT: int = 50


@dataclass(frozen=True)
class DeleteManyResult:
    """Outcome of a bulk delete by id set.

    ``not_found_count`` is always ``requested - deleted_count``.
    """

    deleted_count: int
    not_found_count: int


@dataclass(frozen=True)
class StorageStats:
    record_count: int
    history_count: int


class StorageAdapter(abc.ABC):
    """Abstract base class for all corpus storage backends.

    Subclasses implement the four ``_load_*`` / ``_save_*`` primitives; the
    public operations below are written once in terms of them.

    Adapters are async context managers::

        async with FilesystemStorage(data_dir) as storage:
            records = await storage.list_records()

    Args:
        history_limit: Maximum number of history entries kept (newest win).
    """

    #: Short backend label used in log messages (``"filesystem"`` / ``"memory"``).
    name: str = "abstract"

    def __init__(self, *, history_limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        if history_limit < 1:
            raise ValueError(f"history_limit must be >= 1, got {history_limit}")
        self._history_limit = history_limit

    # ------------------------------------------------------------------
    # Backend primitives
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def _load_records(self) -> list[Property]:
        """Return the stored record array (``[]`` when nothing is stored)."""

    @abc.abstractmethod
    async def _save_records(self, records: list[Property]) -> None:
        """Replace the stored record array wholesale."""

    @abc.abstractmethod
    async def _load_history(self) -> list[HistoryEntry]:
        """Return the stored history array, newest first."""

    @abc.abstractmethod
    async def _save_history(self, entries: list[HistoryEntry]) -> None:
        """Replace the stored history array wholesale."""

    async def close(self) -> None:
        """Release backend resources.  The default implementation is a no-op."""

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    async def list_records(self) -> list[Property]:
        return await self._load_records()

    async def replace_all(self, records: list[Property]) -> None:
        """Atomically replace the whole corpus with *records*."""
        await self._save_records(list(records))
        logger.debug("[%s] Corpus replaced (%d records)", self.name, len(records))

    async def upsert_one(self, record: Property) -> Property:
        """Replace the stored record whose id matches *record*.

        Raises:
            NotFoundError: If no stored record has ``record.id``.
        """
        records = await self._load_records()
        for index, existing in enumerate(records):
            if existing.id == record.id:
                records[index] = record
                await self._save_records(records)
                logger.debug("[%s] Updated property %s", self.name, record.id)
                return record
        raise NotFoundError(record.id)

    async def delete_one(self, property_id: str) -> bool:
        """Remove the record with *property_id*.

        Returns:
            ``True`` if a record was removed.  A missing id is logged and
            reported as ``False`` rather than raised.
        """
        records = await self._load_records()
        remaining = [r for r in records if r.id != property_id]
        if len(remaining) == len(records):
            logger.warning(
                "[%s] Property %s not found for deletion",
                self.name,
                property_id,
                extra={"event": events.STORAGE_DELETE_MISSING},
            )
            return False
        await self._save_records(remaining)
        logger.debug("[%s] Deleted property %s", self.name, property_id)
        return True

    async def delete_many(self, property_ids: list[str]) -> DeleteManyResult:
        """Remove every record whose id is in *property_ids*.

        ``deleted_count`` never exceeds ``len(property_ids)``; repeated ids in
        the request are counted once each toward ``not_found_count``.
        """
        requested = len(property_ids)
        if requested == 0:
            return DeleteManyResult(deleted_count=0, not_found_count=0)

        wanted = set(property_ids)
        records = await self._load_records()
        remaining = [r for r in records if r.id not in wanted]
        deleted = min(len(records) - len(remaining), requested)

        if deleted:
            await self._save_records(remaining)

        logger.info(
            "[%s] Bulk delete: %d requested, %d deleted, %d not found",
            self.name,
            requested,
            deleted,
            requested - deleted,
        )
        return DeleteManyResult(deleted_count=deleted, not_found_count=requested - deleted)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def list_history(self) -> list[HistoryEntry]:
        return await self._load_history()

    async def append_history(self, entry: HistoryEntryCreate) -> HistoryEntry:
        """Record one ingestion operation and return the stored entry.

        The new entry goes to the front; entries beyond ``history_limit`` are
        evicted oldest first.
        """
        stored = HistoryEntry(
            id=new_history_id(),
            date=datetime.now(UTC),
            **entry.model_dump(),
        )
        entries = await self._load_history()
        entries.insert(0, stored)
        await self._save_history(entries[: self._history_limit])
        logger.debug(
            "[%s] History appended: %s (%d properties)",
            self.name,
            stored.kind,
            stored.property_count,
        )
        return stored

    async def clear_history(self) -> None:
        await self._save_history([])
        logger.info("[%s] History cleared", self.name)

    # ------------------------------------------------------------------
    # Stats & lifecycle
    # ------------------------------------------------------------------

    async def stats(self) -> StorageStats:
        records = await self._load_records()
        history = await self._load_history()
        return StorageStats(record_count=len(records), history_count=len(history))

    async def __aenter__(self) -> StorageAdapter:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
