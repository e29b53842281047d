"""Durable JSON-document storage backend.

The corpus lives in two independent documents under ``data_dir``:

* ``properties.json`` — the full record array.
* ``history.json``    — the full history array (newest first).

Each document is rewritten wholesale on every mutating call.  Writes go to a
sibling temp file first and are moved into place with :func:`os.replace`, so
a crash mid-write never leaves a truncated document behind.  Blocking file
I/O runs in a worker thread via :func:`asyncio.to_thread`.

Access model: a single process owns ``data_dir``; there is no cross-process
locking.

Typical usage::

    from propscout.storage.filesystem import FilesystemStorage

    async with FilesystemStorage("data") as storage:
        await storage.replace_all(records)
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from propscout.core.exceptions import AdapterError
from propscout.core.models import HistoryEntry, Property, dump_records
from propscout.storage.base import DEFAULT_HISTORY_LIMIT, StorageAdapter

__all__ = ["PROPERTIES_FILE", "HISTORY_FILE", "FilesystemStorage"]

logger = logging.getLogger(__name__)

PROPERTIES_FILE: str = "properties.json"
HISTORY_FILE: str = "history.json"

_RECORDS_ADAPTER = TypeAdapter(list[Property])
_HISTORY_ADAPTER = TypeAdapter(list[HistoryEntry])


def _read_document(path: Path) -> list[Any]:
    if not path.exists():
        return []
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return []
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError(f"expected a JSON array, got {type(data).__name__}")
    return data


def _write_document(path: Path, payload: list[dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2, ensure_ascii=False)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class FilesystemStorage(StorageAdapter):
    """Durable backend persisting the corpus as two JSON documents.

    Args:
        data_dir: Directory holding ``properties.json`` and ``history.json``.
            Created on first write.
        history_limit: Maximum number of history entries kept.
    """

    name = "filesystem"

    def __init__(
        self,
        data_dir: str | Path,
        *,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        super().__init__(history_limit=history_limit)
        self._data_dir = Path(data_dir)
        self._properties_path = self._data_dir / PROPERTIES_FILE
        self._history_path = self._data_dir / HISTORY_FILE

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    # ------------------------------------------------------------------
    # Document I/O
    # ------------------------------------------------------------------

    async def _read(self, path: Path, adapter: TypeAdapter[Any]) -> list[Any]:
        try:
            raw = await asyncio.to_thread(_read_document, path)
            return adapter.validate_python(raw)
        except (OSError, ValueError, PydanticValidationError) as exc:
            # json.JSONDecodeError is a ValueError subclass.
            raise AdapterError(f"Failed to read {path}: {exc}") from exc

    async def _write(self, path: Path, items: list[BaseModel]) -> None:
        try:
            await asyncio.to_thread(_write_document, path, dump_records(items))
        except (OSError, TypeError, ValueError) as exc:
            raise AdapterError(f"Failed to write {path}: {exc}") from exc
        logger.debug("Wrote %d items to %s", len(items), path)

    async def _load_records(self) -> list[Property]:
        return await self._read(self._properties_path, _RECORDS_ADAPTER)

    async def _save_records(self, records: list[Property]) -> None:
        await self._write(self._properties_path, list(records))

    async def _load_history(self) -> list[HistoryEntry]:
        return await self._read(self._history_path, _HISTORY_ADAPTER)

    async def _save_history(self, entries: list[HistoryEntry]) -> None:
        await self._write(self._history_path, list(entries))
