"""Client-local key/value stores mirroring the in-memory backend.

:class:`~propscout.storage.memory.MemoryStorage` keeps the corpus in process
memory and mirrors it, on every mutation, into a small key/value store that
outlives a single request: the moral equivalent of browser ``localStorage``.

Two implementations are provided:

* :class:`InProcessLocalStore` — a plain dict.  Survives only as long as the
  object does; the default when no path is configured.
* :class:`SqliteLocalStore` — a single ``local_store`` table in a SQLite
  file, accessed through :mod:`aiosqlite`.

Values are JSON text.  ``None`` from :meth:`LocalStore.get` means "key never
written", which the memory backend reads as an empty collection.

Typical usage::

    from propscout.storage.local_store import SqliteLocalStore

    store = await SqliteLocalStore.open("propscout-local.db")
    await store.set("propscout_properties", "[]")
    await store.close()
"""

from __future__ import annotations

import abc
import logging
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite

__all__ = [
    "PROPERTIES_KEY",
    "HISTORY_KEY",
    "LocalStore",
    "InProcessLocalStore",
    "SqliteLocalStore",
]

logger = logging.getLogger(__name__)

#: Local-store key holding the serialised record array.
PROPERTIES_KEY: str = "propscout_properties"

#: Local-store key holding the serialised history array.
HISTORY_KEY: str = "propscout_history"

# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

#: ``local_store`` is a flat key/value table.
#:
#: Column notes
#: ------------
#: key         Store key (``propscout_properties`` / ``propscout_history``).
#: value       JSON text of the full collection; rewritten wholesale.
#: updated_at  ISO-8601 UTC timestamp of the last write, for inspection only.
_DDL_LOCAL_STORE = """\
CREATE TABLE IF NOT EXISTS local_store (
    key         TEXT     NOT NULL,
    value       TEXT     NOT NULL,
    updated_at  TEXT     NOT NULL,
    PRIMARY KEY (key)
)"""


class LocalStore(abc.ABC):
    """Minimal async key/value interface used by the memory backend."""

    @abc.abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored text for *key*, or ``None`` if never written."""

    @abc.abstractmethod
    async def set(self, key: str, value: str) -> None:  # noqa: A003
        """Store *value* under *key*, replacing any previous value."""

    async def close(self) -> None:
        """Release resources.  The default implementation is a no-op."""


class InProcessLocalStore(LocalStore):
    """Dict-backed store; state lives exactly as long as the instance."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:  # noqa: A003
        self._data[key] = value


class SqliteLocalStore(LocalStore):
    """SQLite-backed store over a single open :class:`aiosqlite.Connection`.

    Build instances with :meth:`open`, which creates the file and bootstraps
    the schema.  The caller must :meth:`close` the store when done.

    Args:
        conn: Open connection with the ``local_store`` table present.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    @classmethod
    async def open(cls, path: str | Path) -> SqliteLocalStore:  # noqa: A003
        """Open (or create) the SQLite file at *path* and return a ready store.

        Steps performed on every call:

        1. Create parent directories for the DB file if they do not exist.
        2. Open the ``aiosqlite`` connection.
        3. Enable WAL journal mode.
        4. Create the ``local_store`` table (idempotent).

        Raises:
            aiosqlite.OperationalError: If the file cannot be opened or created.
        """
        db_path = Path(path)
        db_path.parent.mkdir(parents=True, exist_ok=True)

        logger.debug("Opening local store at %s", db_path)

        conn: aiosqlite.Connection = await aiosqlite.connect(db_path)
        result = await conn.execute("PRAGMA journal_mode=WAL")
        row = await result.fetchone()
        mode = row[0] if row else "unknown"
        if mode != "wal":
            logger.warning(
                "Requested WAL journal mode but SQLite reported: %r.",
                mode,
            )
        await conn.execute(_DDL_LOCAL_STORE)
        await conn.commit()

        logger.info("Local store ready at %s", db_path)
        return cls(conn)

    async def get(self, key: str) -> str | None:
        cursor = await self._conn.execute(
            "SELECT value FROM local_store WHERE key = ? LIMIT 1",
            (key,),
        )
        row = await cursor.fetchone()
        return None if row is None else row[0]

    async def set(self, key: str, value: str) -> None:  # noqa: A003
        await self._conn.execute(
            """
            INSERT INTO local_store (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, value, datetime.now(UTC).isoformat()),
        )
        await self._conn.commit()
        logger.debug("Local store key %s updated (%d chars)", key, len(value))

    async def close(self) -> None:
        await self._conn.close()
        logger.debug("Local store connection closed")
