"""Logging setup for propscout.

The CLI loads :class:`~propscout.core.settings.Settings` first and then calls
``configure_logging(settings)`` once, so ``LOG_LEVEL`` / ``LOG_FORMAT`` are
taken from the environment or ``.env`` and validated in a single place.
Modules log through their own ``logging.getLogger(__name__)``.

Each ingestion entry point runs inside :func:`ingest_scope`, which binds a
short run id to :data:`INGEST_ID_CTX`.  Tasks started with
``asyncio.gather`` inherit it, so image downloads and enhancement calls log
under the run that started them.  :class:`IngestContextFilter` copies the
run id, and the ``event`` name passed through ``extra``, onto every record:

* text:  ``2024-01-03 12:00:00 INFO     propscout.orchestrator.pipeline [a3f2b1c0] Persisted 2 new record(s)``
* json:  ``{"ts": ..., "level": "INFO", "logger": ..., "ingest_id": "a3f2b1c0", "event": "INGEST_PERSISTED", "message": ...}``
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from propscout.core.settings import Settings

__all__ = [
    "configure_logging",
    "ingest_scope",
    "JsonFormatter",
    "INGEST_ID_CTX",
    "IngestContextFilter",
    "NO_INGEST",
]

#: Run id shown on records logged outside any ingestion.
NO_INGEST = "-"

INGEST_ID_CTX: ContextVar[str] = ContextVar("ingest_id", default=NO_INGEST)

_TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s [%(ingest_id)s] %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty at INFO; only shown when propscout itself runs at DEBUG.
_QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite")


@contextmanager
def ingest_scope(ingest_id: str | None = None) -> Iterator[str]:
    """Bind *ingest_id* (or a fresh 8-char hex id) for the enclosed block."""
    run_id = ingest_id or uuid.uuid4().hex[:8]
    token = INGEST_ID_CTX.set(run_id)
    try:
        yield run_id
    finally:
        INGEST_ID_CTX.reset(token)


class IngestContextFilter(logging.Filter):
    """Stamp ``ingest_id`` and ``event`` on each record that passes."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.ingest_id = INGEST_ID_CTX.get()
        if not hasattr(record, "event"):
            record.event = None
        return True


def configure_logging(settings: Settings, *, force: bool = False) -> None:
    """Install one stderr handler on the root logger.

    Args:
        settings: Supplies the already-validated ``log_level`` and
            ``log_format``.
        force: Replace existing root handlers.  Without it, a process that
            already has handlers (pytest, an embedding application) only
            gets its level adjusted.
    """
    level = settings.log_level
    root = logging.getLogger()

    if root.handlers and not force:
        root.setLevel(level)
        return

    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(IngestContextFilter())
    if settings.log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT, _DATE_FORMAT))

    root.addHandler(handler)
    root.setLevel(level)

    quiet_level = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)


# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "ingest_id",
    "event",
}


class JsonFormatter(logging.Formatter):
    """Render a record as one JSON line.

    ``ingest_id`` and ``event`` are top-level keys (``event`` is ``null``
    for plain log calls).  Any other ``extra`` values are grouped under
    ``"extra"``, which is omitted when empty.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        created = datetime.fromtimestamp(record.created, tz=UTC)
        payload: dict[str, Any] = {
            "ts": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "ingest_id": getattr(record, "ingest_id", INGEST_ID_CTX.get()),
            "event": getattr(record, "event", None),
            "message": record.getMessage(),
        }
        extra = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(payload, default=str, ensure_ascii=False)
