"""Identifier generation for Propscout records and history entries.

Identity contract
-----------------
Every stored :class:`~propscout.core.models.Property` receives an opaque id
at ingestion time.  The id is **never** derived from source data (source
identifiers are unreliable or missing for pasted content); deduplication
uses fingerprints instead (see :mod:`propscout.dedup`).

+-----------------+----------------------------------+
| Entity          | Example                          |
+=================+==================================+
| Property        | ``"prop-1718000000000-a1b2c3d4"`` |
+-----------------+----------------------------------+
| HistoryEntry    | ``"hist-1718000000000-9f8e7d6c"`` |
+-----------------+----------------------------------+

The millisecond timestamp keeps ids roughly sortable for humans reading the
JSON documents; the random suffix guarantees uniqueness when many records
are created within the same millisecond (one ingestion pass routinely
assembles several records concurrently).
"""

from __future__ import annotations

import logging
import time
import uuid

__all__ = [
    "new_property_id",
    "new_history_id",
    "new_file_token",
]

logger = logging.getLogger(__name__)

#: Separator character between the id prefix, timestamp and random suffix.
ID_SEPARATOR: str = "-"


def _make_id(prefix: str) -> str:
    millis = int(time.time() * 1000)
    return ID_SEPARATOR.join((prefix, str(millis), uuid.uuid4().hex[:8]))


def new_property_id() -> str:
    """Return a fresh, unique property id such as ``"prop-1718000000000-a1b2c3d4"``."""
    return _make_id("prop")


def new_history_id() -> str:
    """Return a fresh, unique history entry id."""
    return _make_id("hist")


def new_file_token() -> str:
    """Return a random token used as an image file name stem."""
    return uuid.uuid4().hex
