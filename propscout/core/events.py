"""Structured log event name constants for the Propscout ingestion pipeline.

Every key transition emits a log record with an ``event`` field (passed via
``extra={"event": events.X}``).  In ``LOG_FORMAT=json`` mode the value is the
top-level ``event`` key; in text mode the message text is self-describing.

Usage example::

    import logging
    from propscout.core import events

    logger = logging.getLogger(__name__)

    logger.info("Ingestion started", extra={"event": events.INGEST_START})
"""

from __future__ import annotations

__all__ = [
    # Ingestion lifecycle
    "INGEST_START",
    "INGEST_FETCHED",
    "INGEST_EXTRACTED",
    "INGEST_PROCESSED",
    "INGEST_PERSISTED",
    "INGEST_DONE",
    "INGEST_FAILED",
    # Bulk
    "BULK_START",
    "BULK_URL_FAILED",
    "BULK_DONE",
    # Per-record
    "PROPERTY_DUPLICATE",
    "ENHANCE_FALLBACK",
    # Images
    "IMAGE_BATCH_DONE",
    "IMAGE_DOWNLOAD_FAILED",
    "IMAGES_REPAIRED",
    # Contacts
    "CONTACTS_APPLIED",
    # Storage
    "STORAGE_DELETE_MISSING",
]

# ---------------------------------------------------------------------------
# Ingestion lifecycle
# ---------------------------------------------------------------------------

#: An ingestion entry point accepted its input.
INGEST_START: str = "INGEST_START"

#: The page content was retrieved.
INGEST_FETCHED: str = "INGEST_FETCHED"

#: The extraction collaborator returned its candidates.
INGEST_EXTRACTED: str = "INGEST_EXTRACTED"

#: Images and enhanced text were resolved for every candidate.
INGEST_PROCESSED: str = "INGEST_PROCESSED"

#: New records were written to storage.
INGEST_PERSISTED: str = "INGEST_PERSISTED"

#: The ingestion pass completed and its history entry was appended.
INGEST_DONE: str = "INGEST_DONE"

#: The ingestion pass failed (validation, network, or all duplicates).
INGEST_FAILED: str = "INGEST_FAILED"

# ---------------------------------------------------------------------------
# Bulk
# ---------------------------------------------------------------------------

BULK_START: str = "BULK_START"

#: One URL of a bulk run failed; the run continues with the next URL.
BULK_URL_FAILED: str = "BULK_URL_FAILED"

BULK_DONE: str = "BULK_DONE"

# ---------------------------------------------------------------------------
# Per-record
# ---------------------------------------------------------------------------

#: A candidate collided with an existing record and was skipped.
PROPERTY_DUPLICATE: str = "PROPERTY_DUPLICATE"

#: Enhancement failed; the original title/description were kept.
ENHANCE_FALLBACK: str = "ENHANCE_FALLBACK"

# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

IMAGE_BATCH_DONE: str = "IMAGE_BATCH_DONE"

IMAGE_DOWNLOAD_FAILED: str = "IMAGE_DOWNLOAD_FAILED"

IMAGES_REPAIRED: str = "IMAGES_REPAIRED"

# ---------------------------------------------------------------------------
# Contacts
# ---------------------------------------------------------------------------

#: A bulk pass filled empty contact fields from listing text.
CONTACTS_APPLIED: str = "CONTACTS_APPLIED"

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

#: ``delete_one`` was asked to remove an id that is not stored.
STORAGE_DELETE_MISSING: str = "STORAGE_DELETE_MISSING"
