"""Propscout exception taxonomy.

Every custom exception inherits from :class:`PropscoutError`.  Exceptions are
organised by architectural layer so callers can catch at the right granularity:

    Layer hierarchy
    ---------------
    PropscoutError
    ├── ConfigError
    ├── ValidationError
    ├── NetworkError
    │   └── RateLimitedError
    ├── StorageError
    │   ├── AdapterError
    │   └── NotFoundError
    ├── AllDuplicatesError
    └── CollaboratorError

Usage:

    from propscout.core.exceptions import NetworkError

    raise NetworkError(url, "Connection refused") from exc
"""

from __future__ import annotations

import logging

__all__ = [
    "PropscoutError",
    # Config
    "ConfigError",
    # Ingestion input
    "ValidationError",
    # Network
    "NetworkError",
    "RateLimitedError",
    # Storage
    "StorageError",
    "AdapterError",
    "NotFoundError",
    # Dedup
    "AllDuplicatesError",
    # Collaborators
    "CollaboratorError",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class PropscoutError(Exception):
    """Root exception for all Propscout errors.

    Catch this to handle any application-level error uniformly.  Prefer
    catching layer-specific subclasses wherever possible.
    """


# ---------------------------------------------------------------------------
# Config layer
# ---------------------------------------------------------------------------


class ConfigError(PropscoutError):
    """Raised when the application configuration is invalid or incomplete.

    Examples:
        - ``STORAGE_TYPE`` names an unsupported backend.
        - A collaborator import path cannot be resolved at startup.
    """


# ---------------------------------------------------------------------------
# Ingestion input
# ---------------------------------------------------------------------------


class ValidationError(PropscoutError):
    """Raised when an ingestion entry point receives empty or malformed input.

    Aborts the current invocation only; nothing has been fetched or written
    when this is raised.
    """


# ---------------------------------------------------------------------------
# Network layer
# ---------------------------------------------------------------------------


class NetworkError(PropscoutError):
    """Raised when a page fetch fails.

    Covers transport errors, timeouts, and non-2xx responses.  Individual
    image downloads never raise this; their failures are counted instead.

    Args:
        url: The URL (or host label) that failed.
        message: Human-readable error description.
    """

    def __init__(self, url: str, message: str) -> None:
        self.url = url
        super().__init__(f"[{url}] {message}")


class RateLimitedError(NetworkError):
    """Raised when a host answers HTTP 429 and retries are exhausted.

    Args:
        url: The URL (or host label) that was rate limited.
        retry_after: Recommended back-off interval in seconds, if known.
    """

    def __init__(self, url: str, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        detail = f"retry after {retry_after}s" if retry_after is not None else "no retry hint"
        super().__init__(url, f"Rate limited, {detail}")


# ---------------------------------------------------------------------------
# Storage layer
# ---------------------------------------------------------------------------


class StorageError(PropscoutError):
    """Base class for persistence errors."""


class AdapterError(StorageError):
    """Wraps an underlying I/O or decode failure inside a storage backend.

    The ingestion pipeline surfaces this to the caller unchanged; no
    automatic retry is attempted.
    """


class NotFoundError(StorageError):
    """Raised when a single-record update targets an id that is not stored.

    Args:
        property_id: The id that could not be found.
    """

    def __init__(self, property_id: str) -> None:
        self.property_id = property_id
        super().__init__(f"Property with id {property_id!r} not found")


# ---------------------------------------------------------------------------
# Deduplication
# ---------------------------------------------------------------------------


class AllDuplicatesError(PropscoutError):
    """Raised when every candidate of a non-empty batch is already stored.

    Distinguishes "nothing new was found" from "nothing was submitted"
    (the latter is a silent no-op).

    Args:
        submitted: Number of candidates in the rejected batch.
    """

    def __init__(self, submitted: int) -> None:
        self.submitted = submitted
        super().__init__(
            f"All {submitted} properties already exist in the database."
        )


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class CollaboratorError(PropscoutError):
    """Raised when an extraction or enhancement collaborator cannot be loaded."""
