"""Core domain models, settings, logging configuration, and shared utilities."""

from propscout.core.criteria import HistoryFilter, PropertyFilter
from propscout.core.exceptions import (
    AdapterError,
    AllDuplicatesError,
    CollaboratorError,
    ConfigError,
    NetworkError,
    NotFoundError,
    PropscoutError,
    RateLimitedError,
    StorageError,
    ValidationError,
)
from propscout.core.logging_config import JsonFormatter, configure_logging, ingest_scope
from propscout.core.models import (
    CandidateProperty,
    HistoryEntry,
    HistoryEntryCreate,
    HistoryKind,
    Property,
    ScrapeOrigin,
)
from propscout.core.settings import Settings

__all__ = [
    # Logging
    "configure_logging",
    "ingest_scope",
    "JsonFormatter",
    # Domain models
    "Property",
    "CandidateProperty",
    "ScrapeOrigin",
    "HistoryEntry",
    "HistoryEntryCreate",
    "HistoryKind",
    # Settings
    "Settings",
    # Query criteria
    "PropertyFilter",
    "HistoryFilter",
    # Exceptions: base
    "PropscoutError",
    # Exceptions: config / input
    "ConfigError",
    "ValidationError",
    # Exceptions: network
    "NetworkError",
    "RateLimitedError",
    # Exceptions: storage
    "StorageError",
    "AdapterError",
    "NotFoundError",
    # Exceptions: dedup / collaborators
    "AllDuplicatesError",
    "CollaboratorError",
]
