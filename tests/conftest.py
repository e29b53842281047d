"""Shared pytest fixtures and configuration for the Propscout test suite.

This file is loaded automatically by pytest before any test module.
It provides project-wide fixtures used across unit and integration tests.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest
from pydantic_settings import SettingsConfigDict

from propscout.core import configure_logging
from propscout.core.ids import new_property_id
from propscout.core.models import Property, ScrapeOrigin
from propscout.core.settings import Settings
from propscout.storage.base import StorageAdapter
from propscout.storage.filesystem import FilesystemStorage
from propscout.storage.memory import MemoryStorage

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _configure_test_logging() -> None:
    """Force DEBUG logging in text format for every test.

    ``model_construct`` skips env loading, so a stray ``LOG_*`` variable
    cannot change test output; ``force=True`` replaces any handler pytest
    installed first.
    """
    configure_logging(Settings.model_construct(log_level="DEBUG", log_format="text"), force=True)


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove every Propscout-relevant env var for the duration of a test.

    Also disables pydantic-settings `.env` file loading so that values in a
    local `.env` file do not leak into Settings isolation tests.
    """
    prefixes = (
        "STORAGE_",
        "DATA_DIR",
        "LOCAL_STORAGE_",
        "HISTORY_",
        "IMAGE_",
        "FETCH_",
        "EXTRACTOR",
        "ENHANCER",
        "PUBLIC_BASE_URL",
        "LOG_LEVEL",
        "LOG_FORMAT",
        "VERCEL",
        "NETLIFY",
        "AWS_LAMBDA_",
    )
    for key in list(os.environ):
        if any(key.startswith(prefix) for prefix in prefixes):
            monkeypatch.delenv(key, raising=False)

    monkeypatch.setattr(
        Settings,
        "model_config",
        SettingsConfigDict(
            env_file=None,
            env_file_encoding="utf-8",
            extra="ignore",
        ),
    )


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_property() -> Callable[..., Property]:
    """Return a factory building valid :class:`Property` records.

    Every call gets a fresh id; keyword arguments override any field.
    ``title`` also seeds ``original_title`` unless that is given too.
    """

    def _make(**overrides: Any) -> Property:
        title = overrides.pop("title", "Sunny 2BR apartment")
        fields: dict[str, Any] = {
            "id": new_property_id(),
            "source_url": "https://homes.example/listing/1",
            "origin": ScrapeOrigin.URL,
            "scraped_at": datetime(2024, 1, 3, 12, 0, tzinfo=UTC),
            "title": title,
            "original_title": title,
            "description": "Bright flat close to the metro.",
            "price": "AED 85,000",
            "location": "Dubai Marina",
            "city": "Dubai",
            "property_type": "Apartment",
            "bedrooms": 2,
            "bathrooms": 2,
        }
        fields.update(overrides)
        return Property(**fields)

    return _make


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


@pytest.fixture(params=["filesystem", "memory"])
async def storage(request: pytest.FixtureRequest, tmp_path: Path) -> AsyncGenerator[StorageAdapter, None]:
    """Yield each storage backend in turn, backed by a per-test temp dir."""
    adapter: StorageAdapter
    if request.param == "filesystem":
        adapter = FilesystemStorage(tmp_path / "data")
    else:
        adapter = MemoryStorage()
    async with adapter:
        yield adapter


# ---------------------------------------------------------------------------
# Misc helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def logger() -> logging.Logger:
    """Return a ``logging.Logger`` scoped to the running test."""
    return logging.getLogger("tests")
