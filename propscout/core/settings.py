"""Propscout application settings loaded from environment and ``.env`` files.

Uses :mod:`pydantic_settings` to parse environment variables (and optionally
an ``.env`` file) into a validated settings object.

The field name is the **lowercase** version of the env-var name (e.g.
``STORAGE_TYPE`` → ``storage_type``).

Typical usage::

    from propscout.core.settings import Settings

    settings = Settings()                 # loads from env + .env
    print(settings.effective_storage_type)  # "filesystem" / "memory"
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["Settings", "SERVERLESS_ENV_VARS"]

logger = logging.getLogger(__name__)

#: Presence of any of these variables means durable file access is unavailable.
SERVERLESS_ENV_VARS: tuple[str, ...] = ("VERCEL", "NETLIFY", "AWS_LAMBDA_FUNCTION_NAME")


class Settings(BaseSettings):
    """Central application configuration.

    Values are loaded in priority order:

    1. Actual environment variables (highest priority).
    2. ``.env`` file in the working directory.
    3. Field defaults (lowest priority).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    storage_type: str = Field(
        default="filesystem",
        description="Storage backend: 'filesystem' (durable) or 'memory' (ephemeral).",
    )
    data_dir: str = Field(
        default="data",
        description="Directory holding properties.json and history.json.",
    )
    local_storage_path: str = Field(
        default="",
        description=(
            "SQLite file mirroring the in-memory backend. Empty keeps the "
            "mirror inside the process."
        ),
    )
    history_limit: int = Field(
        default=50,
        ge=1,
        description="Number of most recent history entries retained.",
    )

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------
    image_root: str = Field(
        default="public/uploads/properties",
        description="Filesystem root for downloaded images (one dir per property).",
    )
    image_public_prefix: str = Field(
        default="/uploads/properties",
        description="Reference prefix stored on records for downloaded images.",
    )
    image_concurrency: int = Field(
        default=5,
        ge=1,
        description="Maximum number of image downloads in flight.",
    )
    image_timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Per-image request timeout in seconds.",
    )
    image_jitter_max: float = Field(
        default=1.0,
        ge=0.0,
        description="Upper bound of the random delay before each image request.",
    )
    image_batch_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="Fixed delay in seconds between image batches.",
    )

    # ------------------------------------------------------------------
    # Page fetching
    # ------------------------------------------------------------------
    fetch_timeout: float = Field(
        default=20.0,
        gt=0.0,
        description="Read timeout for page fetches in seconds.",
    )
    fetch_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Total attempts for a page fetch (transient failures only).",
    )

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------
    extractor: str = Field(
        default="propscout.collaborators.passthrough:NullExtractor",
        description="'module:attr' path of the extraction collaborator.",
    )
    enhancer: str = Field(
        default="propscout.collaborators.passthrough:PassthroughEnhancer",
        description="'module:attr' path of the enhancement collaborator.",
    )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------
    public_base_url: str = Field(
        default="http://localhost:9002",
        description="Base URL used to absolutise local image paths on export.",
    )

    # ------------------------------------------------------------------
    # Runtime flags
    # ------------------------------------------------------------------
    log_level: str = Field(default="INFO", description="Logging level.")
    log_format: str = Field(default="text", description="Log format: 'text' or 'json'.")

    # ------------------------------------------------------------------
    # Field validators
    # ------------------------------------------------------------------

    @field_validator("storage_type")
    @classmethod
    def _validate_storage_type(cls, v: str) -> str:
        allowed = {"filesystem", "memory"}
        v_lower = v.strip().lower()
        if v_lower not in allowed:
            raise ValueError(f"storage_type must be one of {allowed}, got {v!r}")
        return v_lower

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got {v!r}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def _validate_log_format(cls, v: str) -> str:
        allowed = {"text", "json"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got {v!r}")
        return v_lower

    @field_validator("image_public_prefix")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # ------------------------------------------------------------------
    # Model validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def _validate_collaborator_paths(self) -> Settings:
        """Collaborator paths must look like ``package.module:attribute``."""
        for name in ("extractor", "enhancer"):
            value = getattr(self, name)
            module, _, attr = value.partition(":")
            if not module or not attr:
                raise ValueError(f"{name} must be a 'module:attr' path, got {value!r}")
        return self

    # ------------------------------------------------------------------
    # Derived helpers
    # ------------------------------------------------------------------

    @property
    def serverless(self) -> bool:
        """``True`` when running on a platform without durable file access."""
        return any(os.environ.get(name) for name in SERVERLESS_ENV_VARS)

    @property
    def effective_storage_type(self) -> str:
        """Backend actually used: serverless platforms always get ``memory``."""
        if self.serverless:
            return "memory"
        return self.storage_type

    @property
    def data_dir_resolved(self) -> Path:
        """Return the data directory as a resolved :class:`~pathlib.Path`."""
        return Path(self.data_dir).resolve()

    @property
    def image_root_resolved(self) -> Path:
        return Path(self.image_root).resolve()
