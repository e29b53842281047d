"""Propscout core domain models.

This module defines the canonical :class:`Property` record and every related
type shared across the storage, deduplication, image, query, and ingestion
layers.

Extraction collaborators hand back :class:`CandidateProperty` objects; the
ingestion pipeline enriches each candidate with an id, provenance, enhanced
text and resolved images before assembling the final :class:`Property`.

Typical usage::

    from propscout.core.models import Property, ScrapeOrigin

    record = Property(
        id="prop-1718000000000-a1b2c3d4",
        source_url="https://example.com/listing/42",
        origin=ScrapeOrigin.URL,
        title="Sunny 2BR apartment",
        price="AED 85,000 / year",
        bedrooms=2,
        bathrooms=2,
    )
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator

__all__ = [
    "PLACEHOLDER_IMAGE_URL",
    "RAW_SOURCE_URL",
    "ScrapeOrigin",
    "HistoryKind",
    "CandidateProperty",
    "Property",
    "EnhancedContent",
    "HistoryEntryCreate",
    "HistoryEntry",
    "dump_records",
]

logger = logging.getLogger(__name__)

#: Sentinel image reference used when a record ends up with no images.
PLACEHOLDER_IMAGE_URL: str = "https://placehold.co/600x400.png"

#: ``source_url`` stored on records ingested from pasted raw content.
RAW_SOURCE_URL: str = "scraped-from-html"

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ScrapeOrigin(StrEnum):
    """How a record entered the corpus.

    ``URL`` records carry a reliable page URL; ``RAW`` records were extracted
    from pasted content and their ``source_url`` cannot be used for identity.
    """

    URL = "url"
    RAW = "raw"


class HistoryKind(StrEnum):
    """Kind of ingestion operation recorded in the history log."""

    URL = "URL"
    HTML = "HTML"
    BULK = "BULK"


# ---------------------------------------------------------------------------
# Shared coercion helpers
# ---------------------------------------------------------------------------


def _coerce_text(v: object) -> object:
    if v is None:
        return ""
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return v


def _coerce_count(v: object) -> object:
    """Accept ``None``, floats and digit strings for integer count fields."""
    if v is None or v == "":
        return 0
    if isinstance(v, float):
        return int(v)
    if isinstance(v, str):
        digits = "".join(ch for ch in v if ch.isdigit())
        return int(digits) if digits else 0
    return v


def _coerce_str_list(v: object) -> object:
    if v is None:
        return []
    if isinstance(v, str):
        return [v] if v.strip() else []
    if isinstance(v, (list, tuple)):
        return [str(item) for item in v if item is not None and str(item).strip()]
    return v


_TEXT_FIELDS = (
    "title",
    "description",
    "price",
    "area",
    "property_type",
    "transaction_type",
    "furnish_type",
    "tenant_type",
    "rental_timing",
    "location",
    "city",
    "county",
    "neighborhood",
    "permit_number",
    "ded_license_number",
    "rera_registration_number",
    "reference_id",
    "dld_brn",
    "listed_by_name",
    "listed_by_phone",
    "listed_by_email",
    "mortgage",
    "terms_and_condition",
    "page_link",
    "matterport_link",
    "validated_information",
    "building_information",
)


# ---------------------------------------------------------------------------
# Listing content shared by candidates and stored records
# ---------------------------------------------------------------------------


class _ListingFields(BaseModel):
    """Field set common to extracted candidates and stored records.

    Numeric-looking values such as ``price`` and ``area`` are kept as
    free-form text so the source formatting survives; they are normalised
    only at export time.  Unknown counts are ``0`` and unknown text is
    ``""``, matching what the extraction collaborator emits.
    """

    title: str = ""
    description: str = ""
    price: str = ""
    area: str = ""
    bedrooms: int = Field(default=0, ge=0)
    bathrooms: int = Field(default=0, ge=0)
    floor_number: int = 0

    property_type: str = ""
    transaction_type: str = ""
    furnish_type: str = ""
    tenant_type: str = ""
    rental_timing: str = ""

    location: str = ""
    city: str = ""
    county: str = ""
    neighborhood: str = ""

    image_urls: list[str] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)

    permit_number: str = ""
    ded_license_number: str = ""
    rera_registration_number: str = ""
    reference_id: str = ""
    dld_brn: str = ""

    listed_by_name: str = ""
    listed_by_phone: str = ""
    listed_by_email: str = ""

    mortgage: str = ""
    terms_and_condition: str = ""
    page_link: str = ""
    matterport_link: str = ""
    validated_information: str = ""
    building_information: str = ""

    @field_validator(*_TEXT_FIELDS, mode="before")
    @classmethod
    def _text_or_empty(cls, v: object) -> object:
        """Coerce ``None`` to ``""`` and bare numbers to their string form."""
        return _coerce_text(v)

    @field_validator("bedrooms", "bathrooms", "floor_number", mode="before")
    @classmethod
    def _count_or_zero(cls, v: object) -> object:
        return _coerce_count(v)

    @field_validator("image_urls", "features", mode="before")
    @classmethod
    def _list_of_strings(cls, v: object) -> object:
        return _coerce_str_list(v)


class CandidateProperty(_ListingFields):
    """A listing as returned by the extraction collaborator.

    Candidates carry no identity or provenance yet, and their ``image_urls``
    may still be relative to the page they were extracted from.
    """

    model_config = {"extra": "ignore"}


class Property(_ListingFields):
    """Normalised, stored representation of a real-estate listing.

    The model is **frozen**: an edit produces a new instance via
    :meth:`~pydantic.BaseModel.model_copy` and the storage layer replaces
    the stored record wholesale.

    Attributes:
        id: Opaque identifier generated at ingestion time.  Unique within
            the corpus and never changed afterwards.
        source_url: Page the record was scraped from, or
            :data:`RAW_SOURCE_URL` for pasted content.
        origin: Whether ``source_url`` is reliable (``URL``) or not (``RAW``).
        scraped_at: UTC timestamp of the ingestion pass.
        original_title: Title exactly as extracted.
        original_description: Description exactly as extracted.
        enhanced_title: Rewritten title; display-primary once produced.
        enhanced_description: Rewritten description.
        image_url: Primary image reference (first of ``image_urls``).
    """

    model_config = {"frozen": True, "extra": "ignore"}

    id: str = Field(..., min_length=1)
    source_url: str = Field(..., min_length=1)
    origin: ScrapeOrigin = ScrapeOrigin.URL
    scraped_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    original_title: str = ""
    original_description: str = ""
    enhanced_title: str = ""
    enhanced_description: str = ""

    image_url: str = ""

    @field_validator(
        "original_title",
        "original_description",
        "enhanced_title",
        "enhanced_description",
        "image_url",
        mode="before",
    )
    @classmethod
    def _extra_text_or_empty(cls, v: object) -> object:
        return _coerce_text(v)

    @field_validator("scraped_at")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC so date filtering stays comparable."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @property
    def display_title(self) -> str:
        """Enhanced title when present, otherwise the stored title."""
        return self.enhanced_title or self.title

    @property
    def display_description(self) -> str:
        return self.enhanced_description or self.description


class EnhancedContent(BaseModel):
    """Output of the text enhancement collaborator."""

    enhanced_title: str
    enhanced_description: str

    @classmethod
    def echo(cls, title: str, description: str) -> EnhancedContent:
        """Return the input pair unchanged; used when enhancement fails."""
        return cls(enhanced_title=title, enhanced_description=description)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


class HistoryEntryCreate(BaseModel):
    """Caller-supplied part of a history entry; id and date are assigned on save."""

    kind: HistoryKind
    details: str = ""
    property_count: int = Field(default=0, ge=0)


class HistoryEntry(HistoryEntryCreate):
    """One recorded ingestion operation.  Never mutated after creation."""

    model_config = {"frozen": True}

    id: str = Field(..., min_length=1)
    date: datetime

    @field_validator("date")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


def dump_records(items: list[BaseModel]) -> list[dict[str, Any]]:
    """Serialise models into JSON-compatible dicts (shared by storage backends)."""
    return [item.model_dump(mode="json") for item in items]
