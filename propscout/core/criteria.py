"""Propscout query criteria models.

Defines :class:`PropertyFilter`, the single data structure describing *which
records a caller is interested in*, and :class:`HistoryFilter`, its
counterpart for the ingestion history log.

Filters arrive from callers (CLI flags, JSON payloads) in camelCase
(``startDate``, ``propertyType``, ...); both spellings are accepted because
the models populate by field name as well as by alias.  Filters are
immutable once built.

Typical usage::

    from propscout.core.criteria import PropertyFilter

    criteria = PropertyFilter.model_validate(
        {"startDate": "2024-01-01", "endDate": "2024-01-05", "propertyType": "Villa"}
    )

    if criteria.matches_property_type(record.property_type):
        ...  # proceed
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, date, datetime, time

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from propscout.core.models import HistoryKind

__all__ = ["PropertyFilter", "HistoryFilter", "extract_price", "end_of_day"]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_WHITESPACE_RE = re.compile(r"\s+")
_PRICE_RE = re.compile(r"[\d,]+")

#: Last representable millisecond of a day; the end bound of a date range.
_END_OF_DAY = time(23, 59, 59, 999000)


def _normalise(text: str) -> str:
    """Lowercase and collapse internal whitespace for case-insensitive matching."""
    return _WHITESPACE_RE.sub(" ", text).strip().lower()


def _as_utc(value: date | datetime) -> datetime:
    if not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=UTC)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def end_of_day(value: date | datetime) -> datetime:
    """Return 23:59:59.999 UTC on the calendar date of *value*.

    The time-of-day part of *value* is discarded: an end bound always covers
    the whole day it names.
    """
    return datetime.combine(_as_utc(value).date(), _END_OF_DAY, tzinfo=UTC)


def _parse_bound(value: object) -> object:
    """Accept ISO date-only strings and plain dates as datetime bounds."""
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        return datetime.fromisoformat(text)
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    return value


def extract_price(text: str) -> int | None:
    """Parse the first run of digits and commas in *text* as an integer.

    ``"AED 1,250,000"`` → ``1250000``.  Returns ``None`` when *text* holds no
    digits, so callers can treat the price as unknown.
    """
    match = _PRICE_RE.search(text or "")
    if match is None:
        return None
    digits = match.group(0).replace(",", "")
    if not digits:
        return None
    return int(digits)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class PropertyFilter(BaseModel):
    """Predicate over stored records.

    All bounds are *inclusive*.  ``None`` means "no constraint on this axis."

    Attributes:
        start_date: Records scraped before this instant are excluded.  A bare
            date means midnight UTC.
        end_date: Records scraped after 23:59:59.999 UTC of this date are
            excluded.
        property_type: Case-insensitive exact match on ``property_type``.
        location: Case-insensitive substring matched against location, city,
            county and neighbourhood; any hit passes.
        min_price: Lower bound on the numeric part of ``price``.
        max_price: Upper bound on the numeric part of ``price``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    start_date: datetime | None = Field(None, alias="startDate")
    end_date: datetime | None = Field(None, alias="endDate")
    property_type: str | None = Field(None, alias="propertyType")
    location: str | None = None
    min_price: int | None = Field(None, ge=0, alias="minPrice")
    max_price: int | None = Field(None, ge=0, alias="maxPrice")

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _date_bounds(cls, v: object) -> object:
        return _parse_bound(v)

    @model_validator(mode="after")
    def _validate_ranges(self) -> PropertyFilter:
        """Ensure min ≤ max for the price pair."""
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValueError(
                f"minPrice ({self.min_price}) must be ≤ maxPrice ({self.max_price})"
            )
        return self

    @property
    def is_empty(self) -> bool:
        """``True`` when no predicate is configured."""
        return all(
            value in (None, "")
            for value in (
                self.start_date,
                self.end_date,
                self.property_type,
                self.location,
                self.min_price,
                self.max_price,
            )
        )

    # ------------------------------------------------------------------
    # Matching helpers (used by the query engine)
    # ------------------------------------------------------------------

    def matches_date(self, scraped_at: datetime) -> bool:
        """Return True if *scraped_at* lies inside the configured date range."""
        moment = _as_utc(scraped_at)
        if self.start_date is not None and moment < _as_utc(self.start_date):
            return False
        if self.end_date is not None and moment > end_of_day(self.end_date):
            return False
        return True

    def matches_property_type(self, property_type: str) -> bool:
        if not self.property_type:
            return True
        return _normalise(property_type) == _normalise(self.property_type)

    def matches_location(self, *fields: str) -> bool:
        """Return True if the location needle occurs in any of *fields*."""
        if not self.location:
            return True
        needle = _normalise(self.location)
        return any(needle in _normalise(field) for field in fields if field)

    def matches_price(self, price_text: str) -> bool:
        """Return True if the price in *price_text* satisfies the bounds.

        A price with no digits is unknown and is **never** excluded.
        """
        if self.min_price is None and self.max_price is None:
            return True
        price = extract_price(price_text)
        if price is None:
            return True  # unknown → keep the record
        if self.min_price is not None and price < self.min_price:
            return False
        if self.max_price is not None and price > self.max_price:
            return False
        return True


class HistoryFilter(BaseModel):
    """Predicate over history entries: date range and operation kind."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    start_date: datetime | None = Field(None, alias="startDate")
    end_date: datetime | None = Field(None, alias="endDate")
    kind: HistoryKind | None = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _date_bounds(cls, v: object) -> object:
        return _parse_bound(v)

    def matches(self, kind: HistoryKind, when: datetime) -> bool:
        if self.kind is not None and kind != self.kind:
            return False
        moment = _as_utc(when)
        if self.start_date is not None and moment < _as_utc(self.start_date):
            return False
        if self.end_date is not None and moment > end_of_day(self.end_date):
            return False
        return True
