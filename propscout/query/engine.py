"""Filter/query engine over the stored corpus.

Every operation reads the corpus through the injected
:class:`~propscout.storage.base.StorageAdapter` and evaluates a
:class:`~propscout.core.criteria.PropertyFilter` in memory.  Predicates are
AND-ed in a fixed order, cheapest first:

1. scrape date (inclusive start, end bound at the end of the end date)
2. property type (case-insensitive exact)
3. location (case-insensitive substring over location/city/county/neighbourhood)
4. price (numeric part of the free-form price text)

Typical usage::

    from propscout.query.engine import QueryService

    service = QueryService(storage)
    villas = await service.filtered(PropertyFilter(property_type="Villa"))
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from propscout.core.criteria import HistoryFilter, PropertyFilter
from propscout.core.models import HistoryEntry, Property
from propscout.storage.base import DeleteManyResult, StorageAdapter

__all__ = [
    "apply_filter",
    "FilteredDeleteResult",
    "ExportStats",
    "QueryService",
]

logger = logging.getLogger(__name__)


def _passes(record: Property, criteria: PropertyFilter) -> bool:
    return (
        criteria.matches_date(record.scraped_at)
        and criteria.matches_property_type(record.property_type)
        and criteria.matches_location(
            record.location, record.city, record.county, record.neighborhood
        )
        and criteria.matches_price(record.price)
    )


def apply_filter(records: Iterable[Property], criteria: PropertyFilter | None) -> list[Property]:
    """Return the records of *records* that satisfy *criteria*, order preserved."""
    if criteria is None or criteria.is_empty:
        return list(records)
    return [record for record in records if _passes(record, criteria)]


@dataclass(frozen=True)
class FilteredDeleteResult:
    deleted_count: int
    remaining_count: int


@dataclass(frozen=True)
class ExportStats:
    """Summary of the corpus shown before an export.

    Attributes:
        total: Number of stored records.
        filtered: Number of records matching the filter.
        earliest: Oldest ``scraped_at`` in the whole corpus (``None`` if empty).
        latest: Newest ``scraped_at`` in the whole corpus.
        property_types: Matching records per property type (``"Unknown"``
            for blanks).
        locations: Matching records per city, falling back to location,
            then ``"Unknown"``.
    """

    total: int
    filtered: int
    earliest: datetime | None = None
    latest: datetime | None = None
    property_types: dict[str, int] = field(default_factory=dict)
    locations: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        date_range = None
        if self.earliest is not None and self.latest is not None:
            date_range = {
                "earliest": self.earliest.isoformat(),
                "latest": self.latest.isoformat(),
            }
        return {
            "total": self.total,
            "filtered": self.filtered,
            "date_range": date_range,
            "property_types": dict(self.property_types),
            "locations": dict(self.locations),
        }


class QueryService:
    """Filtered reads and bulk deletions over a storage adapter."""

    def __init__(self, storage: StorageAdapter) -> None:
        self._storage = storage

    async def filtered(self, criteria: PropertyFilter | None = None) -> list[Property]:
        return apply_filter(await self._storage.list_records(), criteria)

    async def delete_filtered(self, criteria: PropertyFilter) -> FilteredDeleteResult:
        """Delete every record matching *criteria*.

        An empty filter matches the whole corpus, exactly like
        :meth:`filtered`.
        """
        records = await self._storage.list_records()
        doomed = {record.id for record in apply_filter(records, criteria)}
        remaining = [record for record in records if record.id not in doomed]
        if doomed:
            await self._storage.replace_all(remaining)
        logger.info(
            "Deleted %d filtered record(s), %d remaining", len(doomed), len(remaining)
        )
        return FilteredDeleteResult(deleted_count=len(doomed), remaining_count=len(remaining))

    async def delete_many(self, property_ids: list[str]) -> DeleteManyResult:
        return await self._storage.delete_many(property_ids)

    async def delete_all(self) -> int:
        """Empty the corpus and return how many records were removed."""
        count = len(await self._storage.list_records())
        await self._storage.replace_all([])
        logger.info("Deleted all %d record(s)", count)
        return count

    async def filtered_history(self, criteria: HistoryFilter | None = None) -> list[HistoryEntry]:
        entries = await self._storage.list_history()
        if criteria is None:
            return entries
        return [entry for entry in entries if criteria.matches(entry.kind, entry.date)]

    async def export_stats(self, criteria: PropertyFilter | None = None) -> ExportStats:
        records = await self._storage.list_records()
        matching = apply_filter(records, criteria)

        earliest = latest = None
        if records:
            moments = sorted(record.scraped_at for record in records)
            earliest, latest = moments[0], moments[-1]

        types = Counter(record.property_type or "Unknown" for record in matching)
        locations = Counter(record.city or record.location or "Unknown" for record in matching)
        return ExportStats(
            total=len(records),
            filtered=len(matching),
            earliest=earliest,
            latest=latest,
            property_types=dict(types),
            locations=dict(locations),
        )
