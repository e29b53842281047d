"""Multi-fingerprint duplicate detection against the stored corpus.

Listings have no reliable global identifier: the same unit shows up under
different URLs, pasted content has no URL at all, and titles get rewritten
by the enhancement step.  Identity is therefore approximated with a set of
fingerprints per stored record:

+---+------------------------------------------------------+----------------+
| # | Fingerprint                                          | Present when   |
+===+======================================================+================+
| 1 | ``url::{source_url}::{original_title}``              | always         |
| 2 | ``loc::{location}::{price}::{bedrooms}::{bathrooms}``| always         |
| 3 | ``enhanced::`` + first 50 chars of enhanced title    | title present  |
| 4 | ``original::`` + first 50 chars of original title    | title present  |
| 5 | ``ref::{reference_id}``                              | id present     |
| 6 | ``permit::{permit_number}``                          | number present |
+---+------------------------------------------------------+----------------+

Title prefixes are lowercased; every other component is used verbatim.

A candidate is checked with a subset chosen by its origin: content pasted
without a page URL (``RAW``) cannot use #1, and candidates scraped from a
URL (``URL``) skip the title-prefix checks #3/#4.  Any hit marks the
candidate as a duplicate.

Known limitation: #2 treats two distinct units with identical location,
price and room counts as the same listing.

Candidates are compared against the stored corpus only, never against
each other within the same batch.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from propscout.core import events
from propscout.core.exceptions import AllDuplicatesError
from propscout.core.models import Property, ScrapeOrigin
from propscout.storage.base import StorageAdapter

__all__ = [
    "TITLE_PREFIX_LENGTH",
    "DedupResult",
    "fingerprints",
    "candidate_fingerprints",
    "build_index",
    "filter_new",
    "DeduplicationEngine",
]

logger = logging.getLogger(__name__)

#: Number of leading title characters used by the title-prefix fingerprints.
TITLE_PREFIX_LENGTH: int = 50

# ---------------------------------------------------------------------------
# Fingerprints
# ---------------------------------------------------------------------------


def _url_key(record: Property) -> str:
    return f"url::{record.source_url}::{record.original_title}"


def _location_key(record: Property) -> str:
    return f"loc::{record.location}::{record.price}::{record.bedrooms}::{record.bathrooms}"


def _title_key(kind: str, title: str) -> str | None:
    if not title:
        return None
    return f"{kind}::{title[:TITLE_PREFIX_LENGTH].lower()}"


def _legal_keys(record: Property) -> list[str]:
    keys: list[str] = []
    if record.reference_id:
        keys.append(f"ref::{record.reference_id}")
    if record.permit_number:
        keys.append(f"permit::{record.permit_number}")
    return keys


def fingerprints(record: Property) -> set[str]:
    """Return every fingerprint a stored *record* contributes to the index."""
    keys = {_url_key(record), _location_key(record)}
    for key in (
        _title_key("enhanced", record.enhanced_title),
        _title_key("original", record.original_title),
    ):
        if key is not None:
            keys.add(key)
    keys.update(_legal_keys(record))
    return keys


def candidate_fingerprints(candidate: Property) -> set[str]:
    """Return the fingerprints checked for *candidate*, according to its origin."""
    keys = {_location_key(candidate)}
    keys.update(_legal_keys(candidate))
    if candidate.origin is ScrapeOrigin.RAW:
        for key in (
            _title_key("enhanced", candidate.enhanced_title),
            _title_key("original", candidate.original_title),
        ):
            if key is not None:
                keys.add(key)
    else:
        keys.add(_url_key(candidate))
    return keys


def build_index(records: Iterable[Property]) -> set[str]:
    """Union of :func:`fingerprints` over *records*."""
    index: set[str] = set()
    for record in records:
        index |= fingerprints(record)
    return index


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


@dataclass
class DedupResult:
    """Partition of a candidate batch into new records and duplicates."""

    new: list[Property] = field(default_factory=list)
    duplicates: list[Property] = field(default_factory=list)

    @property
    def submitted(self) -> int:
        return len(self.new) + len(self.duplicates)


def filter_new(candidates: list[Property], existing: list[Property]) -> DedupResult:
    """Split *candidates* into those absent from *existing* and duplicates.

    Pure function: the order of ``new`` follows *candidates*.
    """
    index = build_index(existing)
    result = DedupResult()
    for candidate in candidates:
        hits = candidate_fingerprints(candidate) & index
        if hits:
            result.duplicates.append(candidate)
            logger.debug(
                "DEDUP  %r matched %s",
                candidate.title[:60],
                sorted(hits)[0],
                extra={"event": events.PROPERTY_DUPLICATE},
            )
        else:
            result.new.append(candidate)
    return result


class DeduplicationEngine:
    """Persist only the candidates that are not already stored.

    Args:
        storage: Adapter holding the corpus.
    """

    def __init__(self, storage: StorageAdapter) -> None:
        self._storage = storage

    async def save_new(self, candidates: list[Property]) -> DedupResult:
        """Prepend the new *candidates* to the corpus and write it back.

        An empty batch is a silent no-op.

        Raises:
            AllDuplicatesError: If a non-empty batch contains only duplicates;
                nothing is written in that case.
        """
        if not candidates:
            return DedupResult()

        existing = await self._storage.list_records()
        result = filter_new(candidates, existing)

        if not result.new:
            logger.warning(
                "All %d submitted properties already exist; nothing saved",
                len(candidates),
            )
            raise AllDuplicatesError(len(candidates))

        await self._storage.replace_all(result.new + existing)
        logger.info(
            "Saved %d new properties (%d duplicates skipped, corpus now %d)",
            len(result.new),
            len(result.duplicates),
            len(result.new) + len(existing),
        )
        return result
