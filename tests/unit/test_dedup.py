"""Unit tests for the multi-fingerprint deduplication engine."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from propscout.core.exceptions import AllDuplicatesError
from propscout.core.models import RAW_SOURCE_URL, Property, ScrapeOrigin
from propscout.dedup.engine import (
    TITLE_PREFIX_LENGTH,
    DeduplicationEngine,
    candidate_fingerprints,
    filter_new,
    fingerprints,
)
from propscout.storage.base import StorageAdapter

# ---------------------------------------------------------------------------
# Fingerprints
# ---------------------------------------------------------------------------


def test_stored_record_contributes_all_fingerprints(
    make_property: Callable[..., Property],
) -> None:
    record = make_property(
        enhanced_title="Stunning marina view",
        reference_id="REF-9",
        permit_number="PER-1",
    )
    kinds = {key.split("::", 1)[0] for key in fingerprints(record)}
    assert kinds == {"url", "loc", "enhanced", "original", "ref", "permit"}


def test_blank_optional_fields_add_no_fingerprint(make_property: Callable[..., Property]) -> None:
    record = make_property(title="", original_title="", enhanced_title="")
    kinds = {key.split("::", 1)[0] for key in fingerprints(record)}
    assert kinds == {"url", "loc"}


def test_title_prefix_is_truncated_and_lowercased(make_property: Callable[..., Property]) -> None:
    long_title = "A" * (TITLE_PREFIX_LENGTH + 20)
    record = make_property(title=long_title)
    assert f"original::{'a' * TITLE_PREFIX_LENGTH}" in fingerprints(record)


def test_candidate_subset_depends_on_origin(make_property: Callable[..., Property]) -> None:
    url_candidate = make_property(enhanced_title="Nice")
    raw_candidate = make_property(
        origin=ScrapeOrigin.RAW, source_url=RAW_SOURCE_URL, enhanced_title="Nice"
    )
    url_kinds = {k.split("::", 1)[0] for k in candidate_fingerprints(url_candidate)}
    raw_kinds = {k.split("::", 1)[0] for k in candidate_fingerprints(raw_candidate)}
    assert url_kinds == {"url", "loc"}
    assert raw_kinds == {"loc", "enhanced", "original"}


# ---------------------------------------------------------------------------
# filter_new
# ---------------------------------------------------------------------------


def test_reference_id_match_is_duplicate(make_property: Callable[..., Property]) -> None:
    """Same RERA reference under a different URL and title is still a duplicate."""
    stored = make_property(reference_id="RERA-123", source_url="https://a.example/1")
    candidate = make_property(
        reference_id="RERA-123",
        source_url="https://b.example/99",
        title="Completely different wording",
        location="Elsewhere",
    )
    result = filter_new([candidate], [stored])
    assert result.new == []
    assert result.duplicates == [candidate]


def test_location_price_rooms_match_is_duplicate(make_property: Callable[..., Property]) -> None:
    stored = make_property(source_url="https://a.example/1", title="One")
    candidate = make_property(source_url="https://b.example/2", title="Two")
    assert filter_new([candidate], [stored]).duplicates == [candidate]


def test_raw_candidate_matches_on_title_prefix(make_property: Callable[..., Property]) -> None:
    stored = make_property(title="Penthouse with private pool", location="A", price="1")
    candidate = make_property(
        origin=ScrapeOrigin.RAW,
        source_url=RAW_SOURCE_URL,
        title="PENTHOUSE WITH PRIVATE POOL",
        location="B",
        price="2",
    )
    assert filter_new([candidate], [stored]).duplicates == [candidate]


def test_url_candidate_ignores_title_prefix(make_property: Callable[..., Property]) -> None:
    stored = make_property(title="Penthouse", location="A", source_url="https://a.example/1")
    candidate = make_property(title="Penthouse", location="B", source_url="https://b.example/2")
    assert filter_new([candidate], [stored]).new == [candidate]


def test_unrelated_candidate_is_new(make_property: Callable[..., Property]) -> None:
    stored = make_property()
    candidate = make_property(
        source_url="https://b.example/2", title="Other", location="JVC", price="AED 1"
    )
    result = filter_new([candidate], [stored])
    assert result.new == [candidate]
    assert result.submitted == 1


def test_candidates_are_not_compared_with_each_other(
    make_property: Callable[..., Property],
) -> None:
    twins = [make_property(), make_property()]
    assert filter_new(twins, []).new == twins


@pytest.mark.parametrize("field", ["reference_id", "permit_number"])
def test_match_is_symmetric(field: str, make_property: Callable[..., Property]) -> None:
    a = make_property(**{field: "X-1"}, source_url="https://a.example/1", location="A")
    b = make_property(**{field: "X-1"}, source_url="https://b.example/2", location="B")
    assert filter_new([a], [b]).duplicates == [a]
    assert filter_new([b], [a]).duplicates == [b]


# ---------------------------------------------------------------------------
# DeduplicationEngine
# ---------------------------------------------------------------------------


async def test_save_new_prepends_and_is_idempotent(
    storage: StorageAdapter, make_property: Callable[..., Property]
) -> None:
    existing = make_property(location="Old town")
    await storage.replace_all([existing])
    engine = DeduplicationEngine(storage)

    fresh = make_property(location="New town", source_url="https://b.example/2")
    result = await engine.save_new([fresh])
    assert result.new == [fresh]
    assert await storage.list_records() == [fresh, existing]

    with pytest.raises(AllDuplicatesError) as exc_info:
        await engine.save_new([fresh])
    assert exc_info.value.submitted == 1
    assert len(await storage.list_records()) == 2


async def test_partial_duplicates_saved_without_error(
    storage: StorageAdapter, make_property: Callable[..., Property]
) -> None:
    existing = make_property(reference_id="RERA-123")
    await storage.replace_all([existing])

    dup = make_property(reference_id="RERA-123", location="X", source_url="https://x.example")
    new = make_property(location="Y", source_url="https://y.example")
    result = await DeduplicationEngine(storage).save_new([dup, new])

    assert result.new == [new]
    assert result.duplicates == [dup]
    assert [r.id for r in await storage.list_records()] == [new.id, existing.id]


async def test_empty_batch_is_a_no_op(storage: StorageAdapter) -> None:
    result = await DeduplicationEngine(storage).save_new([])
    assert result.submitted == 0
    assert await storage.list_records() == []
