"""Unit tests for the core layer: models, criteria, ids and settings."""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest
from pydantic import ValidationError as PydanticValidationError

from propscout.core.criteria import HistoryFilter, PropertyFilter, end_of_day, extract_price
from propscout.core.ids import new_history_id, new_property_id
from propscout.core.models import (
    CandidateProperty,
    EnhancedContent,
    HistoryKind,
    Property,
    ScrapeOrigin,
)
from propscout.core.settings import Settings

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class TestProperty:
    def test_defaults(self) -> None:
        record = Property(id="p1", source_url="https://homes.example/1")
        assert record.origin is ScrapeOrigin.URL
        assert record.bedrooms == 0
        assert record.image_urls == []
        assert record.scraped_at.tzinfo is not None

    def test_is_frozen(self) -> None:
        record = Property(id="p1", source_url="https://homes.example/1")
        with pytest.raises(PydanticValidationError):
            record.title = "changed"  # type: ignore[misc]

    def test_naive_timestamp_is_treated_as_utc(self) -> None:
        record = Property(
            id="p1", source_url="https://homes.example/1", scraped_at=datetime(2024, 1, 1, 8)
        )
        assert record.scraped_at == datetime(2024, 1, 1, 8, tzinfo=UTC)

    def test_lenient_coercion(self) -> None:
        record = Property(
            id="p1",
            source_url="https://homes.example/1",
            price=85000,
            bedrooms="3+",
            bathrooms=None,
            location=None,
            image_urls="https://cdn.example/a.jpg",
        )
        assert record.price == "85000"
        assert record.bedrooms == 3
        assert record.bathrooms == 0
        assert record.location == ""
        assert record.image_urls == ["https://cdn.example/a.jpg"]

    def test_display_text_prefers_enhanced(self) -> None:
        record = Property(
            id="p1",
            source_url="https://homes.example/1",
            title="plain",
            description="plain text",
            enhanced_title="Stunning",
        )
        assert record.display_title == "Stunning"
        assert record.display_description == "plain text"

    def test_id_required(self) -> None:
        with pytest.raises(PydanticValidationError):
            Property(id="", source_url="https://homes.example/1")


def test_candidate_ignores_unknown_keys() -> None:
    candidate = CandidateProperty.model_validate({"title": "Villa", "mystery": 1})
    assert candidate.title == "Villa"
    assert not hasattr(candidate, "mystery")


def test_enhanced_content_echo() -> None:
    echoed = EnhancedContent.echo("t", "d")
    assert (echoed.enhanced_title, echoed.enhanced_description) == ("t", "d")


# ---------------------------------------------------------------------------
# Ids
# ---------------------------------------------------------------------------


def test_ids_are_unique_and_prefixed() -> None:
    ids = {new_property_id() for _ in range(200)}
    assert len(ids) == 200
    assert all(i.startswith("prop-") for i in ids)
    assert new_history_id().startswith("hist-")


# ---------------------------------------------------------------------------
# Criteria helpers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("AED 1,250,000", 1_250_000),
        ("85000 / year", 85_000),
        ("Price on request", None),
        ("", None),
        ("from 1,200 to 1,500", 1_200),
    ],
)
def test_extract_price(text: str, expected: int | None) -> None:
    assert extract_price(text) == expected


def test_end_of_day_discards_time() -> None:
    bound = end_of_day(datetime(2024, 1, 5, 3, 0, tzinfo=UTC))
    assert bound == datetime(2024, 1, 5, 23, 59, 59, 999000, tzinfo=UTC)
    assert end_of_day(date(2024, 1, 5)) == bound


class TestPropertyFilter:
    def test_accepts_camel_case(self) -> None:
        criteria = PropertyFilter.model_validate(
            {"startDate": "2024-01-01", "propertyType": "Villa", "minPrice": 10}
        )
        assert criteria.start_date == datetime(2024, 1, 1)
        assert criteria.property_type == "Villa"
        assert criteria.min_price == 10

    def test_min_greater_than_max_rejected(self) -> None:
        with pytest.raises(PydanticValidationError, match="minPrice"):
            PropertyFilter(min_price=10, max_price=5)

    def test_is_empty(self) -> None:
        assert PropertyFilter().is_empty
        assert PropertyFilter(location="").is_empty
        assert not PropertyFilter(location="marina").is_empty

    def test_end_date_covers_the_whole_day(self) -> None:
        criteria = PropertyFilter(start_date="2024-01-01", end_date="2024-01-05")
        assert criteria.matches_date(datetime(2024, 1, 5, 23, 59, tzinfo=UTC))
        assert not criteria.matches_date(datetime(2024, 1, 6, 0, 0, tzinfo=UTC))
        assert criteria.matches_date(datetime(2024, 1, 1, 0, 0, tzinfo=UTC))
        assert not criteria.matches_date(datetime(2023, 12, 31, 23, 59, tzinfo=UTC))

    def test_property_type_is_case_insensitive_exact(self) -> None:
        criteria = PropertyFilter(property_type="villa")
        assert criteria.matches_property_type("Villa")
        assert not criteria.matches_property_type("Villa Townhouse")

    def test_location_substring_over_any_field(self) -> None:
        criteria = PropertyFilter(location="marina")
        assert criteria.matches_location("", "Dubai Marina", "")
        assert not criteria.matches_location("JLT", "Dubai")

    def test_unparseable_price_is_never_excluded(self) -> None:
        criteria = PropertyFilter(min_price=100_000, max_price=200_000)
        assert criteria.matches_price("Price on request")
        assert criteria.matches_price("AED 150,000")
        assert not criteria.matches_price("AED 90,000")
        assert not criteria.matches_price("AED 250,000")


def test_history_filter_matches_kind_and_dates() -> None:
    criteria = HistoryFilter(kind=HistoryKind.BULK, end_date="2024-02-01")
    assert criteria.matches(HistoryKind.BULK, datetime(2024, 2, 1, 18, tzinfo=UTC))
    assert not criteria.matches(HistoryKind.URL, datetime(2024, 2, 1, 18, tzinfo=UTC))
    assert not criteria.matches(HistoryKind.BULK, datetime(2024, 2, 2, tzinfo=UTC))


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class TestSettings:
    def test_defaults(self, clean_env: None) -> None:
        settings = Settings()
        assert settings.storage_type == "filesystem"
        assert settings.effective_storage_type == "filesystem"
        assert settings.history_limit == 50
        assert settings.image_concurrency == 5
        assert settings.log_level == "INFO"

    def test_serverless_forces_memory(
        self, clean_env: None, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("VERCEL", "1")
        settings = Settings()
        assert settings.serverless
        assert settings.effective_storage_type == "memory"

    def test_env_overrides(self, clean_env: None, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STORAGE_TYPE", "MEMORY")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("IMAGE_PUBLIC_PREFIX", "/img/")
        settings = Settings()
        assert settings.storage_type == "memory"
        assert settings.log_level == "DEBUG"
        assert settings.image_public_prefix == "/img"

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("storage_type", "postgres"),
            ("log_format", "xml"),
            ("extractor", "no_colon_here"),
            ("history_limit", 0),
        ],
    )
    def test_invalid_values_rejected(self, clean_env: None, field: str, value: object) -> None:
        with pytest.raises(PydanticValidationError):
            Settings(**{field: value})
