"""Unit tests for the built-in collaborators, the loader and the normalisers."""

from __future__ import annotations

import json

import pytest

from propscout.collaborators.base import Enhancer
from propscout.collaborators.loader import load_collaborator, load_enhancer, load_extractor
from propscout.collaborators.normalizers import (
    normalise_candidate,
    normalise_count,
    normalise_string_list,
    normalise_text,
)
from propscout.collaborators.passthrough import JsonExtractor, NullExtractor, PassthroughEnhancer
from propscout.core.exceptions import CollaboratorError
from propscout.core.settings import Settings

# ---------------------------------------------------------------------------
# Normalisers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("value", "expected"),
    [("  hello   world ", "hello world"), (None, ""), (1200, "1200"), (["x"], ""), ("   ", "")],
)
def test_normalise_text(value: object, expected: str) -> None:
    assert normalise_text(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [(3, 3), ("3+", 3), ("Studio", 0), (None, 0), (2.7, 2), (True, 0), (-1, 0)],
)
def test_normalise_count(value: object, expected: int) -> None:
    assert normalise_count(value) == expected


def test_normalise_string_list_splits_pipe_joined_text() -> None:
    assert normalise_string_list("Pool | Gym |  ") == ["Pool", "Gym"]
    assert normalise_string_list(["a", None, " b "]) == ["a", "b"]
    assert normalise_string_list(42) == []


def test_normalise_candidate_applies_aliases() -> None:
    candidate = normalise_candidate(
        {
            "title": "  Sunny  2BR ",
            "what_do": "For Rent",
            "images": ["https://cdn.example/a.jpg"],
            "propertyType": "Apartment",
            "bedrooms": "2 beds",
            "description": "Line one.\n\nLine two.",
            "unknown": "ignored",
        }
    )
    assert candidate.title == "Sunny 2BR"
    assert candidate.transaction_type == "For Rent"
    assert candidate.image_urls == ["https://cdn.example/a.jpg"]
    assert candidate.property_type == "Apartment"
    assert candidate.bedrooms == 2
    assert candidate.description == "Line one.\n\nLine two."


def test_canonical_key_wins_over_alias() -> None:
    candidate = normalise_candidate({"transaction_type": "For Sale", "what_do": "For Rent"})
    assert candidate.transaction_type == "For Sale"


# ---------------------------------------------------------------------------
# Built-in collaborators
# ---------------------------------------------------------------------------


async def test_null_extractor_finds_nothing() -> None:
    assert await NullExtractor().extract("<html></html>") == []


async def test_json_extractor_accepts_array_and_wrapper() -> None:
    listing = {"title": "Villa", "price": "AED 5,000,000", "bedrooms": 5}
    extractor = JsonExtractor()

    from_array = await extractor.extract(json.dumps([listing, "not an object"]))
    from_wrapper = await extractor.extract(json.dumps({"properties": [listing]}))

    assert [c.title for c in from_array] == ["Villa"]
    assert from_wrapper == from_array


async def test_json_extractor_ignores_non_json() -> None:
    assert await JsonExtractor().extract("<html>not json</html>") == []
    assert await JsonExtractor().extract('"just a string"') == []


async def test_json_extractor_clamps_negative_counts() -> None:
    items = [{"title": "Ok"}, {"bedrooms": -4}]
    candidates = await JsonExtractor().extract(json.dumps(items))
    assert [c.title for c in candidates] == ["Ok", ""]
    assert candidates[1].bedrooms == 0


async def test_passthrough_enhancer_echoes() -> None:
    async with PassthroughEnhancer() as enhancer:
        result = await enhancer.enhance("Title", "Body")
    assert (result.enhanced_title, result.enhanced_description) == ("Title", "Body")


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


class _NotAsync:
    def enhance(self, title: str, description: str) -> None:
        return None


def make_enhancer() -> Enhancer:
    return PassthroughEnhancer()


def _broken_factory() -> Enhancer:
    raise RuntimeError("no API key")


def test_load_class_instantiates_it() -> None:
    extractor = load_collaborator(
        "propscout.collaborators.passthrough:JsonExtractor", required_method="extract"
    )
    assert isinstance(extractor, JsonExtractor)


def test_load_factory_calls_it() -> None:
    enhancer = load_collaborator(f"{__name__}:make_enhancer", required_method="enhance")
    assert isinstance(enhancer, PassthroughEnhancer)


@pytest.mark.parametrize(
    ("path", "match"),
    [
        ("no_colon", "module:attr"),
        ("propscout.does_not_exist:Thing", "Cannot import"),
        ("propscout.collaborators.passthrough:Missing", "Cannot import"),
        (f"{__name__}:_broken_factory", "failed"),
        (f"{__name__}:_NotAsync", "no async enhance"),
    ],
)
def test_load_failures_raise_collaborator_error(path: str, match: str) -> None:
    with pytest.raises(CollaboratorError, match=match):
        load_collaborator(path, required_method="enhance")


def test_load_from_settings(clean_env: None) -> None:
    settings = Settings()
    assert isinstance(load_extractor(settings), NullExtractor)
    assert isinstance(load_enhancer(settings), PassthroughEnhancer)
