"""Field normalisation utilities for extracted listing data.

Extraction collaborators hand back loosely-typed dicts (from an LLM, a JSON
feed, a pasted export...).  These helpers turn them into the text and count
fields expected by :class:`~propscout.core.models.CandidateProperty`.
Centralising the logic here means:

* Field-parsing logic is tested once, not per collaborator.
* Edge cases (``"3+"`` bedroom strings, ``"Studio"``, legacy key
  names) are handled in a single place.

Typical usage::

    from propscout.collaborators.normalizers import normalise_candidate

    candidate = normalise_candidate(
        {"title": "  Sunny  2BR ", "what_do": "For Rent", "bedrooms": "2"}
    )
    candidate.transaction_type  # → "For Rent"
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

from propscout.core.models import CandidateProperty

__all__ = [
    "FIELD_ALIASES",
    "normalise_text",
    "normalise_count",
    "normalise_string_list",
    "normalise_candidate",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

_WHITESPACE_RE: re.Pattern[str] = re.compile(r"\s+")

# Leading integer in a count string (e.g. "3+", "2 beds").
_LEADING_INT_RE: re.Pattern[str] = re.compile(r"\d+")

#: Alternative key names accepted from extractors, mapped to model fields.
FIELD_ALIASES: dict[str, str] = {
    "what_do": "transaction_type",
    "images": "image_urls",
    "imageUrls": "image_urls",
    "matterportLink": "matterport_link",
    "propertyType": "property_type",
    "referenceId": "reference_id",
    "permitNumber": "permit_number",
}

_COUNT_FIELDS = ("bedrooms", "bathrooms", "floor_number")
_LIST_FIELDS = ("image_urls", "features")


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------


def normalise_text(value: Any, *, fallback: str = "") -> str:
    """Strip and collapse whitespace in a text value.

    Non-string scalars are converted with ``str()``; ``None``, containers and
    blank strings give *fallback*.

    Examples::

        normalise_text("  hello  world  ")  # → "hello world"
        normalise_text(None)                # → ""
        normalise_text(1200)                # → "1200"
    """
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return fallback
    cleaned = _WHITESPACE_RE.sub(" ", str(value)).strip()
    return cleaned if cleaned else fallback


def normalise_count(value: Any) -> int:
    """Coerce a bedroom/bathroom/floor value to a non-negative integer.

    ``"Studio"`` and ``"Ground"`` count as ``0``, as does anything without
    digits.

    Examples::

        normalise_count(3)         # → 3
        normalise_count("3+")      # → 3
        normalise_count("Studio")  # → 0
        normalise_count(None)      # → 0
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    if isinstance(value, float):
        return max(0, int(value))
    match = _LEADING_INT_RE.search(str(value))
    if match is None:
        logger.debug("normalise_count: no digits in %r, defaulting to 0", value)
        return 0
    return int(match.group())


def normalise_string_list(value: Any) -> list[str]:
    """Return a list of cleaned, non-empty strings.

    A single string becomes a one-item list; a ``" | "``-joined string (the
    export format) is split back into its items.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items: list[Any] = value.split("|") if "|" in value else [value]
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        return []
    return [text for text in (normalise_text(item) for item in items) if text]


# ---------------------------------------------------------------------------
# Whole candidate
# ---------------------------------------------------------------------------


def normalise_candidate(raw: Mapping[str, Any]) -> CandidateProperty:
    """Build a :class:`CandidateProperty` from a loosely-typed mapping.

    Alias keys from :data:`FIELD_ALIASES` are renamed (an explicit canonical
    key wins over its alias), text fields are whitespace-normalised, and
    unknown keys are ignored.
    """
    data: dict[str, Any] = {}
    for key, value in raw.items():
        target = FIELD_ALIASES.get(key, key)
        if target != key and target in raw:
            continue
        data[target] = value

    cleaned: dict[str, Any] = {}
    for name in CandidateProperty.model_fields:
        if name not in data:
            continue
        value = data[name]
        if name in _COUNT_FIELDS:
            cleaned[name] = normalise_count(value)
        elif name in _LIST_FIELDS:
            cleaned[name] = normalise_string_list(value)
        elif name == "description":
            # Keep paragraph breaks; only trim the ends.
            cleaned[name] = "" if value is None else str(value).strip()
        else:
            cleaned[name] = normalise_text(value)
    return CandidateProperty.model_validate(cleaned)
