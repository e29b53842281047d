"""Export formatters for stored records.

Converts :class:`~propscout.core.models.Property` records into the two
interchange shapes handed to downstream tools:

* **JSON** — one nested object per record, grouped into ``main``,
  ``location``, ``property_details``, ``features``, ``images``, ``legal``,
  ``agent``, ``enhancements`` and ``matterport`` sections.
* **CSV** — the flat import template used by listing sites: a fixed header
  row, a second row describing each column, then one row per record.  List
  values are joined with ``" | "``.

Image references stored as site-relative paths (``/uploads/...``) are made
absolute against the public base URL so exported files are usable outside
the application.

Public API
----------
:func:`absolute_url` — Make a stored image reference absolute.

:func:`to_nested` — Build the nested export object for one record.

:func:`export_json` — Serialise records as a JSON array of nested objects.

:func:`export_csv` — Serialise records in the CSV import template.

Typical usage::

    from propscout.export.formatter import export_csv

    Path("properties.csv").write_text(export_csv(records, base_url), encoding="utf-8")
"""

from __future__ import annotations

import csv
import io
import json
import logging
from collections.abc import Iterable
from typing import Any
from urllib.parse import urljoin

from propscout.core.criteria import extract_price
from propscout.core.models import Property

__all__ = [
    "CSV_HEADERS",
    "CSV_DESCRIPTION_ROW",
    "LIST_SEPARATOR",
    "absolute_url",
    "to_nested",
    "export_json",
    "export_csv",
]

logger = logging.getLogger(__name__)

LIST_SEPARATOR = " | "

CSV_HEADERS: tuple[str, ...] = (
    "Title",
    "Content",
    "images",
    "Matterport",
    "Categories",
    "property_a",
    "property_b",
    "property_c",
    "property_d",
    "property_e",
    "property_f",
    "property_g",
    "property_h",
    "property_i",
    "property_j",
    "property_k",
    "property_l",
    "Features",
    "Term and Condition",
)

#: Second row of the CSV template; tells the importer what each column holds.
CSV_DESCRIPTION_ROW: dict[str, str] = {
    "Title": "Property Id",
    "Content": "Description",
    "images": "image URL 1 | image URL 2 | ...",
    "Matterport": "Matterport",
    "Categories": "Rental type",
    "property_a": "Beds property",
    "property_b": "Baths property",
    "property_c": "Sqft property",
    "property_d": "Tenant Type",
    "property_e": "Rental Period",
    "property_f": "Furnish type",
    "property_g": "Floor number",
    "property_h": "DLD permit number",
    "property_i": "DED license number",
    "property_j": "Rera registration number",
    "property_k": "DLD BRN",
    "property_l": "Reference Id",
    "Features": "Take them with the | pipe SEPERATED",
    "Term and Condition": "Term and Condition (Check on website and update)",
}


def absolute_url(reference: str, base_url: str | None) -> str:
    """Return *reference* as an absolute URL.

    Already-absolute http(s) references and empty strings are returned
    unchanged, as is everything when *base_url* is not set.

    Examples:
        >>> absolute_url("/uploads/properties/p1/a.jpg", "https://homes.example")
        'https://homes.example/uploads/properties/p1/a.jpg'
        >>> absolute_url("https://cdn.example/x.png", "https://homes.example")
        'https://cdn.example/x.png'
    """
    if not reference or reference.startswith("http") or not base_url:
        return reference
    return urljoin(base_url.rstrip("/") + "/", reference)


def to_nested(record: Property, base_url: str | None = None) -> dict[str, Any]:
    """Build the nested export object for *record*.

    The enhanced title and description are primary; the originals are kept
    under ``enhancements``.  ``price`` is exported verbatim alongside its
    numeric ``price_value`` (``None`` when the text holds no digits).
    """
    return {
        "main": {
            "id": record.id,
            "title": record.display_title,
            "description": record.display_description,
            "price": record.price,
            "price_value": extract_price(record.price),
            "property_type": record.property_type,
            "transaction_type": record.transaction_type,
            "furnish_type": record.furnish_type,
            "rental_timing": record.rental_timing,
            "tenant_type": record.tenant_type,
            "scraped_at": record.scraped_at.isoformat(),
            "source_url": record.source_url,
            "origin": str(record.origin),
        },
        "location": {
            "location": record.location,
            "city": record.city,
            "county": record.county,
            "neighborhood": record.neighborhood,
        },
        "property_details": {
            "bedrooms": record.bedrooms,
            "bathrooms": record.bathrooms,
            "area": record.area,
            "floor_number": record.floor_number,
            "building_information": record.building_information,
        },
        "features": {"features": list(record.features)},
        "images": {
            "image_url": absolute_url(record.image_url, base_url),
            "image_urls": [absolute_url(url, base_url) for url in record.image_urls],
        },
        "legal": {
            "validated_information": record.validated_information,
            "permit_number": record.permit_number,
            "ded_license_number": record.ded_license_number,
            "rera_registration_number": record.rera_registration_number,
            "dld_brn": record.dld_brn,
            "reference_id": record.reference_id,
            "terms_and_condition": record.terms_and_condition,
            "mortgage": record.mortgage,
        },
        "agent": {
            "listed_by_name": record.listed_by_name,
            "listed_by_phone": record.listed_by_phone,
            "listed_by_email": record.listed_by_email,
        },
        "enhancements": {
            "enhanced_title": record.enhanced_title,
            "enhanced_description": record.enhanced_description,
            "original_title": record.original_title,
            "original_description": record.original_description,
        },
        "matterport": {"matterport_link": record.matterport_link},
    }


def export_json(records: Iterable[Property], base_url: str | None = None) -> str:
    return json.dumps(
        [to_nested(record, base_url) for record in records], indent=2, ensure_ascii=False
    )


def _csv_row(record: Property, base_url: str | None) -> dict[str, Any]:
    return {
        "Title": record.display_title,
        "Content": record.display_description,
        "images": LIST_SEPARATOR.join(absolute_url(url, base_url) for url in record.image_urls),
        "Matterport": record.matterport_link,
        "Categories": record.transaction_type,
        "property_a": record.bedrooms,
        "property_b": record.bathrooms,
        "property_c": record.area,
        "property_d": record.tenant_type,
        "property_e": record.rental_timing,
        "property_f": record.furnish_type,
        "property_g": record.floor_number,
        "property_h": record.permit_number,
        "property_i": record.ded_license_number,
        "property_j": record.rera_registration_number,
        "property_k": record.dld_brn,
        "property_l": record.reference_id,
        "Features": LIST_SEPARATOR.join(record.features),
        "Term and Condition": record.terms_and_condition,
    }


def export_csv(records: Iterable[Property], base_url: str | None = None) -> str:
    """Render *records* in the CSV import template.

    The header and description rows are always written, so an empty corpus
    still yields a valid (two-row) template.
    """
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_HEADERS, lineterminator="\n")
    writer.writeheader()
    writer.writerow(CSV_DESCRIPTION_ROW)
    count = 0
    for record in records:
        writer.writerow(_csv_row(record, base_url))
        count += 1
    logger.debug("Rendered %d record(s) as CSV", count)
    return buffer.getvalue()
