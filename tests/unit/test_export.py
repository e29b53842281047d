"""Unit tests for the JSON, CSV and Excel export formatters."""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Callable

from openpyxl import load_workbook

from propscout.core.models import Property
from propscout.export.formatter import (
    CSV_HEADERS,
    absolute_url,
    export_csv,
    export_json,
    to_nested,
)
from propscout.export.spreadsheet import SHEET_TITLE, export_xlsx, flatten

_BASE = "https://homes.example"


def test_absolute_url() -> None:
    assert absolute_url("/uploads/properties/p/a.png", _BASE) == f"{_BASE}/uploads/properties/p/a.png"
    assert absolute_url("/uploads/a.png", f"{_BASE}/") == f"{_BASE}/uploads/a.png"
    assert absolute_url("https://cdn.example/a.png", _BASE) == "https://cdn.example/a.png"
    assert absolute_url("", _BASE) == ""
    assert absolute_url("/uploads/a.png", None) == "/uploads/a.png"


def test_to_nested_sections_and_primary_text(make_property: Callable[..., Property]) -> None:
    record = make_property(
        title="plain",
        enhanced_title="Stunning",
        description="plain text",
        enhanced_description="Lovely text",
        price="AED 1,250,000",
        image_urls=["/uploads/properties/p/a.png", "https://cdn.example/b.png"],
        image_url="/uploads/properties/p/a.png",
        features=["Pool"],
        reference_id="RERA-123",
        matterport_link="https://my.matterport.example/x",
    )
    nested = to_nested(record, _BASE)

    assert set(nested) == {
        "main",
        "location",
        "property_details",
        "features",
        "images",
        "legal",
        "agent",
        "enhancements",
        "matterport",
    }
    assert nested["main"]["title"] == "Stunning"
    assert nested["main"]["description"] == "Lovely text"
    assert nested["main"]["price"] == "AED 1,250,000"
    assert nested["main"]["price_value"] == 1_250_000
    assert nested["enhancements"]["original_title"] == "plain"
    assert nested["images"]["image_url"] == f"{_BASE}/uploads/properties/p/a.png"
    assert nested["images"]["image_urls"][1] == "https://cdn.example/b.png"
    assert nested["legal"]["reference_id"] == "RERA-123"
    assert nested["features"]["features"] == ["Pool"]


def test_export_json_is_an_array(make_property: Callable[..., Property]) -> None:
    records = [make_property(), make_property(price="Price on request")]
    payload = json.loads(export_json(records, _BASE))
    assert [item["main"]["id"] for item in payload] == [r.id for r in records]
    assert payload[1]["main"]["price_value"] is None


def test_export_csv_template_rows(make_property: Callable[..., Property]) -> None:
    record = make_property(
        transaction_type="For Rent",
        features=["Pool", "Gym"],
        image_urls=["/uploads/properties/p/a.png", "/uploads/properties/p/b.png"],
        permit_number="PER-1",
        description="Line one,\nline two",
    )
    rows = list(csv.reader(io.StringIO(export_csv([record], _BASE))))

    assert tuple(rows[0]) == CSV_HEADERS
    assert rows[1][0] == "Property Id"
    data = dict(zip(CSV_HEADERS, rows[2], strict=True))
    assert data["Title"] == record.title
    assert data["Content"] == "Line one,\nline two"
    assert data["Categories"] == "For Rent"
    assert data["Features"] == "Pool | Gym"
    assert data["images"] == (
        f"{_BASE}/uploads/properties/p/a.png | {_BASE}/uploads/properties/p/b.png"
    )
    assert data["property_a"] == "2"
    assert data["property_h"] == "PER-1"


def test_export_csv_empty_is_still_a_template() -> None:
    rows = list(csv.reader(io.StringIO(export_csv([]))))
    assert len(rows) == 2


# ---------------------------------------------------------------------------
# Excel
# ---------------------------------------------------------------------------


def test_flatten_joins_lists_and_dots_keys() -> None:
    flat = flatten({"main": {"id": "p1"}, "images": {"image_urls": ["a", "b"]}, "top": 1})
    assert flat == {"main.id": "p1", "images.image_urls": "a | b", "top": 1}


def test_export_xlsx_sheet(make_property: Callable[..., Property]) -> None:
    records = [
        make_property(
            enhanced_title="Stunning",
            features=["Pool", "Gym"],
            image_urls=["/uploads/properties/p/a.png"],
        ),
        make_property(price="Price on request"),
    ]
    wb = load_workbook(io.BytesIO(export_xlsx(records, _BASE)))
    ws = wb.active

    assert ws.title == SHEET_TITLE
    headers = [cell.value for cell in ws[1]]
    assert headers[:3] == ["main.id", "main.title", "main.description"]
    assert "matterport.matterport_link" in headers
    assert ws.cell(row=1, column=1).font.bold
    assert ws.max_row == 3

    first = dict(zip(headers, (cell.value for cell in ws[2]), strict=True))
    assert first["main.id"] == records[0].id
    assert first["main.title"] == "Stunning"
    assert first["features.features"] == "Pool | Gym"
    assert first["images.image_urls"] == f"{_BASE}/uploads/properties/p/a.png"

    second = dict(zip(headers, (cell.value for cell in ws[3]), strict=True))
    assert second["main.price_value"] is None


def test_export_xlsx_empty() -> None:
    ws = load_workbook(io.BytesIO(export_xlsx([]))).active
    assert ws.title == SHEET_TITLE
    assert ws.max_row == 1
    assert ws.cell(row=1, column=1).value is None


def test_export_xlsx_drops_control_characters(make_property: Callable[..., Property]) -> None:
    record = make_property(description="Sea view\x01 and pool", enhanced_description="")
    ws = load_workbook(io.BytesIO(export_xlsx([record]))).active
    headers = [cell.value for cell in ws[1]]
    assert ws.cell(row=2, column=headers.index("main.description") + 1).value == "Sea view and pool"
