"""End-to-end tests for the ``python -m propscout`` command line.

Each test points ``DATA_DIR`` / ``IMAGE_ROOT`` at ``tmp_path`` and calls
:func:`propscout.__main__.main` in-process; exit codes surface as
``SystemExit``.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from propscout import __main__ as cli
from propscout.__main__ import main
from propscout.core.settings import Settings


@pytest.fixture()
def cli_env(clean_env: None, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("IMAGE_ROOT", str(tmp_path / "images"))
    monkeypatch.setenv("EXTRACTOR", "propscout.collaborators.passthrough:JsonExtractor")
    return tmp_path


def _run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return int(exc_info.value.code or 0)


def _listings_file(tmp_path: Path) -> Path:
    listings = [
        {
            "title": "Villa with garden",
            "description": "Five bedrooms, private pool and a large garden.",
            "propertyType": "Villa",
            "price": "AED 4,500,000",
            "location": "Arabian Ranches",
            "bedrooms": 5,
        },
        {
            "title": "Studio near metro",
            "description": "Compact studio, walking distance to the metro.",
            "propertyType": "Apartment",
            "price": "AED 45,000",
            "location": "JLT",
        },
    ]
    path = tmp_path / "page.json"
    path.write_text(json.dumps(listings), encoding="utf-8")
    return path


def test_stats_on_empty_corpus(cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(["stats"]) == 0
    assert json.loads(capsys.readouterr().out)["total"] == 0


def test_ingest_export_and_delete(cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    page = _listings_file(cli_env)

    assert _run(["scrape-html", str(page)]) == 0
    assert json.loads(capsys.readouterr().out)["saved"] == 2

    assert _run(["history", "--kind", "HTML"]) == 0
    (entry,) = json.loads(capsys.readouterr().out)
    assert entry["property_count"] == 2

    out_file = cli_env / "export.csv"
    assert _run(["export", "--format", "csv", "--output", str(out_file)]) == 0
    assert json.loads(capsys.readouterr().out)["exported"] == 2
    assert out_file.read_text(encoding="utf-8").startswith("Title,Content,images")

    assert _run(["delete-filtered"]) == 2
    capsys.readouterr()

    assert _run(["delete-filtered", "--property-type", "villa"]) == 0
    assert json.loads(capsys.readouterr().out) == {"deleted": 1, "remaining": 1}

    assert _run(["delete-filtered", "--all"]) == 0
    assert json.loads(capsys.readouterr().out) == {"deleted": 1, "remaining": 0}


def test_duplicate_ingestion_exits_non_zero(cli_env: Path) -> None:
    page = _listings_file(cli_env)
    assert _run(["scrape-html", str(page)]) == 0
    assert _run(["scrape-html", str(page)]) == 1


def test_invalid_url_exits_non_zero(cli_env: Path) -> None:
    assert _run(["scrape-url", "not-a-url"]) == 1


def test_bad_filter_is_a_usage_error(cli_env: Path) -> None:
    assert _run(["stats", "--min-price", "10", "--max-price", "5"]) == 2


def test_unknown_log_level_exits(cli_env: Path) -> None:
    assert _run(["--log-level", "LOUD", "stats"]) == 1


def test_logging_configured_from_settings_with_flag_override(
    cli_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    seen: list[Settings] = []
    monkeypatch.setattr(cli, "configure_logging", seen.append)
    monkeypatch.setenv("LOG_FORMAT", "json")
    monkeypatch.setenv("LOG_LEVEL", "ERROR")

    assert _run(["--log-level", "warning", "stats"]) == 0
    (settings,) = seen
    assert (settings.log_level, settings.log_format) == ("WARNING", "json")


def test_contacts_scan_then_apply(cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    listing = {
        "title": "Townhouse in Mira",
        "description": "Three bedrooms. Listed by: Jane Doe. Call 050 123 4567.",
        "propertyType": "Townhouse",
        "location": "Mira",
    }
    page = cli_env / "page.json"
    page.write_text(json.dumps([listing]), encoding="utf-8")
    assert _run(["scrape-html", str(page)]) == 0
    capsys.readouterr()

    assert _run(["contacts"]) == 0
    (found,) = json.loads(capsys.readouterr().out)
    assert found["phones"] == ["050 123 4567"]
    assert found["names"] == ["Jane Doe"]

    assert _run(["contacts", "--apply"]) == 0
    assert json.loads(capsys.readouterr().out)["records_updated"] == 1

    assert _run(["contacts", "--apply", found["id"], "missing-id"]) == 1
    (record,) = json.loads(capsys.readouterr().out)
    assert record["listed_by_phone"] == "050 123 4567"
    assert record["listed_by_name"] == "Jane Doe"


def test_export_xlsx_needs_output_file(cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(["scrape-html", str(_listings_file(cli_env))]) == 0
    capsys.readouterr()

    assert _run(["export", "--format", "xlsx"]) == 2

    out_file = cli_env / "export.xlsx"
    assert _run(["export", "--format", "xlsx", "--output", str(out_file)]) == 0
    assert json.loads(capsys.readouterr().out)["exported"] == 2
    assert out_file.read_bytes()[:2] == b"PK"
