"""Propscout command-line entry-point.

Usage:
    python -m propscout [--log-level LEVEL] [--log-format FORMAT] COMMAND ...

Commands:
    scrape-url URL              ingest every listing on a page
    scrape-html FILE            ingest listings from saved page content ("-" = stdin)
    scrape-bulk FILE            ingest one URL per line ("-" = stdin)
    history [--clear]           show (or clear) the ingestion history
    stats                       corpus statistics for the given filter
    delete ID [ID ...]          delete records by id
    delete-filtered             delete every record matching the filter
    export                      write matching records as JSON, CSV or Excel
    repair-images               download images still referenced remotely
    contacts [--apply] [ID ...] find (and fill in) agent contacts in listing text
    re-enhance ID               re-run text enhancement on one record

This module is the composition root: it configures logging, builds the
storage adapter, fetcher, image downloader and collaborators from
:class:`~propscout.core.settings.Settings`, runs one command and closes
everything again.  Results are written to stdout as JSON; logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from contextlib import AsyncExitStack
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from propscout.core import configure_logging
from propscout.core.criteria import HistoryFilter, PropertyFilter
from propscout.core.exceptions import ConfigError, PropscoutError
from propscout.core.settings import Settings


def _add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("filter")
    group.add_argument("--start-date", metavar="DATE", help="Earliest scrape date (ISO).")
    group.add_argument("--end-date", metavar="DATE", help="Latest scrape date, inclusive (ISO).")
    group.add_argument("--property-type", metavar="TYPE", help="Exact property type.")
    group.add_argument("--location", metavar="TEXT", help="Substring of location/city/area.")
    group.add_argument("--min-price", type=int, metavar="N")
    group.add_argument("--max-price", type=int, metavar="N")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="propscout",
        description="Real-estate listing ingestion and export.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        metavar="LEVEL",
        help="Override LOG_LEVEL from the environment or .env (DEBUG|INFO|WARNING|ERROR).",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        metavar="FORMAT",
        help="Override LOG_FORMAT from the environment or .env (text|json).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("scrape-url", help="Ingest every listing on a page.")
    p.add_argument("url")

    p = sub.add_parser("scrape-html", help="Ingest listings from saved page content.")
    p.add_argument("file", help='Path to the content, or "-" for stdin.')
    p.add_argument("--source-url", default=None, help="Page the content was copied from.")

    p = sub.add_parser("scrape-bulk", help="Ingest one URL per line.")
    p.add_argument("file", help='Path to the URL list, or "-" for stdin.')

    p = sub.add_parser("history", help="Show the ingestion history.")
    p.add_argument("--clear", action="store_true", help="Delete every history entry.")
    p.add_argument("--kind", choices=["URL", "HTML", "BULK"], default=None)
    p.add_argument("--start-date", metavar="DATE")
    p.add_argument("--end-date", metavar="DATE")

    p = sub.add_parser("stats", help="Corpus statistics for the given filter.")
    _add_filter_arguments(p)

    p = sub.add_parser("delete", help="Delete records by id.")
    p.add_argument("ids", nargs="+", metavar="ID")

    p = sub.add_parser("delete-filtered", help="Delete every record matching the filter.")
    _add_filter_arguments(p)
    p.add_argument(
        "--all",
        action="store_true",
        help="Required to delete the whole corpus when no filter is given.",
    )

    p = sub.add_parser("export", help="Write matching records as JSON, CSV or Excel.")
    _add_filter_arguments(p)
    p.add_argument("--format", choices=["json", "csv", "xlsx"], default="json")
    p.add_argument("--output", "-o", default=None, help="Output file (default: stdout).")

    sub.add_parser("repair-images", help="Download images still referenced remotely.")

    p = sub.add_parser("contacts", help="Find agent contact details in listing text.")
    p.add_argument("ids", nargs="*", metavar="ID", help="Limit to these records.")
    p.add_argument(
        "--apply",
        action="store_true",
        help="Write the first phone/e-mail/name found into empty contact fields.",
    )

    p = sub.add_parser("re-enhance", help="Re-run text enhancement on one record.")
    p.add_argument("id")

    return parser


def _property_filter(args: argparse.Namespace) -> PropertyFilter:
    return PropertyFilter(
        start_date=args.start_date,
        end_date=args.end_date,
        property_type=args.property_type,
        location=args.location,
        min_price=args.min_price,
        max_price=args.max_price,
    )


def _read_input(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _emit(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, indent=2, ensure_ascii=False, default=str) + "\n")


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    """Execute one command; return the process exit code."""
    # Lazy imports keep `--help` fast and free of I/O.
    from propscout.collaborators import load_enhancer, load_extractor  # noqa: PLC0415
    from propscout.contacts import (  # noqa: PLC0415
        apply_all_contacts,
        apply_contacts,
        scan_contacts,
    )
    from propscout.export import export_csv, export_json, export_xlsx  # noqa: PLC0415
    from propscout.images import ImageDownloader, repair_missing_images  # noqa: PLC0415
    from propscout.net import PageFetcher  # noqa: PLC0415
    from propscout.orchestrator import IngestionPipeline  # noqa: PLC0415
    from propscout.query import QueryService  # noqa: PLC0415
    from propscout.storage import get_storage, reset_storage  # noqa: PLC0415

    storage = await get_storage(settings)
    query = QueryService(storage)
    try:
        command = args.command

        if command == "history":
            if args.clear:
                await storage.clear_history()
                _emit({"cleared": True})
                return 0
            criteria = HistoryFilter(
                start_date=args.start_date, end_date=args.end_date, kind=args.kind
            )
            entries = await query.filtered_history(criteria)
            _emit([entry.model_dump(mode="json") for entry in entries])
            return 0

        if command == "stats":
            stats = await query.export_stats(_property_filter(args))
            _emit(stats.to_dict())
            return 0

        if command == "delete":
            result = await query.delete_many(args.ids)
            _emit({"deleted": result.deleted_count, "not_found": result.not_found_count})
            return 0 if result.not_found_count == 0 else 1

        if command == "delete-filtered":
            criteria = _property_filter(args)
            if criteria.is_empty:
                if not args.all:
                    logging.getLogger(__name__).error(
                        "Refusing to delete the whole corpus without --all"
                    )
                    return 2
                _emit({"deleted": await query.delete_all(), "remaining": 0})
                return 0
            outcome = await query.delete_filtered(criteria)
            _emit({"deleted": outcome.deleted_count, "remaining": outcome.remaining_count})
            return 0

        if command == "export":
            records = await query.filtered(_property_filter(args))
            if args.format == "xlsx":
                if not args.output:
                    logging.getLogger(__name__).error("--output is required for xlsx")
                    return 2
                Path(args.output).write_bytes(export_xlsx(records, settings.public_base_url))
                _emit({"exported": len(records), "output": args.output})
                return 0
            render = export_csv if args.format == "csv" else export_json
            text = render(records, settings.public_base_url)
            if args.output:
                Path(args.output).write_text(text, encoding="utf-8")
                _emit({"exported": len(records), "output": args.output})
            else:
                sys.stdout.write(text if text.endswith("\n") else text + "\n")
            return 0

        if command == "repair-images":
            async with ImageDownloader.from_settings(settings) as downloader:
                report = await repair_missing_images(storage, downloader)
            _emit(
                {
                    "records_scanned": report.records_scanned,
                    "records_updated": report.records_updated,
                    "downloaded": report.downloaded,
                    "reused": report.reused,
                    "failed": report.failed,
                }
            )
            return 0

        if command == "contacts":
            if not args.apply:
                matches = await scan_contacts(storage)
                if args.ids:
                    matches = [m for m in matches if m.record.id in args.ids]
                _emit(
                    [
                        {"id": m.record.id, "title": m.record.title, **m.contacts.to_dict()}
                        for m in matches
                    ]
                )
                return 0
            if not args.ids:
                contact_report = await apply_all_contacts(storage)
                _emit(
                    {
                        "records_scanned": contact_report.records_scanned,
                        "records_with_contacts": contact_report.records_with_contacts,
                        "records_updated": contact_report.records_updated,
                        "updated_ids": contact_report.updated_ids,
                    }
                )
                return 0
            applied, missing = [], []
            for property_id in args.ids:
                record = await apply_contacts(storage, property_id)
                if record is None:
                    missing.append(property_id)
                else:
                    applied.append(record.model_dump(mode="json"))
            if missing:
                logging.getLogger(__name__).error("No record with id %s", ", ".join(missing))
            _emit(applied)
            return 0 if not missing else 1

        # Ingestion commands need the full pipeline.
        extractor = load_extractor(settings)
        enhancer = load_enhancer(settings)
        async with AsyncExitStack() as stack:
            fetcher = await stack.enter_async_context(
                PageFetcher(
                    timeout=settings.fetch_timeout, max_attempts=settings.fetch_max_attempts
                )
            )
            downloader = await stack.enter_async_context(ImageDownloader.from_settings(settings))
            for collaborator in (extractor, enhancer):
                close = getattr(collaborator, "close", None)
                if close is not None:
                    stack.push_async_callback(close)

            pipeline = IngestionPipeline(
                storage=storage,
                fetcher=fetcher,
                downloader=downloader,
                extractor=extractor,
                enhancer=enhancer,
            )

            if command == "scrape-url":
                result = await pipeline.scrape_url(args.url)
                _emit({"saved": result.saved, "produced": result.produced,
                       "ids": [p.id for p in result.properties]})
                return 0

            if command == "scrape-html":
                result = await pipeline.scrape_html(_read_input(args.file), args.source_url)
                _emit({"saved": result.saved, "produced": result.produced,
                       "ids": [p.id for p in result.properties]})
                return 0

            if command == "scrape-bulk":
                bulk = await pipeline.scrape_bulk(_read_input(args.file))
                _emit(
                    {
                        "succeeded": bulk.succeeded,
                        "failed": bulk.failed,
                        "saved": bulk.total_saved,
                        "failed_urls": bulk.failed_urls,
                    }
                )
                return 0 if bulk.failed == 0 else 1

            if command == "re-enhance":
                record = next(
                    (r for r in await storage.list_records() if r.id == args.id), None
                )
                if record is None:
                    logging.getLogger(__name__).error("No record with id %s", args.id)
                    return 1
                updated = await pipeline.re_enhance(record)
                if updated is None:
                    return 1
                _emit(updated.model_dump(mode="json"))
                return 0

        raise ConfigError(f"Unknown command {command!r}")  # pragma: no cover
    finally:
        await reset_storage()


def main(argv: list[str] | None = None) -> None:
    """CLI entry-point registered in ``pyproject.toml``."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # Flags win over LOG_LEVEL / LOG_FORMAT from the environment or .env.
    overrides = {
        name: value
        for name, value in (("log_level", args.log_level), ("log_format", args.log_format))
        if value is not None
    }
    try:
        settings = Settings(**overrides)
    except PydanticValidationError as exc:
        print(f"propscout: configuration error: {exc}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    # Before any component is built, so every module logs through it.
    configure_logging(settings)
    logger = logging.getLogger(__name__)

    try:
        code = asyncio.run(_run(args, settings))
    except PydanticValidationError as exc:
        parser.error(str(exc))
    except ConfigError as exc:
        logger.critical("Configuration error: %s", exc)
        sys.exit(1)
    except PropscoutError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting.")
        sys.exit(130)
    sys.exit(code)


if __name__ == "__main__":
    main()
