"""Offline repair of records whose images were never copied locally.

Walks the whole corpus, downloads every remote image that has no local
``image_{i}.*`` counterpart yet, and rewrites each record's ``image_urls`` /
``image_url`` to point at local files only.  Files already on disk are kept
as they are; records left with nothing get the placeholder.

Repair uses :attr:`FailurePolicy.OMIT` and :attr:`FileNaming.INDEX`, so
re-running it is cheap: positions that were downloaded before are reused.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from propscout.core import events
from propscout.core.models import PLACEHOLDER_IMAGE_URL, Property
from propscout.images.downloader import FailurePolicy, FileNaming, ImageDownloader
from propscout.storage.base import StorageAdapter

__all__ = ["RepairReport", "repair_missing_images"]

logger = logging.getLogger(__name__)


@dataclass
class RepairReport:
    """Counters for one repair run.

    Attributes:
        records_scanned: Records inspected.
        records_updated: Records whose image references changed.
        downloaded: Images fetched during this run.
        reused: Remote images that already had a local file.
        failed: Images that could not be fetched (omitted from the record).
        placeholders: Records that ended up with only the placeholder.
    """

    records_scanned: int = 0
    records_updated: int = 0
    downloaded: int = 0
    reused: int = 0
    failed: int = 0
    placeholders: int = 0
    updated_ids: list[str] = field(default_factory=list)


def _is_remote(url: str) -> bool:
    return url.startswith("http") and url != PLACEHOLDER_IMAGE_URL


async def _repair_one(
    record: Property, downloader: ImageDownloader, report: RepairReport
) -> Property:
    local_refs: list[str] = []
    for ref in record.image_urls:
        if _is_remote(ref) or ref == PLACEHOLDER_IMAGE_URL:
            continue
        path = downloader.local_path_for(ref)
        if path is not None and path.is_file():
            local_refs.append(ref)

    remote = [ref for ref in record.image_urls if _is_remote(ref)]

    if remote:
        result = await downloader.acquire(
            remote,
            record.id,
            on_failure=FailurePolicy.OMIT,
            naming=FileNaming.INDEX,
            skip_existing=True,
        )
        report.downloaded += result.succeeded
        report.reused += result.reused
        report.failed += result.failed
        fetched = [ref for ref in result.references if ref != PLACEHOLDER_IMAGE_URL]
    else:
        fetched = []

    images = local_refs + [ref for ref in fetched if ref not in local_refs]
    if not images:
        images = [PLACEHOLDER_IMAGE_URL]
        report.placeholders += 1

    if images == record.image_urls and record.image_url == images[0]:
        return record
    return record.model_copy(update={"image_urls": images, "image_url": images[0]})


async def repair_missing_images(
    storage: StorageAdapter, downloader: ImageDownloader
) -> RepairReport:
    """Download missing images for every stored record and persist the result.

    Records are processed one at a time; the downloader bounds concurrency
    within each record.  The corpus is written back once, with
    :meth:`StorageAdapter.replace_all`, and only if something changed.
    """
    records = await storage.list_records()
    report = RepairReport(records_scanned=len(records))

    repaired: list[Property] = []
    for record in records:
        updated = await _repair_one(record, downloader, report)
        if updated is not record:
            report.records_updated += 1
            report.updated_ids.append(record.id)
        repaired.append(updated)

    if report.records_updated:
        await storage.replace_all(repaired)

    logger.info(
        "Image repair: %d records scanned, %d updated, %d downloaded, %d reused, %d failed",
        report.records_scanned,
        report.records_updated,
        report.downloaded,
        report.reused,
        report.failed,
        extra={"event": events.IMAGES_REPAIRED},
    )
    return report
