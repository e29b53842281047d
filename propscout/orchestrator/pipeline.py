"""Ingestion pipeline: fetch → extract → process → dedup → persist → history.

This module implements the core processing loop for one ingestion
invocation.  It is **collaborator-agnostic**: callers supply any extractor
and enhancer (see :mod:`propscout.collaborators`) and the pipeline threads
every candidate they produce through the following stages:

1. **Fetching** — retrieve the page with
   :meth:`~propscout.net.http_client.PageFetcher.fetch_text` (URL entry
   points only; pasted content starts at stage 2).
2. **Extracting** — hand the content to the extraction collaborator.
3. **Per-record processing** — for every candidate, resolve and download
   its images and enhance its text; the two run concurrently and every
   candidate of the batch is processed concurrently.
4. **Deduplicating** — drop candidates already present in the corpus
   (:class:`~propscout.dedup.engine.DeduplicationEngine`).
5. **Persisting** — prepend the survivors to the corpus.
6. **Done** — append one history entry describing the invocation.

``Failed`` is reachable from *Fetching* (validation or network errors) and
from *Deduplicating* (every candidate already stored).

Failures are **isolated** where it matters: an image download failure only
affects that image, an enhancement failure only falls back to the original
text of that record, and in bulk mode a failing URL is logged and skipped
while the remaining URLs continue.

Concurrency model
-----------------
Within one invocation, records are processed with
``asyncio.gather(..., return_exceptions=True)``; image downloads are bounded
by the downloader's shared semaphore.  Bulk URLs run strictly one after the
other.

Typical usage::

    from propscout.orchestrator.pipeline import IngestionPipeline

    async with FilesystemStorage("data") as storage:
        pipeline = IngestionPipeline(
            storage=storage,
            fetcher=PageFetcher(),
            downloader=ImageDownloader(image_root="public/uploads/properties"),
            extractor=JsonExtractor(),
            enhancer=PassthroughEnhancer(),
        )
        result = await pipeline.scrape_url("https://example.com/listing/42")
        print(result.saved)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from propscout.collaborators.base import Enhancer, Extractor
from propscout.core import events
from propscout.core.exceptions import ValidationError
from propscout.core.ids import new_property_id
from propscout.core.logging_config import ingest_scope
from propscout.core.models import (
    PLACEHOLDER_IMAGE_URL,
    RAW_SOURCE_URL,
    CandidateProperty,
    EnhancedContent,
    HistoryEntryCreate,
    HistoryKind,
    Property,
    ScrapeOrigin,
)
from propscout.dedup.engine import DeduplicationEngine
from propscout.images.downloader import (
    FailurePolicy,
    FileNaming,
    ImageDownloader,
    resolve_image_urls,
)
from propscout.net.http_client import PageFetcher
from propscout.storage.base import StorageAdapter

__all__ = [
    "MIN_CONTENT_LENGTH",
    "IngestionStage",
    "IngestionResult",
    "BulkIngestionResult",
    "IngestionPipeline",
    "split_url_lines",
]

logger = logging.getLogger(__name__)

#: Pasted content shorter than this is rejected as malformed.
MIN_CONTENT_LENGTH: int = 100

# ---------------------------------------------------------------------------
# Result data classes
# ---------------------------------------------------------------------------


class IngestionStage(StrEnum):
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    PER_RECORD_PROCESSING = "per_record_processing"
    DEDUPLICATING = "deduplicating"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class IngestionResult:
    """Outcome of one fetch-extract-process-persist cycle.

    Attributes:
        kind: History kind of the invocation (``URL`` / ``HTML`` / ``BULK``).
        source: Page URL, or :data:`RAW_SOURCE_URL` for pasted content.
        stage: Last stage reached; ``DONE`` on success, ``FAILED`` otherwise.
        failed_at: Stage that was running when the cycle failed.
        produced: Records assembled from the extracted candidates.
        saved: Records actually written (``produced - duplicates``).
        duplicates: Records rejected as already stored.
        properties: The records that were written.
        error: Error message when the cycle failed.
    """

    kind: HistoryKind
    source: str
    stage: IngestionStage = IngestionStage.FETCHING
    failed_at: IngestionStage | None = None
    produced: int = 0
    saved: int = 0
    duplicates: int = 0
    properties: list[Property] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.stage is IngestionStage.DONE


@dataclass
class BulkIngestionResult:
    """Aggregated outcome of a bulk invocation, one entry per URL."""

    results: list[IngestionResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    @property
    def total_saved(self) -> int:
        return sum(r.saved for r in self.results)

    @property
    def properties(self) -> list[Property]:
        return [p for r in self.results for p in r.properties]

    @property
    def failed_urls(self) -> list[str]:
        return [r.source for r in self.results if not r.ok]


def split_url_lines(urls: str | Iterable[str]) -> list[str]:
    """Split newline-separated input into stripped, non-blank URLs."""
    lines = urls.splitlines() if isinstance(urls, str) else list(urls)
    return [line.strip() for line in lines if line and line.strip()]


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class IngestionPipeline:
    """Sequence the ingestion stages over injected collaborators.

    The pipeline owns none of its dependencies; the composition root (the
    CLI) opens and closes them.

    Args:
        storage: Corpus adapter.
        fetcher: Page fetcher used by the URL entry points.
        downloader: Image downloader shared by every record.
        extractor: Extraction collaborator.
        enhancer: Enhancement collaborator.
    """

    def __init__(
        self,
        *,
        storage: StorageAdapter,
        fetcher: PageFetcher,
        downloader: ImageDownloader,
        extractor: Extractor,
        enhancer: Enhancer,
    ) -> None:
        self._storage = storage
        self._fetcher = fetcher
        self._downloader = downloader
        self._extractor = extractor
        self._enhancer = enhancer
        self._dedup = DeduplicationEngine(storage)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def scrape_url(self, url: str) -> IngestionResult:
        """Ingest every listing found on the page at *url*.

        Raises:
            ValidationError: If *url* does not look like an http(s) URL.
            NetworkError: If the page cannot be fetched.
            AllDuplicatesError: If every extracted listing is already stored.
            AdapterError: If the corpus cannot be read or written.
        """
        url = (url or "").strip()
        result = IngestionResult(kind=HistoryKind.URL, source=url)
        with ingest_scope():
            try:
                await self._run_url_cycle(result, details=url)
            except Exception as exc:
                self._mark_failed(result, exc)
                raise
        return result

    async def scrape_html(self, content: str, source_url: str | None = None) -> IngestionResult:
        """Ingest listings from pasted page content.

        Without *source_url* the records are marked ``RAW``: their
        ``source_url`` is :data:`RAW_SOURCE_URL` and relative image URLs
        cannot be resolved.  With a page URL they are treated like a URL
        scrape of that page.

        Raises:
            ValidationError: If *content* is shorter than
                :data:`MIN_CONTENT_LENGTH` characters.
            AllDuplicatesError: If every extracted listing is already stored.
        """
        page_url = (source_url or "").strip()
        has_url = page_url.startswith("http")
        result = IngestionResult(
            kind=HistoryKind.HTML,
            source=page_url if has_url else RAW_SOURCE_URL,
        )
        with ingest_scope():
            try:
                if not content or len(content) < MIN_CONTENT_LENGTH:
                    raise ValidationError(
                        f"Invalid HTML provided: need at least {MIN_CONTENT_LENGTH} characters"
                    )
                logger.info(
                    "Ingesting pasted content (%d chars, source=%s)",
                    len(content),
                    result.source,
                    extra={"event": events.INGEST_START},
                )
                await self._process_content(
                    result,
                    content,
                    origin=ScrapeOrigin.URL if has_url else ScrapeOrigin.RAW,
                    details="Pasted HTML content",
                )
            except Exception as exc:
                self._mark_failed(result, exc)
                raise
        return result

    async def scrape_bulk(self, urls: str | Iterable[str]) -> BulkIngestionResult:
        """Ingest many pages, one after the other.

        Each URL runs a full cycle; a failing URL is logged, recorded in the
        result and skipped.  One ``BULK`` history entry is appended per
        successful URL.

        Raises:
            ValidationError: If the input contains no URL at all.
        """
        url_list = split_url_lines(urls)
        if not url_list:
            raise ValidationError("No valid URLs found in bulk input.")

        logger.info("Bulk ingestion of %d URLs", len(url_list), extra={"event": events.BULK_START})
        bulk = BulkIngestionResult()

        for position, url in enumerate(url_list, start=1):
            result = IngestionResult(kind=HistoryKind.BULK, source=url)
            with ingest_scope():
                try:
                    await self._run_url_cycle(result, details=f"Bulk operation included: {url}")
                except Exception as exc:  # noqa: BLE001
                    self._mark_failed(result, exc)
                    logger.error(
                        "Bulk %d/%d: %s failed at %s, skipped: %s",
                        position,
                        len(url_list),
                        url,
                        result.failed_at,
                        exc,
                        extra={"event": events.BULK_URL_FAILED},
                    )
            bulk.results.append(result)

        logger.info(
            "Bulk done: %d URLs, %d succeeded, %d failed, %d properties saved",
            len(url_list),
            bulk.succeeded,
            bulk.failed,
            bulk.total_saved,
            extra={"event": events.BULK_DONE},
        )
        return bulk

    # ------------------------------------------------------------------
    # Single-record operations
    # ------------------------------------------------------------------

    async def re_enhance(self, record: Property) -> Property | None:
        """Re-run enhancement on *record*'s original text and store the result.

        Returns:
            The updated record, or ``None`` when the enhancer fails (the
            stored record is left untouched).

        Raises:
            NotFoundError: If *record* is no longer stored.
        """
        try:
            enhanced = await self._enhancer.enhance(
                record.original_title, record.original_description
            )
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Re-enhancement of %s failed: %s",
                record.id,
                exc,
                extra={"event": events.ENHANCE_FALLBACK},
            )
            return None

        updated = record.model_copy(
            update={
                "title": enhanced.enhanced_title,
                "description": enhanced.enhanced_description,
                "enhanced_title": enhanced.enhanced_title,
                "enhanced_description": enhanced.enhanced_description,
            }
        )
        return await self._storage.upsert_one(updated)

    async def save_property(self, record: Property) -> None:
        """Store one record, subject to the usual duplicate checks."""
        await self._dedup.save_new([record])

    async def update_property(self, record: Property) -> Property:
        return await self._storage.upsert_one(record)

    async def delete_property(self, property_id: str) -> bool:
        return await self._storage.delete_one(property_id)

    # ------------------------------------------------------------------
    # Cycle internals
    # ------------------------------------------------------------------

    async def _run_url_cycle(self, result: IngestionResult, *, details: str) -> None:
        url = result.source
        result.stage = IngestionStage.FETCHING
        if not url or "http" not in url:
            raise ValidationError(f"Invalid URL provided: {url!r}")

        logger.info("Ingesting %s", url, extra={"event": events.INGEST_START})
        content = await self._fetcher.fetch_text(url)
        logger.debug(
            "Fetched %d chars from %s", len(content), url, extra={"event": events.INGEST_FETCHED}
        )
        await self._process_content(result, content, origin=ScrapeOrigin.URL, details=details)

    async def _process_content(
        self,
        result: IngestionResult,
        content: str,
        *,
        origin: ScrapeOrigin,
        details: str,
    ) -> None:
        # ------------------------------------------------------------------
        # Extracting
        # ------------------------------------------------------------------
        result.stage = IngestionStage.EXTRACTING
        candidates = await self._extract(content)
        logger.info(
            "Extracted %d candidate(s) from %s",
            len(candidates),
            result.source,
            extra={"event": events.INGEST_EXTRACTED},
        )
        if not candidates:
            await self._finish(result, details)
            return

        # ------------------------------------------------------------------
        # Per-record processing
        # ------------------------------------------------------------------
        result.stage = IngestionStage.PER_RECORD_PROCESSING
        scraped_at = datetime.now(UTC)
        base_url = result.source if origin is ScrapeOrigin.URL else None
        outcomes = await asyncio.gather(
            *(
                self._assemble(candidate, source=result.source, base_url=base_url,
                               origin=origin, scraped_at=scraped_at)
                for candidate in candidates
            ),
            return_exceptions=True,
        )
        records: list[Property] = []
        for candidate, outcome in zip(candidates, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.error(
                    "Could not assemble record %r, skipped: %s",
                    candidate.title[:60],
                    outcome,
                    exc_info=outcome,
                )
                continue
            records.append(outcome)
        result.produced = len(records)
        logger.debug(
            "Assembled %d record(s)", len(records), extra={"event": events.INGEST_PROCESSED}
        )
        if not records:
            await self._finish(result, details)
            return

        # ------------------------------------------------------------------
        # Deduplicating + Persisting
        # ------------------------------------------------------------------
        result.stage = IngestionStage.DEDUPLICATING
        dedup = await self._dedup.save_new(records)
        result.stage = IngestionStage.PERSISTING
        result.saved = len(dedup.new)
        result.duplicates = len(dedup.duplicates)
        result.properties = dedup.new
        logger.info(
            "Persisted %d new record(s), %d duplicate(s)",
            result.saved,
            result.duplicates,
            extra={"event": events.INGEST_PERSISTED},
        )

        await self._finish(result, details)

    async def _finish(self, result: IngestionResult, details: str) -> None:
        """Append the invocation's history entry and mark *result* done.

        Runs for empty extractions too, with a count of zero.
        """
        await self._storage.append_history(
            HistoryEntryCreate(kind=result.kind, details=details, property_count=result.produced)
        )
        result.stage = IngestionStage.DONE
        logger.info(
            "Ingestion of %s done, %d record(s)",
            result.source,
            result.produced,
            extra={"event": events.INGEST_DONE},
        )

    async def _extract(self, content: str) -> list[CandidateProperty]:
        try:
            return list(await self._extractor.extract(content))
        except Exception as exc:  # noqa: BLE001
            logger.error("Extractor raised, treating as no listings: %s", exc, exc_info=True)
            return []

    async def _assemble(
        self,
        candidate: CandidateProperty,
        *,
        source: str,
        base_url: str | None,
        origin: ScrapeOrigin,
        scraped_at: datetime,
    ) -> Property:
        property_id = new_property_id()
        image_sources = resolve_image_urls(candidate.image_urls, base_url)

        images, enhanced = await asyncio.gather(
            self._downloader.acquire(
                image_sources,
                property_id,
                on_failure=FailurePolicy.FALLBACK_TO_SOURCE,
                naming=FileNaming.RANDOM,
            ),
            self._enhance(candidate.title, candidate.description),
            return_exceptions=True,
        )

        if isinstance(images, BaseException):
            logger.error("Image acquisition for %s raised: %s", property_id, images)
            references = image_sources or [PLACEHOLDER_IMAGE_URL]
        else:
            references = images.references
        if isinstance(enhanced, BaseException):
            enhanced = EnhancedContent.echo(candidate.title, candidate.description)

        return Property(
            **candidate.model_dump(exclude={"title", "description", "image_urls"}),
            id=property_id,
            source_url=source,
            origin=origin,
            scraped_at=scraped_at,
            title=enhanced.enhanced_title,
            description=enhanced.enhanced_description,
            original_title=candidate.title,
            original_description=candidate.description,
            enhanced_title=enhanced.enhanced_title,
            enhanced_description=enhanced.enhanced_description,
            image_urls=references,
            image_url=references[0],
        )

    async def _enhance(self, title: str, description: str) -> EnhancedContent:
        if not (title and description):
            return EnhancedContent.echo(title, description)
        try:
            return await self._enhancer.enhance(title, description)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Enhancement failed, keeping original text: %s",
                exc,
                extra={"event": events.ENHANCE_FALLBACK},
            )
            return EnhancedContent.echo(title, description)

    @staticmethod
    def _mark_failed(result: IngestionResult, exc: BaseException) -> None:
        result.failed_at = result.stage
        result.stage = IngestionStage.FAILED
        result.error = str(exc)
        logger.warning(
            "Ingestion of %s failed at %s: %s",
            result.source,
            result.failed_at,
            exc,
            extra={"event": events.INGEST_FAILED},
        )
