"""Batched, failure-tolerant image acquisition.

:class:`ImageDownloader` copies remote listing images into local storage
under bounded network concurrency:

* URLs are processed in sequential batches of ``concurrency`` items; items
  inside a batch run concurrently and the batch joins before the next one
  starts (``asyncio.gather(..., return_exceptions=True)``).
* Every item waits a random ``uniform(0, jitter_max)`` delay before its
  request, and a fixed ``batch_delay`` separates consecutive batches.
* A semaphore shared by every acquisition on the same downloader caps the
  number of in-flight requests at ``concurrency`` even when several records
  acquire their images at the same time.
* Bodies are streamed to a temp file and renamed into place, so a file only
  appears once it was written completely.
* A failure (non-2xx, transport error, timeout, write error) is confined to
  its item.  Nothing is retried.

What happens to failed items is the caller's decision, expressed with
:class:`FailurePolicy`; the argument has no default.

Typical usage::

    from propscout.images.downloader import FailurePolicy, FileNaming, ImageDownloader

    async with ImageDownloader(image_root="public/uploads/properties") as dl:
        result = await dl.acquire(
            urls,
            "prop-1718000000000-a1b2c3d4",
            on_failure=FailurePolicy.FALLBACK_TO_SOURCE,
            naming=FileNaming.RANDOM,
        )
"""

from __future__ import annotations

import asyncio
import logging
import os
import random
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path, PurePosixPath
from types import TracebackType
from typing import Final
from urllib.parse import urljoin, urlparse

import httpx

from propscout.core import events
from propscout.core.ids import new_file_token
from propscout.core.models import PLACEHOLDER_IMAGE_URL
from propscout.core.settings import Settings

__all__ = [
    "FailurePolicy",
    "FileNaming",
    "ImageAcquisitionResult",
    "ImageDownloader",
    "resolve_image_urls",
    "extension_for",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: User-Agent sent with every image request.
IMAGE_USER_AGENT: Final[str] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 propscout-image-fetcher/0.1"
)

DEFAULT_EXTENSION: Final[str] = ".jpg"

_CONTENT_TYPE_EXTENSIONS: Final[dict[str, str]] = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/pjpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/avif": ".avif",
    "image/bmp": ".bmp",
    "image/svg+xml": ".svg",
}

_URL_EXTENSION_RE = re.compile(r"^\.[a-z0-9]{1,5}$")

_CHUNK_SIZE: Final[int] = 64 * 1024


class FailurePolicy(StrEnum):
    """What to store in place of an image that could not be downloaded.

    ``FALLBACK_TO_SOURCE`` keeps the remote URL so the record still shows
    something (ingestion).  ``OMIT`` drops the item so only verified local
    files remain (repair).
    """

    FALLBACK_TO_SOURCE = "fallback_to_source"
    OMIT = "omit"


class FileNaming(StrEnum):
    """How downloaded files are named inside the per-record directory."""

    RANDOM = "random"  # <uuid4 hex><ext>
    INDEX = "index"  # image_<position><ext>


@dataclass(frozen=True)
class ImageAcquisitionResult:
    """Outcome of one :meth:`ImageDownloader.acquire` call.

    Attributes:
        references: Final, ordered image references (local public paths,
            fallback source URLs, or the placeholder).  Never empty.
        succeeded: Items downloaded during this call.
        failed: Items whose download failed.
        reused: Items satisfied by a file already on disk.
    """

    references: list[str]
    succeeded: int
    failed: int
    reused: int = 0

    @property
    def attempted(self) -> int:
        return self.succeeded + self.failed


class _ImageDownloadError(Exception):
    """Internal: one item failed.  Never escapes :meth:`ImageDownloader.acquire`."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def resolve_image_urls(urls: Iterable[str], base_url: str | None) -> list[str]:
    """Return absolute ``http(s)`` URLs for *urls*, resolved against *base_url*.

    Relative entries are joined onto the page URL they were extracted from.
    Entries that still do not form an absolute http(s) URL (e.g. relative
    paths from pasted content without a page URL) are dropped.
    """
    resolved: list[str] = []
    for raw in urls:
        candidate = (raw or "").strip()
        if not candidate:
            continue
        if base_url and base_url.startswith("http"):
            candidate = urljoin(base_url, candidate)
        parsed = urlparse(candidate)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            logger.warning("Dropping unresolvable image URL %r (base=%r)", raw, base_url)
            continue
        resolved.append(candidate)
    return resolved


def extension_for(content_type: str | None, url: str) -> str:
    """Pick a file extension: content-type first, then the URL path, then ``.jpg``."""
    if content_type:
        mime = content_type.split(";", 1)[0].strip().lower()
        if mime in _CONTENT_TYPE_EXTENSIONS:
            return _CONTENT_TYPE_EXTENSIONS[mime]
    suffix = PurePosixPath(urlparse(url).path).suffix.lower()
    if _URL_EXTENSION_RE.match(suffix):
        return ".jpg" if suffix == ".jpeg" else suffix
    return DEFAULT_EXTENSION


def _batched(items: Sequence[tuple[int, str]], size: int) -> list[Sequence[tuple[int, str]]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


# ---------------------------------------------------------------------------
# Downloader
# ---------------------------------------------------------------------------


class ImageDownloader:
    """Download listing images into ``image_root/{property_id}/``.

    Args:
        image_root: Filesystem root; one sub-directory per record.
        public_prefix: Prefix of the references stored on records.
        concurrency: Batch size and in-flight cap.
        timeout: Per-image timeout in seconds, covering the whole transfer.
        jitter_max: Upper bound of the random pre-request delay.
        batch_delay: Fixed delay between batches.
        transport: Optional httpx transport (tests pass
            :class:`httpx.MockTransport`).
    """

    def __init__(
        self,
        *,
        image_root: str | Path,
        public_prefix: str = "/uploads/properties",
        concurrency: int = 5,
        timeout: float = 30.0,
        jitter_max: float = 1.0,
        batch_delay: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be ≥ 1, got {concurrency!r}.")
        self._root = Path(image_root)
        self._prefix = public_prefix.rstrip("/")
        self._concurrency = concurrency
        self._timeout = timeout
        self._jitter_max = jitter_max
        self._batch_delay = batch_delay
        self._transport = transport
        self._semaphore = asyncio.Semaphore(concurrency)
        self._http: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> ImageDownloader:
        return cls(
            image_root=settings.image_root_resolved,
            public_prefix=settings.image_public_prefix,
            concurrency=settings.image_concurrency,
            timeout=settings.image_timeout,
            jitter_max=settings.image_jitter_max,
            batch_delay=settings.image_batch_delay,
            transport=transport,
        )

    @property
    def image_root(self) -> Path:
        return self._root

    def reference_for(self, property_id: str, file_name: str) -> str:
        return f"{self._prefix}/{property_id}/{file_name}"

    def local_path_for(self, reference: str) -> Path | None:
        """Map a stored reference back to its file, or ``None`` if it is not local."""
        prefix = f"{self._prefix}/"
        if not reference.startswith(prefix):
            return None
        return self._root / reference[len(prefix) :]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> ImageDownloader:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._http is not None and not self._http.is_closed:
            await self._http.aclose()
        self._http = None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                headers={"User-Agent": IMAGE_USER_AGENT, "Accept": "image/*,*/*;q=0.8"},
                transport=self._transport,
            )
        return self._http

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def acquire(
        self,
        urls: Sequence[str],
        property_id: str,
        *,
        on_failure: FailurePolicy,
        naming: FileNaming,
        skip_existing: bool = False,
    ) -> ImageAcquisitionResult:
        """Download *urls* for *property_id* and return the final references.

        Args:
            urls: Absolute image URLs, in display order.
            property_id: Owning record id; names the target directory.
            on_failure: Treatment of failed items (required).
            naming: File naming scheme.
            skip_existing: With ``FileNaming.INDEX``, reuse an existing
                ``image_{i}.*`` file instead of downloading position *i*.

        Returns:
            An :class:`ImageAcquisitionResult` whose ``references`` keep the
            input order.  They are never empty: the placeholder is used when
            nothing else is available.
        """
        slots: list[str | None] = [None] * len(urls)
        pending: list[tuple[int, str]] = []
        reused = 0

        for index, url in enumerate(urls):
            if skip_existing and naming is FileNaming.INDEX:
                existing = self._existing_indexed_file(property_id, index)
                if existing is not None:
                    slots[index] = self.reference_for(property_id, existing.name)
                    reused += 1
                    continue
            pending.append((index, url))

        succeeded = 0
        failed = 0
        batches = _batched(pending, self._concurrency)

        for batch_no, batch in enumerate(batches):
            if batch_no and self._batch_delay > 0:
                await asyncio.sleep(self._batch_delay)

            results = await asyncio.gather(
                *(self._download_one(url, property_id, index, naming) for index, url in batch),
                return_exceptions=True,
            )

            batch_ok = 0
            for (index, url), outcome in zip(batch, results, strict=True):
                if isinstance(outcome, BaseException):
                    failed += 1
                    logger.warning(
                        "Image download failed for %s (%s): %s",
                        property_id,
                        url,
                        outcome,
                        extra={"event": events.IMAGE_DOWNLOAD_FAILED},
                    )
                    if on_failure is FailurePolicy.FALLBACK_TO_SOURCE:
                        slots[index] = url
                else:
                    succeeded += 1
                    batch_ok += 1
                    slots[index] = outcome

            logger.debug(
                "Image batch %d/%d for %s: %d/%d downloaded",
                batch_no + 1,
                len(batches),
                property_id,
                batch_ok,
                len(batch),
                extra={"event": events.IMAGE_BATCH_DONE},
            )

        references = [ref for ref in slots if ref is not None]
        if on_failure is FailurePolicy.OMIT and succeeded + reused == 0:
            references = [PLACEHOLDER_IMAGE_URL]
        elif not references:
            references = [PLACEHOLDER_IMAGE_URL]

        if urls:
            logger.info(
                "Images for %s: %d downloaded, %d reused, %d failed",
                property_id,
                succeeded,
                reused,
                failed,
            )
        return ImageAcquisitionResult(
            references=references, succeeded=succeeded, failed=failed, reused=reused
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _existing_indexed_file(self, property_id: str, index: int) -> Path | None:
        directory = self._root / property_id
        if not directory.is_dir():
            return None
        for candidate in sorted(directory.glob(f"image_{index}.*")):
            if candidate.is_file() and not candidate.name.endswith(".tmp"):
                return candidate
        return None

    async def _download_one(
        self, url: str, property_id: str, index: int, naming: FileNaming
    ) -> str:
        directory = self._root / property_id
        directory.mkdir(parents=True, exist_ok=True)

        if self._jitter_max > 0:
            await asyncio.sleep(random.uniform(0.0, self._jitter_max))

        stem = f"image_{index}" if naming is FileNaming.INDEX else new_file_token()
        tmp_path = directory / f".{stem}.{new_file_token()[:8]}.tmp"

        async with self._semaphore:
            try:
                async with asyncio.timeout(self._timeout):
                    file_name = await self._stream_to(url, tmp_path, stem)
            except (httpx.HTTPError, OSError, TimeoutError, _ImageDownloadError) as exc:
                tmp_path.unlink(missing_ok=True)
                if isinstance(exc, _ImageDownloadError):
                    raise
                raise _ImageDownloadError(f"{type(exc).__name__}: {exc}") from exc

        os.replace(tmp_path, directory / file_name)
        return self.reference_for(property_id, file_name)

    async def _stream_to(self, url: str, tmp_path: Path, stem: str) -> str:
        async with self._client().stream("GET", url) as response:
            if not response.is_success:
                raise _ImageDownloadError(f"HTTP {response.status_code}")
            ext = extension_for(response.headers.get("content-type"), url)
            with tmp_path.open("wb") as fh:
                async for chunk in response.aiter_bytes(_CHUNK_SIZE):
                    fh.write(chunk)
        return f"{stem}{ext}"
