"""Async HTTP client used to fetch listing pages.

Wraps :class:`httpx.AsyncClient` with:

* **User-Agent rotation** — a small pool of modern browser UA strings; a
  random UA is injected into every attempt.
* **Automatic retries** — exponential back-off with random jitter via
  :mod:`tenacity`, for transient failures only (5xx, 429, transport errors).
* **Rate-limit awareness** — HTTP 429 waits for ``Retry-After`` before the
  next attempt and raises :class:`~propscout.core.exceptions.RateLimitedError`
  once retries are exhausted.
* **Structured error mapping** — every persistent failure surfaces as a
  :class:`~propscout.core.exceptions.NetworkError` carrying the URL, so the
  ingestion pipeline has a single exception type to report.

:class:`PageFetcher` sits on top and is what the ingestion pipeline talks
to: one method, :meth:`PageFetcher.fetch_text`, returning the page body.

Typical usage::

    from propscout.net.http_client import PageFetcher

    async with PageFetcher() as fetcher:
        html = await fetcher.fetch_text("https://example.com/listing/42")
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from types import TracebackType
from typing import Final

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from propscout.core.exceptions import NetworkError, RateLimitedError

__all__ = ["HttpClient", "PageFetcher", "pick_user_agent"]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: HTTP status codes that signal a transient server-side fault (safe to retry).
_RETRYABLE_STATUS: Final[frozenset[int]] = frozenset({500, 502, 503, 504})

_DEFAULT_CONNECT_TIMEOUT: Final[float] = 10.0
_DEFAULT_READ_TIMEOUT: Final[float] = 20.0
_DEFAULT_MAX_ATTEMPTS: Final[int] = 3

#: Hard cap on exponential back-off base before adding jitter (seconds).
_MAX_BACKOFF_BASE: Final[float] = 30.0

#: Upper bound on jitter added on top of the exponential base (seconds).
_MAX_BACKOFF_JITTER: Final[float] = 5.0

#: Headers a browser sends when navigating to an HTML page.
HTML_HEADERS: Final[dict[str, str]] = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/webp,image/apng,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Connection": "keep-alive",
}

_USER_AGENTS: Final[list[str]] = [
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/124.0.0.0 Safari/537.36"
    ),
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/124.0.0.0 Safari/537.36"
    ),
    (
        "Mozilla/5.0 (X11; Linux x86_64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/124.0.0.0 Safari/537.36"
    ),
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) "
        "Gecko/20100101 Firefox/125.0"
    ),
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4_1) "
        "AppleWebKit/605.1.15 (KHTML, like Gecko) "
        "Version/17.4 Safari/605.1.15"
    ),
]


def pick_user_agent() -> str:
    """Return a randomly selected browser User-Agent string."""
    return random.choice(_USER_AGENTS)


# ---------------------------------------------------------------------------
# Internal sentinel exception
# ---------------------------------------------------------------------------


class _RetryableServerError(NetworkError):
    """Internal: signals a 5xx status for tenacity to retry.

    Surfaces to callers as a plain :class:`NetworkError` once retries run out.
    """


# ---------------------------------------------------------------------------
# Retry wait strategy
# ---------------------------------------------------------------------------


def backoff_wait(retry_state: RetryCallState) -> float:
    """Compute the wait before the next attempt.

    A :class:`RateLimitedError` with a positive ``retry_after`` is honoured
    exactly; everything else gets exponential back-off plus jitter.
    """
    if retry_state.outcome is not None:
        exc = retry_state.outcome.exception()
        if (
            isinstance(exc, RateLimitedError)
            and exc.retry_after is not None
            and exc.retry_after > 0
        ):
            logger.debug("Honouring Retry-After of %.1f s", exc.retry_after)
            return exc.retry_after

    attempt = max(retry_state.attempt_number, 1)
    base = min(2.0 ** (attempt - 1), _MAX_BACKOFF_BASE)
    jitter = random.uniform(0.0, min(base, _MAX_BACKOFF_JITTER))
    return base + jitter


# ---------------------------------------------------------------------------
# Public client
# ---------------------------------------------------------------------------


class HttpClient:
    """Async GET client with UA rotation, retries, and error mapping.

    Returns the :class:`httpx.Response` on HTTP 2xx and raises
    :class:`NetworkError` (or :class:`RateLimitedError`) on every other
    outcome.  Use as an ``async with`` context manager so the connection pool
    is closed on exit.

    Args:
        headers: Default headers merged into every request.  The rotated
            ``User-Agent`` always wins.
        connect_timeout: TCP connection establishment timeout in seconds.
        read_timeout: Timeout for receiving the response.
        max_attempts: Total attempts including the initial try (≥ 1).
        transport: Optional httpx transport (tests pass
            :class:`httpx.MockTransport`).
        wait: Optional tenacity wait callable replacing :func:`backoff_wait`.

    Raises:
        ValueError: If ``max_attempts`` is less than 1.
    """

    def __init__(
        self,
        *,
        headers: dict[str, str] | None = None,
        connect_timeout: float = _DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = _DEFAULT_READ_TIMEOUT,
        max_attempts: int = _DEFAULT_MAX_ATTEMPTS,
        transport: httpx.AsyncBaseTransport | None = None,
        wait: Callable[[RetryCallState], float] | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be ≥ 1, got {max_attempts!r}.")

        self._default_headers: dict[str, str] = headers or {}
        self._max_attempts = max_attempts
        self._timeout = httpx.Timeout(
            connect=connect_timeout,
            read=read_timeout,
            write=10.0,
            pool=5.0,
        )
        self._transport = transport
        self._wait = wait or backoff_wait
        self._http: httpx.AsyncClient | None = None

    async def __aenter__(self) -> HttpClient:
        await self._ensure_client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def get(self, url: str, *, headers: dict[str, str] | None = None) -> httpx.Response:
        """Perform an HTTP GET with retries.

        Raises:
            RateLimitedError: On HTTP 429 after exhausting retries.
            NetworkError: On any other persistent HTTP or transport error.
        """
        response: httpx.Response | None = None

        def _before_sleep(rs: RetryCallState) -> None:
            exc = rs.outcome.exception() if rs.outcome else None
            logger.warning(
                "GET %s attempt %d/%d failed (%s). Retrying…",
                url,
                rs.attempt_number,
                self._max_attempts,
                type(exc).__name__ if exc else "?",
            )

        try:
            async for attempt in AsyncRetrying(
                wait=self._wait,
                stop=stop_after_attempt(self._max_attempts),
                retry=retry_if_exception_type(
                    (_RetryableServerError, RateLimitedError, httpx.TransportError)
                ),
                reraise=True,
                before_sleep=_before_sleep,
            ):
                with attempt:
                    response = await self._single_request(url, headers)
        except httpx.TimeoutException as exc:
            raise NetworkError(url, f"Request timed out: {exc}") from exc
        except httpx.RequestError as exc:
            raise NetworkError(url, f"{type(exc).__name__}: {exc}") from exc

        assert response is not None, "tenacity exited without a response or exception"
        return response

    async def close(self) -> None:
        """Close the underlying HTTP client.  Safe to call repeatedly."""
        if self._http is not None and not self._http.is_closed:
            await self._http.aclose()
            logger.debug("HttpClient session closed.")
        self._http = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                headers={
                    "Accept-Encoding": "gzip, deflate",
                    "Cache-Control": "no-cache",
                    **self._default_headers,
                },
                transport=self._transport,
            )
        return self._http

    async def _single_request(
        self, url: str, extra_headers: dict[str, str] | None
    ) -> httpx.Response:
        client = await self._ensure_client()

        request_headers: dict[str, str] = {"User-Agent": pick_user_agent()}
        if extra_headers:
            request_headers.update(extra_headers)

        response = await client.get(url, headers=request_headers)
        logger.debug("GET %s → %d (%d bytes)", url, response.status_code, len(response.content))

        if response.is_success:
            return response

        if response.status_code == 429:
            retry_after = _parse_retry_after(response)
            logger.warning("Rate limited by %s, retry_after=%s", url, retry_after)
            raise RateLimitedError(url, retry_after=retry_after)

        if response.status_code in _RETRYABLE_STATUS:
            raise _RetryableServerError(url, f"Transient HTTP {response.status_code}")

        raise NetworkError(
            url,
            f"HTTP {response.status_code} {response.reason_phrase}".rstrip(),
        )


def _parse_retry_after(response: httpx.Response) -> float | None:
    """Return the ``Retry-After`` header in seconds, or ``None`` if absent/unparseable."""
    header = response.headers.get("retry-after", "")
    if not header:
        return None
    try:
        return max(float(header), 0.0)
    except ValueError:
        logger.debug("Could not parse Retry-After header %r", header)
        return None


# ---------------------------------------------------------------------------
# Page fetcher
# ---------------------------------------------------------------------------


class PageFetcher:
    """Retrieve the body of a single listing page.

    Args:
        client: Shared :class:`HttpClient`.  When omitted, the fetcher owns
            a client built from the timeout/attempt arguments and closes it
            on :meth:`close`.
        timeout: Read timeout for the owned client.
        max_attempts: Total attempts for the owned client.
    """

    def __init__(
        self,
        client: HttpClient | None = None,
        *,
        timeout: float = _DEFAULT_READ_TIMEOUT,
        max_attempts: int = _DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self._owns_client = client is None
        self._client = client or HttpClient(
            headers=HTML_HEADERS,
            read_timeout=timeout,
            max_attempts=max_attempts,
        )

    async def fetch_text(self, url: str) -> str:
        """Return the decoded body of *url*.

        Raises:
            NetworkError: Non-2xx status, timeout, or transport failure.
        """
        response = await self._client.get(url, headers=HTML_HEADERS)
        text = response.text
        logger.info("Fetched %s (%d chars)", url, len(text))
        return text

    async def close(self) -> None:
        if self._owns_client:
            await self._client.close()

    async def __aenter__(self) -> PageFetcher:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
