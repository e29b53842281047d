"""Interface contracts for the external extraction and enhancement steps.

Turning page content into structured listings and rewriting listing copy
are both delegated to pluggable collaborators.  The ingestion pipeline only
relies on the two coroutine signatures below; any object providing them can
be configured (see :mod:`propscout.collaborators.loader`).

Typical usage::

    from propscout.collaborators.base import Enhancer
    from propscout.core.models import EnhancedContent


    class ShoutingEnhancer(Enhancer):
        async def enhance(self, title: str, description: str) -> EnhancedContent:
            return EnhancedContent(
                enhanced_title=title.upper(),
                enhanced_description=description,
            )
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from types import TracebackType

from propscout.core.models import CandidateProperty, EnhancedContent

__all__ = ["Collaborator", "Extractor", "Enhancer"]

logger = logging.getLogger(__name__)


class Collaborator(ABC):  # noqa: B024
    """Shared lifecycle for collaborators holding clients or sessions."""

    async def close(self) -> None:  # noqa: B027
        """Release any resources held by this collaborator.

        The default implementation is a no-op.
        """

    async def __aenter__(self) -> Collaborator:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()


class Extractor(Collaborator):
    """Turns raw page content into zero or more candidate listings."""

    @abstractmethod
    async def extract(self, content: str) -> list[CandidateProperty]:
        """Extract every listing found in *content*.

        Implementations should:

        * Return a (possibly empty) list of candidates, in page order.
        * Leave ``image_urls`` as found; relative URLs are resolved by the
          pipeline against the page URL.
        * Handle internal failures themselves and return ``[]``.  The
          pipeline still guards the call and treats an escaped exception as
          an empty result.
        """


class Enhancer(Collaborator):
    """Rewrites a listing's title and description."""

    @abstractmethod
    async def enhance(self, title: str, description: str) -> EnhancedContent:
        """Return an improved title/description pair.

        May raise; callers fall back to the original pair on failure.
        """
