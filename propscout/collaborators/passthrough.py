"""Built-in collaborators that need no external service.

* :class:`NullExtractor` — finds nothing; the default until a real
  extractor is configured.
* :class:`JsonExtractor` — reads listings that are already structured, as a
  JSON array of objects or ``{"properties": [...]}``.
* :class:`PassthroughEnhancer` — returns the title and description as-is.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from propscout.collaborators.base import Enhancer, Extractor
from propscout.collaborators.normalizers import normalise_candidate
from propscout.core.models import CandidateProperty, EnhancedContent

__all__ = ["NullExtractor", "JsonExtractor", "PassthroughEnhancer"]

logger = logging.getLogger(__name__)


class NullExtractor(Extractor):
    async def extract(self, content: str) -> list[CandidateProperty]:
        logger.debug("NullExtractor ignoring %d chars of content", len(content))
        return []


class JsonExtractor(Extractor):
    """Extract candidates from JSON content.

    Accepts a top-level array of listing objects or an object with a
    ``properties`` array.  Items that are not objects, or that fail
    validation, are skipped.  Content that is not JSON yields ``[]``.
    """

    async def extract(self, content: str) -> list[CandidateProperty]:
        try:
            payload: Any = json.loads(content)
        except ValueError:
            logger.info("JsonExtractor: content is not JSON, nothing extracted")
            return []

        if isinstance(payload, dict):
            payload = payload.get("properties", [])
        if not isinstance(payload, list):
            return []

        candidates: list[CandidateProperty] = []
        for position, item in enumerate(payload):
            if not isinstance(item, dict):
                logger.debug("JsonExtractor: item %d is not an object, skipped", position)
                continue
            try:
                candidates.append(normalise_candidate(item))
            except PydanticValidationError as exc:
                logger.warning("JsonExtractor: item %d rejected: %s", position, exc)
        return candidates


class PassthroughEnhancer(Enhancer):
    async def enhance(self, title: str, description: str) -> EnhancedContent:
        return EnhancedContent.echo(title, description)
