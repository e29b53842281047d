"""Ingestion sequencing: fetch, extract, per-record processing, dedup, persist.

Public API
----------
* :class:`~propscout.orchestrator.pipeline.IngestionPipeline` — URL, pasted
  content and bulk entry points plus single-record operations.
* :class:`~propscout.orchestrator.pipeline.IngestionResult` /
  :class:`~propscout.orchestrator.pipeline.BulkIngestionResult` — per-run
  outcome records.
* :func:`~propscout.orchestrator.pipeline.split_url_lines` — bulk input
  parsing; exposed for testing.
"""

from propscout.orchestrator.pipeline import (
    MIN_CONTENT_LENGTH,
    BulkIngestionResult,
    IngestionPipeline,
    IngestionResult,
    IngestionStage,
    split_url_lines,
)

__all__ = [
    "IngestionPipeline",
    "IngestionStage",
    "IngestionResult",
    "BulkIngestionResult",
    "MIN_CONTENT_LENGTH",
    "split_url_lines",
]
