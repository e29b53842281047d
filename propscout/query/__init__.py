"""Filtered reads, bulk deletion and export statistics over the corpus."""

from propscout.query.engine import ExportStats, FilteredDeleteResult, QueryService, apply_filter

__all__ = ["QueryService", "FilteredDeleteResult", "ExportStats", "apply_filter"]
