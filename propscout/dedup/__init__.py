"""Fingerprint-based duplicate detection for incoming listings."""

from propscout.dedup.engine import DedupResult, DeduplicationEngine, filter_new, fingerprints

__all__ = ["DedupResult", "DeduplicationEngine", "filter_new", "fingerprints"]
