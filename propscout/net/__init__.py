"""HTTP access for listing pages."""

from propscout.net.http_client import HttpClient, PageFetcher

__all__ = ["HttpClient", "PageFetcher"]
