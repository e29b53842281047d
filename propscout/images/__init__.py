"""Image acquisition for listing records and offline repair of missing files."""

from propscout.images.downloader import (
    FailurePolicy,
    FileNaming,
    ImageAcquisitionResult,
    ImageDownloader,
    resolve_image_urls,
)
from propscout.images.repair import RepairReport, repair_missing_images

__all__ = [
    "FailurePolicy",
    "FileNaming",
    "ImageAcquisitionResult",
    "ImageDownloader",
    "resolve_image_urls",
    "RepairReport",
    "repair_missing_images",
]
