"""
Timelapse compilation logic.

Contains the domain models, the storage/file naming scheme, and the
window selection algorithm.
"""

from .models import (
    AggregationWindow,
    CameraOutcome,
    CameraStatus,
    ImageObject,
    ObjectPage,
    RunSummary,
    VideoArtifact,
)
from .selection import (
    ListingError,
    ObjectLister,
    order_window_images,
    select_window_images,
)

__all__ = [
    "AggregationWindow",
    "CameraOutcome",
    "CameraStatus",
    "ImageObject",
    "ObjectPage",
    "RunSummary",
    "VideoArtifact",
    "ListingError",
    "ObjectLister",
    "order_window_images",
    "select_window_images",
]
