"""
Image selection for a camera's aggregation window.

Deciding which stills go into "the last 24 hours" video is the only
non-trivial logic in the job:

1. List every object under the camera's image folder for the run's date,
   following continuation tokens until the listing is exhausted.
2. Keep objects modified inside the window that carry the image extension.
3. Order by last-modified, then by key, so equal timestamps always come
   out in the same order.

Filtering and ordering happen only after all pages are collected, so a
listing split over N pages selects exactly what a single page would.
"""

import logging
from datetime import datetime
from typing import AsyncIterator, Iterable, Optional, Protocol

from .models import AggregationWindow, ImageObject, ObjectPage
from .naming import DEFAULT_UTC_OFFSET_HOURS, folder_date, images_folder

logger = logging.getLogger(__name__)


class ListingError(Exception):
    """Raised when a prefix listing cannot be completed."""
    pass


class ObjectLister(Protocol):
    """
    The one storage capability selection needs.

    Any client returning ObjectPage values works: the boto3 adapter in
    production, an in-memory store in tests.
    """

    async def list_objects_page(
        self,
        prefix: str,
        continuation_token: Optional[str] = None,
    ) -> ObjectPage:
        """Return one page of objects under prefix."""
        ...


async def iter_prefix_objects(
    store: ObjectLister,
    prefix: str,
) -> AsyncIterator[ImageObject]:
    """Yield every object under prefix across all listing pages."""
    token: Optional[str] = None
    pages = 0
    while True:
        page = await store.list_objects_page(prefix, continuation_token=token)
        pages += 1
        for obj in page.objects:
            yield obj
        if not page.next_token:
            break
        if page.next_token == token:
            raise ListingError(
                f"Listing of {prefix} returned the same continuation token twice"
            )
        token = page.next_token

    logger.debug("Listed prefix", extra={"prefix": prefix, "pages": pages})


def order_window_images(
    objects: Iterable[ImageObject],
    window: AggregationWindow,
    extension: str = ".jpg",
) -> list[ImageObject]:
    """Filter objects to the window and extension, oldest first, ties by key."""
    eligible = [
        obj for obj in objects
        if window.contains(obj.last_modified) and obj.has_extension(extension)
    ]
    return sorted(eligible, key=lambda obj: (obj.last_modified, obj.key))


async def select_window_images(
    store: ObjectLister,
    camera: str,
    reference_time: datetime,
    lookback_hours: int = 24,
    extension: str = ".jpg",
    offset_hours: int = DEFAULT_UTC_OFFSET_HOURS,
) -> list[str]:
    """
    Ordered keys of the images belonging to camera's current window.

    An empty list (no images, or no folder for the date) means "skip this
    camera"; it is not an error.
    """
    if reference_time.tzinfo is None:
        raise ValueError("reference_time must be timezone-aware")

    prefix = images_folder(camera, folder_date(reference_time, offset_hours))
    window = AggregationWindow.ending_at(reference_time, lookback_hours)

    listed = [obj async for obj in iter_prefix_objects(store, prefix)]
    selected = order_window_images(listed, window, extension)

    logger.info(
        "Selected window images",
        extra={
            "camera": camera,
            "prefix": prefix,
            "listed": len(listed),
            "selected": len(selected),
            "window_start": window.start.isoformat(),
            "window_end": window.end.isoformat(),
        }
    )

    return [obj.key for obj in selected]
