"""
Storage layout and local file naming.

Downstream consumers browse the bucket by these keys and parse the tag
string, so every format here is a compatibility contract:

    <camera>/Images/<YYYY-MM-DD>/...                          source stills
    <camera>/Footage/<YYYY-MM-DD>/                             marker object
    <camera>/Footage/<YYYY-MM-DD>/<camera>-<YYYY-MM-DD-HH>-24hrs.mp4

Dates and hour stamps are rendered in a fixed UTC offset (UTC+8 by
default), never in the local time zone of the machine running the job.

Staged images are named with a zero-padded sequential index so that the
encoder's numbered-input pattern reads them in selection order.
"""

from datetime import datetime, timedelta, timezone

DEFAULT_UTC_OFFSET_HOURS = 8

IMAGES_PREFIX = "Images"
FOOTAGE_PREFIX = "Footage"
VIDEO_SUFFIX = "-24hrs.mp4"
VIDEO_CONTENT_TYPE = "video/mp4"

STAGED_IMAGE_STEM = "image-"
STAGED_INDEX_WIDTH = 5
STAGED_VIDEO_NAME = "video.mp4"

# Anything with these extensions in the staging area is a staged image.
STAGED_IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png", ".gif")


def folder_timezone(offset_hours: int = DEFAULT_UTC_OFFSET_HOURS) -> timezone:
    return timezone(timedelta(hours=offset_hours))


def folder_date(
    reference_time: datetime,
    offset_hours: int = DEFAULT_UTC_OFFSET_HOURS,
) -> str:
    """Calendar date (YYYY-MM-DD) of `reference_time` in the folder time zone."""
    return reference_time.astimezone(folder_timezone(offset_hours)).strftime("%Y-%m-%d")


def hour_stamp(
    reference_time: datetime,
    offset_hours: int = DEFAULT_UTC_OFFSET_HOURS,
) -> str:
    """Date and hour (YYYY-MM-DD-HH) of `reference_time` in the folder time zone."""
    return reference_time.astimezone(folder_timezone(offset_hours)).strftime("%Y-%m-%d-%H")


def camera_from_prefix(prefix: str) -> str:
    """'front-door/' -> 'front-door'"""
    parts = [part for part in prefix.split("/") if part]
    if not parts:
        raise ValueError(f"Not a camera prefix: {prefix!r}")
    return parts[0]


def images_root(camera: str) -> str:
    return f"{camera}/{IMAGES_PREFIX}/"


def images_folder(camera: str, date: str) -> str:
    return f"{images_root(camera)}{date}/"


def footage_root(camera: str) -> str:
    return f"{camera}/{FOOTAGE_PREFIX}/"


def footage_folder(camera: str, date: str) -> str:
    return f"{footage_root(camera)}{date}/"


def video_key(
    camera: str,
    reference_time: datetime,
    offset_hours: int = DEFAULT_UTC_OFFSET_HOURS,
) -> str:
    date = folder_date(reference_time, offset_hours)
    stamp = hour_stamp(reference_time, offset_hours)
    return f"{footage_folder(camera, date)}{camera}-{stamp}{VIDEO_SUFFIX}"


def video_tagging(camera: str, interval_hours: int = 1) -> str:
    # Literal query-string form; downstream tooling parses it as-is.
    return f"camera={camera}&interval_hours={interval_hours}"


def staged_image_name(index: int, extension: str = ".jpg") -> str:
    if index < 0:
        raise ValueError("Staged image index cannot be negative")
    return f"{STAGED_IMAGE_STEM}{index:0{STAGED_INDEX_WIDTH}d}{extension}"


def staged_image_pattern(extension: str = ".jpg") -> str:
    """printf-style pattern matching staged_image_name, as FFmpeg expects."""
    return f"{STAGED_IMAGE_STEM}%0{STAGED_INDEX_WIDTH}d{extension}"


def is_staged_image(filename: str) -> bool:
    return filename.lower().endswith(STAGED_IMAGE_SUFFIXES)
