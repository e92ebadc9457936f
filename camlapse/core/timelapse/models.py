"""
Domain models for timelapse compilation.

These models have no dependencies on boto3, FFmpeg or the filesystem.
The storage layout and the encoder are described elsewhere; here we only
describe what an image, a window, a video and a run outcome are.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional


@dataclass(frozen=True)
class ImageObject:
    """
    A still image as listed by object storage.

    Frozen because listings are snapshots: the job never mutates an
    image, it only reads it and decides whether it belongs in a video.
    """
    key: str
    last_modified: datetime

    def __post_init__(self) -> None:
        if self.last_modified.tzinfo is None:
            raise ValueError("last_modified must be timezone-aware")

    def has_extension(self, extension: str) -> bool:
        return self.key.endswith(extension)


@dataclass
class ObjectPage:
    """
    One page of a prefix listing.

    `next_token` is the storage system's continuation cursor; None means
    this was the last page.
    """
    objects: list[ImageObject] = field(default_factory=list)
    next_token: Optional[str] = None


@dataclass(frozen=True)
class AggregationWindow:
    """
    Half-open time interval [start, end).

    An image modified exactly at `start` is inside the window, one
    modified exactly at `end` is not.
    """
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("Window bounds must be timezone-aware")
        if self.end <= self.start:
            raise ValueError("Window end must be after start")

    @classmethod
    def ending_at(
        cls,
        reference_time: datetime,
        lookback_hours: int = 24,
    ) -> "AggregationWindow":
        """
        Window for a run invoked at `reference_time`.

        Hour-aligned: starts at the top of the hour `lookback_hours`
        before the current hour, ends at the top of the next hour.
        Hours are taken in UTC, so the same instant gives the same window
        whatever offset it is expressed in.
        """
        if lookback_hours <= 0:
            raise ValueError("lookback_hours must be positive")
        top_of_hour = reference_time.astimezone(timezone.utc).replace(
            minute=0, second=0, microsecond=0
        )
        return cls(
            start=top_of_hour - timedelta(hours=lookback_hours),
            end=top_of_hour + timedelta(hours=1),
        )

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    @property
    def duration_hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600


@dataclass(frozen=True)
class VideoArtifact:
    """A compiled video as it will be published."""
    key: str
    tagging: str
    content_type: str = "video/mp4"


class CameraStatus(Enum):
    """Terminal state of one camera's pipeline within a run."""
    PUBLISHED = "published"
    SKIPPED_NO_FOLDER = "skipped_no_folder"
    SKIPPED_NO_IMAGES = "skipped_no_images"
    FAILED = "failed"


@dataclass
class CameraOutcome:
    """What happened to one camera during a run."""
    camera: str
    status: CameraStatus
    detail: str = ""
    video_key: Optional[str] = None
    image_count: int = 0
    cleanup_failures: list[str] = field(default_factory=list)

    @property
    def is_failure(self) -> bool:
        return self.status is CameraStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "camera": self.camera,
            "status": self.status.value,
            "detail": self.detail,
            "video_key": self.video_key,
            "image_count": self.image_count,
            "cleanup_failures": list(self.cleanup_failures),
        }


@dataclass
class RunSummary:
    """
    Aggregate result of one invocation.

    The scheduler only needs `status`; operators get the per-camera
    outcomes from `to_dict()` or the logs.
    """
    reference_time: datetime
    outcomes: list[CameraOutcome] = field(default_factory=list)
    discovery_error: Optional[str] = None

    @property
    def status(self) -> str:
        if self.discovery_error is not None:
            return "Error"
        if any(outcome.is_failure for outcome in self.outcomes):
            return "Error"
        return "Success"

    def count(self, status: CameraStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)

    def outcome_for(self, camera: str) -> Optional[CameraOutcome]:
        for outcome in self.outcomes:
            if outcome.camera == camera:
                return outcome
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "reference_time": self.reference_time.isoformat(),
            "discovery_error": self.discovery_error,
            "cameras": [outcome.to_dict() for outcome in self.outcomes],
        }
