"""
Local staging area for images awaiting encoding.

There is one staging directory per process and every camera uses it in
turn. Staged images are named by position (image-00000.jpg, ...), not by
camera, so leftovers from one camera would be encoded into the next
camera's video. StagingArea.session() therefore drains the directory
when a camera's session starts and again when it ends, on every exit
path. The encoded video.mp4 is left in place and overwritten by the next
encode.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Union

from ...core.timelapse.naming import (
    STAGED_VIDEO_NAME,
    is_staged_image,
    staged_image_name,
)

logger = logging.getLogger(__name__)


class StagingError(Exception):
    """Raised when the staging directory cannot be prepared or written."""
    pass


@dataclass
class CleanupReport:
    """Result of removing staged images."""
    deleted: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class StagingSession:
    """
    A camera's exclusive use of the staging area.

    Images are appended with dense, zero-based indices in the order
    they are staged.
    """

    def __init__(self, area: "StagingArea", camera: str) -> None:
        self._area = area
        self.camera = camera
        self._paths: list[Path] = []

    @property
    def image_paths(self) -> list[Path]:
        return list(self._paths)

    @property
    def video_path(self) -> Path:
        return self._area.video_path

    def add_image(self, data: bytes) -> Path:
        """Write the next image in sequence and return its path."""
        path = self._area.root / staged_image_name(
            len(self._paths), self._area.image_extension
        )
        try:
            path.write_bytes(data)
        except OSError as e:
            raise StagingError(f"Could not stage {path.name}: {e}") from e

        self._paths.append(path)
        return path

    def clean_up(self) -> CleanupReport:
        """Delete staged images. Failures are reported, not raised."""
        report = self._area.drain_images()
        self._paths = []
        return report


class StagingArea:
    """The process-wide scratch directory."""

    def __init__(self, root: Union[str, Path], image_extension: str = ".jpg") -> None:
        self.root = Path(root)
        self.image_extension = image_extension

    @property
    def video_path(self) -> Path:
        return self.root / STAGED_VIDEO_NAME

    def staged_images(self) -> list[Path]:
        if not self.root.is_dir():
            return []
        return sorted(
            path for path in self.root.iterdir()
            if path.is_file() and is_staged_image(path.name)
        )

    def drain_images(self) -> CleanupReport:
        """Remove every staged image file, collecting per-file failures."""
        report = CleanupReport()

        for path in self.staged_images():
            try:
                path.unlink()
                report.deleted.append(path.name)
            except OSError as e:
                logger.warning(
                    "Failed to delete staged image",
                    extra={"path": str(path), "error": str(e)}
                )
                report.failures.append(path.name)

        return report

    @contextmanager
    def session(self, camera: str) -> Iterator[StagingSession]:
        """
        Acquire the staging area for one camera.

        Raises StagingError if images left behind by an earlier session
        cannot be removed, since encoding on top of them would mix
        cameras.
        """
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StagingError(f"Could not create staging dir {self.root}: {e}") from e

        leftover = self.drain_images()
        if leftover.deleted:
            logger.warning(
                "Removed leftover staged images",
                extra={"camera": camera, "count": len(leftover.deleted)}
            )
        if not leftover.ok:
            raise StagingError(
                f"Staging area not empty, could not delete: {', '.join(leftover.failures)}"
            )

        staging = StagingSession(self, camera)
        try:
            yield staging
        finally:
            report = staging.clean_up()
            if not report.ok:
                logger.warning(
                    "Staged images left behind after session",
                    extra={"camera": camera, "failures": report.failures}
                )
