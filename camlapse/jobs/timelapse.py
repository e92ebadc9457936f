"""
The timelapse job: one batch pass over every camera in the bucket.

For each camera, strictly one after another:

    Discovered -> ImagesFolderChecked -> Skipped(no folder)
                                       | Skipped(no images)
                                       | Staged -> Encoded -> Published -> CleanedUp

Each camera runs inside its own failure boundary. An exception while
processing one camera becomes a FAILED outcome for that camera and the
loop moves on to the next one.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from ..core.timelapse.models import (
    CameraOutcome,
    CameraStatus,
    RunSummary,
    VideoArtifact,
)
from ..core.timelapse.naming import (
    DEFAULT_UTC_OFFSET_HOURS,
    VIDEO_CONTENT_TYPE,
    camera_from_prefix,
    folder_date,
    footage_folder,
    images_root,
    video_key,
    video_tagging,
)
from ..core.timelapse.selection import select_window_images
from ..infrastructure.staging.area import StagingArea
from ..infrastructure.storage.client import StorageClient
from ..infrastructure.video.encoder import EncodeOptions, Encoder

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimelapseJob:
    """Drives select -> stage -> encode -> publish -> clean up per camera."""

    def __init__(
        self,
        storage: StorageClient,
        encoder: Encoder,
        staging: StagingArea,
        lookback_hours: int = 24,
        image_extension: str = ".jpg",
        offset_hours: int = DEFAULT_UTC_OFFSET_HOURS,
        interval_hours: int = 1,
        encode_options: Optional[EncodeOptions] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._storage = storage
        self._encoder = encoder
        self._staging = staging
        self._lookback_hours = lookback_hours
        self._image_extension = image_extension
        self._offset_hours = offset_hours
        self._interval_hours = interval_hours
        self._encode_options = encode_options or EncodeOptions()
        self._clock = clock

    async def run(self, reference_time: Optional[datetime] = None) -> RunSummary:
        """
        Process every camera once.

        Returns a summary whose `status` is "Success" unless camera
        discovery failed or at least one camera failed.
        """
        reference_time = reference_time or self._clock()
        if reference_time.tzinfo is None:
            raise ValueError("reference_time must be timezone-aware")

        summary = RunSummary(reference_time=reference_time)

        try:
            cameras = await self.discover_cameras()
        except Exception as e:
            logger.exception("Camera discovery failed")
            summary.discovery_error = f"{type(e).__name__}: {e}"
            return summary

        logger.info(
            "Starting timelapse run",
            extra={"cameras": len(cameras), "reference_time": reference_time.isoformat()}
        )

        for camera in cameras:
            outcome = await self.process_camera(camera, reference_time)
            summary.outcomes.append(outcome)

        logger.info(
            "Timelapse run finished",
            extra={
                "status": summary.status,
                "published": summary.count(CameraStatus.PUBLISHED),
                "skipped_no_folder": summary.count(CameraStatus.SKIPPED_NO_FOLDER),
                "skipped_no_images": summary.count(CameraStatus.SKIPPED_NO_IMAGES),
                "failed": summary.count(CameraStatus.FAILED),
            }
        )

        return summary

    async def discover_cameras(self) -> list[str]:
        """
        Every named top-level prefix of the bucket is a camera.

        Keys starting with "/" list as the nameless prefix "/"; those are
        skipped with a warning rather than failing discovery.
        """
        prefixes = await self._storage.list_common_prefixes("", "/")

        cameras = []
        for prefix in prefixes:
            try:
                cameras.append(camera_from_prefix(prefix))
            except ValueError:
                logger.warning("Ignoring unnamed top-level prefix", extra={"prefix": prefix})
        return cameras

    async def process_camera(self, camera: str, reference_time: datetime) -> CameraOutcome:
        """Run one camera's pipeline; never raises."""
        try:
            outcome = await self._process_camera(camera, reference_time)
        except Exception as e:
            logger.exception("Camera pipeline failed", extra={"camera": camera})
            return CameraOutcome(
                camera=camera,
                status=CameraStatus.FAILED,
                detail=f"{type(e).__name__}: {e}",
            )

        logger.info(
            "Camera processed",
            extra={"camera": camera, "status": outcome.status.value, "detail": outcome.detail}
        )
        return outcome

    async def _process_camera(self, camera: str, reference_time: datetime) -> CameraOutcome:
        if not await self._storage.prefix_exists(images_root(camera)):
            return CameraOutcome(
                camera=camera,
                status=CameraStatus.SKIPPED_NO_FOLDER,
                detail=f"{images_root(camera)} not found",
            )

        keys = await select_window_images(
            self._storage,
            camera,
            reference_time,
            lookback_hours=self._lookback_hours,
            extension=self._image_extension,
            offset_hours=self._offset_hours,
        )
        if not keys:
            return CameraOutcome(
                camera=camera,
                status=CameraStatus.SKIPPED_NO_IMAGES,
                detail="no images in window",
            )

        artifact = VideoArtifact(
            key=video_key(camera, reference_time, self._offset_hours),
            tagging=video_tagging(camera, self._interval_hours),
            content_type=VIDEO_CONTENT_TYPE,
        )

        with self._staging.session(camera) as staging:
            for key in keys:
                staging.add_image(await self._storage.get_object(key))

            video_path = await self._encoder.encode(
                staging.image_paths,
                staging.video_path,
                self._encode_options,
            )

            await self.ensure_footage_folder(
                camera, folder_date(reference_time, self._offset_hours), artifact
            )
            await self._storage.upload_file(
                artifact.key,
                video_path,
                artifact.content_type,
                artifact.tagging,
            )

            report = staging.clean_up()

        if not report.ok:
            logger.warning(
                "Video published but staged images could not all be deleted",
                extra={"camera": camera, "failures": report.failures}
            )

        return CameraOutcome(
            camera=camera,
            status=CameraStatus.PUBLISHED,
            detail=f"{len(keys)} images encoded",
            video_key=artifact.key,
            image_count=len(keys),
            cleanup_failures=report.failures,
        )

    async def ensure_footage_folder(
        self,
        camera: str,
        date: str,
        artifact: VideoArtifact,
    ) -> bool:
        """
        Create the footage date-folder marker if the folder is empty.

        Returns True if a marker was written. Safe to call repeatedly:
        once the marker exists the folder is no longer empty.
        """
        folder = footage_folder(camera, date)
        if await self._storage.prefix_exists(folder):
            return False

        await self._storage.put_object(
            folder,
            b"",
            artifact.content_type,
            artifact.tagging,
        )
        logger.info("Created footage folder marker", extra={"camera": camera, "key": folder})
        return True
