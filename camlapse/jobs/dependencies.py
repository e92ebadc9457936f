"""
Job wiring.

Builds the storage client, encoder and staging area from Settings and
hands them to TimelapseJob. Keeping construction here means the job
itself never reads configuration, and tests can pass fakes directly.
"""

import logging

from ..config.settings import Settings
from ..infrastructure.staging.area import StagingArea
from ..infrastructure.storage.client import StorageClient, StorageConfig, create_storage_client
from ..infrastructure.video.encoder import EncodeOptions, Encoder, create_encoder
from .timelapse import TimelapseJob

logger = logging.getLogger(__name__)


def get_storage_client(settings: Settings) -> StorageClient:
    config = StorageConfig(
        bucket_name=settings.bucket_name,
        region=settings.aws_region,
        endpoint_url=settings.s3_endpoint_url,
        access_key_id=settings.aws_access_key_id,
        secret_access_key=settings.aws_secret_access_key,
        max_retries=settings.s3_max_retries,
        connect_timeout_seconds=settings.s3_connect_timeout_seconds,
        read_timeout_seconds=settings.s3_read_timeout_seconds,
    )
    return create_storage_client(config, mock_mode=settings.storage_mock_mode)


def get_encoder(settings: Settings) -> Encoder:
    return create_encoder(
        mock_mode=settings.encoder_mock_mode,
        ffmpeg_path=settings.ffmpeg_path,
        timeout_seconds=settings.ffmpeg_timeout_seconds,
    )


def get_encode_options(settings: Settings) -> EncodeOptions:
    return EncodeOptions(
        frame_rate=settings.video_frame_rate,
        codec=settings.video_codec,
        pixel_format=settings.video_pixel_format,
        bitrate=settings.video_bitrate,
    )


def get_staging_area(settings: Settings) -> StagingArea:
    return StagingArea(settings.staging_dir, image_extension=settings.image_extension)


def create_job(settings: Settings) -> TimelapseJob:
    """Assemble a TimelapseJob from settings."""
    job = TimelapseJob(
        storage=get_storage_client(settings),
        encoder=get_encoder(settings),
        staging=get_staging_area(settings),
        lookback_hours=settings.lookback_hours,
        image_extension=settings.image_extension,
        offset_hours=settings.folder_utc_offset_hours,
        interval_hours=settings.interval_hours,
        encode_options=get_encode_options(settings),
    )

    logger.debug(
        "Created timelapse job",
        extra={
            "bucket": settings.bucket_name,
            "mock_mode": {
                "storage": settings.storage_mock_mode,
                "encoder": settings.encoder_mock_mode,
            },
        }
    )

    return job
