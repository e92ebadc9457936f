"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock modes enable local runs without a bucket or an FFmpeg binary.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """
    Job settings loaded from environment variables.

    All settings can be overridden via environment variables
    (case-insensitive, e.g. BUCKET_NAME or bucket_name).
    """

    # Object Storage Configuration
    bucket_name: str = Field(
        default="suiteview-storage",
        description="Bucket holding <camera>/Images/ and <camera>/Footage/ prefixes"
    )
    aws_region: str = Field(
        default="us-west-2",
        description="Region of the bucket"
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom S3-compatible endpoint (MinIO, R2). None uses AWS."
    )
    aws_access_key_id: Optional[str] = Field(
        default=None,
        description="Access key. None falls back to the default credential chain."
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None,
        description="Secret key. None falls back to the default credential chain."
    )
    s3_max_retries: int = Field(
        default=2,
        description="Retries per storage request on transient errors"
    )
    s3_connect_timeout_seconds: float = Field(
        default=2.0,
        description="Connect timeout for storage requests"
    )
    s3_read_timeout_seconds: float = Field(
        default=3.0,
        description="Read timeout for storage requests"
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory storage instead of a real bucket."
    )

    # Encoder Configuration
    ffmpeg_path: str = Field(
        default="ffmpeg",
        description="Path to ffmpeg binary (default assumes it's in PATH)"
    )
    ffmpeg_timeout_seconds: float = Field(
        default=600.0,
        description="Upper bound for a single encode"
    )
    encoder_mock_mode: bool = Field(
        default=False,
        description="Use a mock encoder that writes a placeholder video."
    )
    video_frame_rate: int = Field(default=10, description="Input frames per second")
    video_codec: str = Field(default="libx264", description="Must be valid for MP4")
    video_bitrate: str = Field(default="2M", description="Output video bitrate")
    video_pixel_format: str = Field(default="yuv420p", description="Output pixel format")

    # Job Behavior
    staging_dir: str = Field(
        default="/tmp/camlapse",
        description="Local scratch directory for staged images and the encoded video"
    )
    lookback_hours: int = Field(
        default=24,
        description="Hours before the current hour included in each video"
    )
    folder_utc_offset_hours: int = Field(
        default=8,
        description="Fixed UTC offset used for date folders and key timestamps"
    )
    image_extension: str = Field(
        default=".jpg",
        description="Only keys ending with this extension are encoded"
    )
    interval_hours: int = Field(
        default=1,
        description="Value written to the interval_hours tag of published videos"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
        return level

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        """
        missing = []

        if not self.storage_mock_mode and not self.bucket_name:
            missing.append("BUCKET_NAME")

        if self.lookback_hours <= 0:
            missing.append("LOOKBACK_HOURS (must be positive)")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process. For tests, call
    get_settings.cache_clear() to reset.
    """
    return Settings()
