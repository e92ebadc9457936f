"""
Timelapse encoding using FFmpeg.

Turns the staged, densely numbered stills into one MP4. FFmpeg reads
them through its numbered-input pattern (image-%05d.jpg), so the order
of frames in the video is the order of the indices in the file names.
The encoder checks that contract before running anything.

Encoding parameters:
- 10 fps input, yuv420p output for broad player compatibility
- 2 Mbps video bitrate
- H.264 in a fragmented MP4 (frag_keyframe+empty_moov) so playback can
  start before the whole file is downloaded
"""

import asyncio
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from ...core.timelapse.naming import staged_image_name, staged_image_pattern

logger = logging.getLogger(__name__)


class EncodingError(Exception):
    """Raised when a video cannot be produced."""
    pass


@dataclass(frozen=True)
class EncodeOptions:
    """Fixed encoding parameters for timelapse videos."""
    frame_rate: int = 10
    codec: str = "libx264"
    pixel_format: str = "yuv420p"
    bitrate: str = "2M"
    movflags: str = "frag_keyframe+empty_moov"
    container: str = "mp4"
    content_type: str = "video/mp4"


def validate_sequence(image_paths: list[Path]) -> tuple[Path, str]:
    """
    Check that paths are exactly image-00000, image-00001, ... in one dir.

    Returns the directory and the shared extension. Raises EncodingError
    otherwise, since FFmpeg would silently stop at the first gap.
    """
    if not image_paths:
        raise EncodingError("No images to encode")

    directory = image_paths[0].parent
    extension = image_paths[0].suffix

    for index, path in enumerate(image_paths):
        expected = staged_image_name(index, extension)
        if path.parent != directory or path.name != expected:
            raise EncodingError(
                f"Staged images out of sequence: expected {expected}, got {path}"
            )

    return directory, extension


def build_ffmpeg_command(
    ffmpeg_path: str,
    input_pattern: Path,
    output_path: Path,
    options: EncodeOptions,
) -> list[str]:
    """Build the FFmpeg argument list for one encode."""
    return [
        ffmpeg_path,
        "-y",  # overwrite
        "-framerate", str(options.frame_rate),
        "-start_number", "0",
        "-i", str(input_pattern),
        "-c:v", options.codec,
        "-pix_fmt", options.pixel_format,
        "-b:v", options.bitrate,
        "-metadata", f"ContentType={options.content_type}",
        "-movflags", options.movflags,
        "-f", options.container,
        str(output_path),
    ]


class Encoder(Protocol):
    """Protocol for turning staged stills into a video."""

    async def encode(
        self,
        image_paths: list[Path],
        output_path: Path,
        options: Optional[EncodeOptions] = None,
    ) -> Path:
        """Encode images in order into output_path and return it."""
        ...


class FFmpegEncoder:
    """
    Encoder using the ffmpeg binary.

    FFmpeg runs in a worker thread with a timeout. Any failure raises
    EncodingError; there is no retry.
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg", timeout_seconds: float = 600.0):
        """
        Initialize encoder with FFmpeg path.

        Args:
            ffmpeg_path: Path to ffmpeg binary (default assumes it's in PATH)
            timeout_seconds: Upper bound for a single encode
        """
        self._ffmpeg = ffmpeg_path
        self._timeout = timeout_seconds

        # verify ffmpeg is available
        try:
            result = subprocess.run(
                [self._ffmpeg, "-version"],
                capture_output=True,
                text=True,
                timeout=5
            )
            if result.returncode != 0:
                raise RuntimeError("FFmpeg not working properly")
            logger.info("FFmpeg encoder initialized")
        except FileNotFoundError:
            raise RuntimeError(
                "FFmpeg not found. Install with: apt-get install ffmpeg"
            )

    async def encode(
        self,
        image_paths: list[Path],
        output_path: Path,
        options: Optional[EncodeOptions] = None,
    ) -> Path:
        options = options or EncodeOptions()
        directory, extension = validate_sequence(image_paths)
        output_path = Path(output_path)

        # a stale video from a previous camera must never be mistaken for output
        output_path.unlink(missing_ok=True)

        cmd = build_ffmpeg_command(
            self._ffmpeg,
            directory / staged_image_pattern(extension),
            output_path,
            options,
        )

        try:
            result = await asyncio.to_thread(
                subprocess.run,
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout
            )
        except subprocess.TimeoutExpired as e:
            raise EncodingError(f"FFmpeg timed out after {self._timeout}s") from e
        except OSError as e:
            raise EncodingError(f"FFmpeg could not be started: {e}") from e

        if result.returncode != 0:
            logger.error(
                "FFmpeg failed",
                extra={"returncode": result.returncode, "stderr": result.stderr[-2000:]}
            )
            raise EncodingError(f"FFmpeg exited with {result.returncode}")

        if not output_path.exists() or output_path.stat().st_size == 0:
            raise EncodingError(f"FFmpeg produced no output at {output_path}")

        logger.info(
            "Encoded timelapse",
            extra={
                "frames": len(image_paths),
                "output": str(output_path),
                "size_bytes": output_path.stat().st_size,
            }
        )

        return output_path


class MockEncoder:
    """
    Mock encoder for local runs and tests without FFmpeg.

    Validates the staged sequence like the real encoder, then writes a
    small placeholder file. Each call is recorded in `calls`.
    """

    def __init__(self):
        self.calls: list[list[str]] = []
        logger.info("Initialized mock encoder")

    async def encode(
        self,
        image_paths: list[Path],
        output_path: Path,
        options: Optional[EncodeOptions] = None,
    ) -> Path:
        validate_sequence(image_paths)
        output_path = Path(output_path)

        # frame contents, in encode order
        self.calls.append([path.read_bytes().decode("utf-8", "replace") for path in image_paths])
        output_path.write_bytes(f"mock-mp4 frames={len(image_paths)}".encode())

        return output_path


def create_encoder(
    mock_mode: bool = False,
    ffmpeg_path: str = "ffmpeg",
    timeout_seconds: float = 600.0,
) -> Encoder:
    """
    Factory function for the encoder.

    Args:
        mock_mode: If True, return mock encoder (no FFmpeg required)
        ffmpeg_path: Path to ffmpeg binary
        timeout_seconds: Upper bound for a single encode

    Returns:
        Encoder implementation
    """
    if mock_mode:
        return MockEncoder()

    return FFmpegEncoder(ffmpeg_path=ffmpeg_path, timeout_seconds=timeout_seconds)
