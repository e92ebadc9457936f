"""
Video encoding infrastructure.

Wraps FFmpeg to turn the staged stills of one camera into a single
fragmented MP4.
"""

from .encoder import (
    EncodeOptions,
    Encoder,
    EncodingError,
    FFmpegEncoder,
    MockEncoder,
    build_ffmpeg_command,
    create_encoder,
)

__all__ = [
    "EncodeOptions",
    "Encoder",
    "EncodingError",
    "FFmpegEncoder",
    "MockEncoder",
    "build_ffmpeg_command",
    "create_encoder",
]
