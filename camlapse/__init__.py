"""
camlapse - Daily timelapse compilation for bucket-backed cameras.

This package contains the complete job:
- core: Framework-agnostic window selection and naming
- infrastructure: Object storage, staging directory, FFmpeg
- jobs: The per-camera pipeline and its wiring
- config: Job configuration
"""

__version__ = "0.1.0"
