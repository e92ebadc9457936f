"""
Local scratch space between download and encode.
"""

from .area import CleanupReport, StagingArea, StagingError, StagingSession

__all__ = ["CleanupReport", "StagingArea", "StagingError", "StagingSession"]
