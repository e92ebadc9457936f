"""
Batch jobs and their wiring.
"""

from .dependencies import create_job
from .timelapse import TimelapseJob

__all__ = ["TimelapseJob", "create_job"]
