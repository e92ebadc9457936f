"""
Shared fixtures for the unit tests.

Everything here is in-memory or under pytest's tmp_path: no bucket,
no FFmpeg, no network.
"""

from datetime import datetime, timedelta, timezone

import pytest

from camlapse.infrastructure.staging.area import StagingArea
from camlapse.infrastructure.storage.client import MockStorageClient
from camlapse.infrastructure.video.encoder import MockEncoder
from camlapse.jobs.timelapse import TimelapseJob

UTC8 = timezone(timedelta(hours=8))


@pytest.fixture
def reference_time() -> datetime:
    """14:30 on 2024-01-15 in UTC+8 (06:30 UTC)."""
    return datetime(2024, 1, 15, 14, 30, tzinfo=UTC8)


@pytest.fixture
def store() -> MockStorageClient:
    return MockStorageClient()


@pytest.fixture
def encoder() -> MockEncoder:
    return MockEncoder()


@pytest.fixture
def staging(tmp_path) -> StagingArea:
    return StagingArea(tmp_path / "staging")


@pytest.fixture
def job(store, encoder, staging, reference_time) -> TimelapseJob:
    return TimelapseJob(
        storage=store,
        encoder=encoder,
        staging=staging,
        clock=lambda: reference_time,
    )
