"""
Tests for the per-camera pipeline.

The job runs against the in-memory store, the mock encoder and a
staging directory under tmp_path, so each scenario exercises the whole
select -> stage -> encode -> publish -> clean up path.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from camlapse.core.timelapse.models import CameraStatus, ObjectPage, VideoArtifact
from camlapse.infrastructure.storage.client import MockStorageClient, StorageError
from camlapse.infrastructure.video.encoder import EncodingError
from camlapse.jobs.timelapse import TimelapseJob

UTC8 = timezone(timedelta(hours=8))

FRONT_DOOR_VIDEO = "front-door/Footage/2024-01-15/front-door-2024-01-15-14-24hrs.mp4"
FRONT_DOOR_TAGS = "camera=front-door&interval_hours=1"


def seed_camera(store, camera, hours, folder_date="2024-01-15"):
    """Seed one .jpg per hour (UTC+8, on the 15th) whose body names camera and hour."""
    for hour in hours:
        store.add_object(
            f"{camera}/Images/{folder_date}/{camera}-{hour:02d}.jpg",
            body=f"{camera}@{hour:02d}".encode(),
            last_modified=datetime(2024, 1, 15, hour, 0, tzinfo=UTC8),
        )


def run(job, reference_time=None):
    return asyncio.run(job.run(reference_time))


class TestEndToEnd:

    def test_front_door_publishes_one_video(self, job, store, encoder, staging):
        """5 images inside the window, 2 outside: one video of 5 frames."""
        seed_camera(store, "front-door", [9, 10, 11, 12, 13])
        # outside the window: before its start and after its end
        store.add_object(
            "front-door/Images/2024-01-15/early.jpg",
            body=b"outside",
            last_modified=datetime(2024, 1, 14, 13, 0, tzinfo=UTC8),
        )
        store.add_object(
            "front-door/Images/2024-01-15/late.jpg",
            body=b"outside",
            last_modified=datetime(2024, 1, 15, 15, 0, tzinfo=UTC8),
        )

        summary = run(job)

        outcome = summary.outcome_for("front-door")
        assert summary.status == "Success"
        assert outcome.status is CameraStatus.PUBLISHED
        assert outcome.image_count == 5
        assert outcome.video_key == FRONT_DOOR_VIDEO

        assert encoder.calls == [[f"front-door@{h:02d}" for h in (9, 10, 11, 12, 13)]]

        video = store.get_stored(FRONT_DOOR_VIDEO)
        assert video.content_type == "video/mp4"
        assert video.tagging == FRONT_DOOR_TAGS
        assert video.body == b"mock-mp4 frames=5"

        assert staging.staged_images() == []
        assert staging.video_path.exists()

    def test_marker_created_with_video_metadata(self, job, store):
        seed_camera(store, "front-door", [10])

        run(job)

        marker = store.get_stored("front-door/Footage/2024-01-15/")
        assert marker.body == b""
        assert marker.content_type == "video/mp4"
        assert marker.tagging == FRONT_DOOR_TAGS
        assert store.writes == ["front-door/Footage/2024-01-15/", FRONT_DOOR_VIDEO]

    def test_lobby_without_images_folder_is_skipped(self, job, store, encoder):
        store.add_object("lobby/Snapshots/x.jpg")

        summary = run(job)

        outcome = summary.outcome_for("lobby")
        assert outcome.status is CameraStatus.SKIPPED_NO_FOLDER
        assert not any(key.startswith("lobby/") for key in store.writes)
        assert encoder.calls == []
        assert summary.status == "Success"

    def test_empty_window_is_skipped_without_writes(self, job, store, encoder):
        store.add_object(
            "garage/Images/2024-01-15/old.jpg",
            last_modified=datetime(2024, 1, 13, 9, 0, tzinfo=UTC8),
        )

        summary = run(job)

        assert summary.outcome_for("garage").status is CameraStatus.SKIPPED_NO_IMAGES
        assert store.writes == []
        assert encoder.calls == []

    def test_images_folder_without_todays_date_is_skipped(self, job, store):
        seed_camera(store, "garage", [10], folder_date="2024-01-10")

        summary = run(job)

        assert summary.outcome_for("garage").status is CameraStatus.SKIPPED_NO_IMAGES

    def test_clock_supplies_reference_time(self, store, encoder, staging):
        job = TimelapseJob(
            storage=store,
            encoder=encoder,
            staging=staging,
            clock=lambda: datetime(2024, 1, 15, 6, 30, tzinfo=timezone.utc),
        )
        seed_camera(store, "front-door", [10])

        summary = run(job)

        assert summary.outcome_for("front-door").video_key == FRONT_DOOR_VIDEO

    def test_rejects_naive_reference_time(self, job):
        with pytest.raises(ValueError, match="timezone-aware"):
            run(job, datetime(2024, 1, 15, 14, 30))


class TestStagingIsolation:
    """Regression tests for the shared staging directory."""

    def test_second_camera_never_sees_first_cameras_images(self, job, store, encoder):
        seed_camera(store, "a-cam", [8, 9, 10])
        seed_camera(store, "b-cam", [11, 12])

        run(job)

        assert encoder.calls == [
            ["a-cam@08", "a-cam@09", "a-cam@10"],
            ["b-cam@11", "b-cam@12"],
        ]

    def test_failed_camera_does_not_leak_into_next(self, store, staging):
        """Images staged before an encode failure are gone before the next camera stages."""
        seen = []

        class FailFirstEncoder:
            async def encode(self, image_paths, output_path, options=None):
                seen.append([path.read_bytes() for path in staging.staged_images()])
                if len(seen) == 1:
                    raise EncodingError("FFmpeg exited with 1")
                output_path.write_bytes(b"ok")
                return output_path

        job = TimelapseJob(storage=store, encoder=FailFirstEncoder(), staging=staging)
        seed_camera(store, "a-cam", [8, 9, 10])
        seed_camera(store, "b-cam", [11])

        summary = run(job, datetime(2024, 1, 15, 14, 30, tzinfo=UTC8))

        assert summary.outcome_for("a-cam").status is CameraStatus.FAILED
        assert summary.outcome_for("b-cam").status is CameraStatus.PUBLISHED
        assert seen[1] == [b"b-cam@11"]
        assert staging.staged_images() == []


class TestFailureIsolation:

    def test_one_failing_camera_does_not_stop_the_run(self, store, encoder, staging, reference_time):
        class FlakyStore(MockStorageClient):
            async def list_objects_page(self, prefix, continuation_token=None):
                if prefix.startswith("b-cam/"):
                    raise StorageError("Object listing failed: AccessDenied")
                return await super().list_objects_page(prefix, continuation_token)

        flaky = FlakyStore()
        for camera in ("a-cam", "b-cam", "c-cam"):
            seed_camera(flaky, camera, [10])
        job = TimelapseJob(storage=flaky, encoder=encoder, staging=staging)

        summary = run(job, reference_time)

        statuses = [(o.camera, o.status) for o in summary.outcomes]
        assert statuses == [
            ("a-cam", CameraStatus.PUBLISHED),
            ("b-cam", CameraStatus.FAILED),
            ("c-cam", CameraStatus.PUBLISHED),
        ]
        assert "AccessDenied" in summary.outcome_for("b-cam").detail
        assert summary.status == "Error"

    def test_encoding_failure_publishes_nothing(self, store, staging, reference_time):
        class BrokenEncoder:
            async def encode(self, image_paths, output_path, options=None):
                raise EncodingError("FFmpeg exited with 1")

        job = TimelapseJob(storage=store, encoder=BrokenEncoder(), staging=staging)
        seed_camera(store, "front-door", [10, 11])

        summary = run(job, reference_time)

        assert summary.outcome_for("front-door").status is CameraStatus.FAILED
        assert store.writes == []
        assert staging.staged_images() == []

    def test_discovery_failure_is_reported(self, encoder, staging, reference_time):
        class DownStore(MockStorageClient):
            async def list_common_prefixes(self, prefix="", delimiter="/"):
                raise StorageError("Prefix listing failed: timeout")

        job = TimelapseJob(storage=DownStore(), encoder=encoder, staging=staging)

        summary = run(job, reference_time)

        assert summary.status == "Error"
        assert "timeout" in summary.discovery_error
        assert summary.outcomes == []

    def test_key_at_bucket_root_slash_is_not_a_camera(self, job, store):
        """A stray "/stray.jpg" lists as prefix "/" and is ignored, not fatal."""
        store.add_object("/stray.jpg")
        seed_camera(store, "front-door", [10])

        summary = run(job)

        assert summary.status == "Success"
        assert summary.discovery_error is None
        assert [outcome.camera for outcome in summary.outcomes] == ["front-door"]
        assert summary.outcome_for("front-door").status is CameraStatus.PUBLISHED

    def test_repeated_listing_cursor_fails_only_that_camera(self, store, encoder, staging, reference_time):
        class LoopingStore(MockStorageClient):
            async def list_objects_page(self, prefix, continuation_token=None):
                if not prefix.startswith("front-door/"):
                    return await super().list_objects_page(prefix, continuation_token)
                return ObjectPage(objects=[], next_token="stuck")

        looping = LoopingStore()
        seed_camera(looping, "front-door", [10])
        seed_camera(looping, "garage", [10])
        job = TimelapseJob(storage=looping, encoder=encoder, staging=staging)

        summary = run(job, reference_time)

        assert summary.status == "Error"
        assert summary.outcome_for("front-door").status is CameraStatus.FAILED
        assert "ListingError" in summary.outcome_for("front-door").detail
        assert summary.outcome_for("garage").status is CameraStatus.PUBLISHED

    def test_cleanup_failure_keeps_video_published(self, job, store, monkeypatch):
        from camlapse.infrastructure.staging.area import CleanupReport, StagingSession

        monkeypatch.setattr(
            StagingSession,
            "clean_up",
            lambda self: CleanupReport(failures=["image-00000.jpg"]),
        )
        seed_camera(store, "front-door", [10])

        summary = run(job)

        outcome = summary.outcome_for("front-door")
        assert outcome.status is CameraStatus.PUBLISHED
        assert outcome.cleanup_failures == ["image-00000.jpg"]
        assert store.get_stored(FRONT_DOOR_VIDEO) is not None
        assert summary.status == "Success"


class TestEnsureFootageFolder:

    def test_is_idempotent(self, job, store):
        artifact = VideoArtifact(key=FRONT_DOOR_VIDEO, tagging=FRONT_DOOR_TAGS)

        first = asyncio.run(job.ensure_footage_folder("front-door", "2024-01-15", artifact))
        second = asyncio.run(job.ensure_footage_folder("front-door", "2024-01-15", artifact))

        assert (first, second) == (True, False)
        assert store.writes == ["front-door/Footage/2024-01-15/"]

    def test_skips_when_folder_has_videos(self, job, store):
        store.add_object("front-door/Footage/2024-01-15/front-door-2024-01-15-13-24hrs.mp4")
        artifact = VideoArtifact(key=FRONT_DOOR_VIDEO, tagging=FRONT_DOOR_TAGS)

        created = asyncio.run(job.ensure_footage_folder("front-door", "2024-01-15", artifact))

        assert created is False
        assert store.writes == []

    def test_second_run_in_same_day_does_not_rewrite_marker(self, job, store, reference_time):
        seed_camera(store, "front-door", [10])

        run(job, reference_time)
        run(job, reference_time + timedelta(hours=1))

        assert store.writes.count("front-door/Footage/2024-01-15/") == 1
