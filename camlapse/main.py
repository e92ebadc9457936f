"""
Job entry points.

Two ways in:
- handler(event, context): called by a periodic scheduler trigger, no
  payload required, returns "Success" or "Error".
- camlapse (console script): same run from a shell, prints the
  per-camera summary and exits non-zero on "Error".

An optional reference time ("reference_time" in the event, or
--reference-time) replaces the wall clock, for backfills and testing.
"""

import argparse
import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError

from .config.settings import Settings, get_settings
from .core.timelapse.models import RunSummary
from .jobs.dependencies import create_job

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(format=LOG_FORMAT, level=level.upper())


def load_settings() -> Optional[Settings]:
    """
    Load settings and configure logging from them.

    Returns None when the environment holds invalid values (for example
    an unknown LOG_LEVEL); the validation errors are logged.
    """
    try:
        settings = get_settings()
    except ValidationError:
        configure_logging()
        logger.exception("Invalid configuration")
        return None

    configure_logging(settings.log_level)
    return settings


def parse_reference_time(value: Optional[str]) -> Optional[datetime]:
    """ISO-8601 string to aware datetime. Naive values are taken as UTC."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def run_job(
    settings: Settings,
    reference_time: Optional[datetime] = None,
) -> Optional[RunSummary]:
    """
    Build and run the job once.

    Returns None when the job could not even be constructed (bad
    configuration, missing FFmpeg); the reason is logged.
    """
    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )
        return None

    try:
        job = create_job(settings)
    except Exception:
        logger.exception("Could not initialize timelapse job")
        return None

    return asyncio.run(job.run(reference_time))


def handler(event: Optional[dict[str, Any]] = None, context: Any = None) -> str:
    """Scheduler entry point."""
    settings = load_settings()
    if settings is None:
        return "Error"

    try:
        reference_time = parse_reference_time((event or {}).get("reference_time"))
    except ValueError:
        logger.error("Invalid reference_time in event", extra={"event": event})
        return "Error"

    summary = run_job(settings, reference_time)
    if summary is None:
        return "Error"

    return summary.status


def cli(argv: Optional[list[str]] = None) -> int:
    """Console entry point."""
    parser = argparse.ArgumentParser(
        prog="camlapse",
        description="Compile the last 24 hours of camera stills into timelapse videos.",
    )
    parser.add_argument(
        "--reference-time",
        help="ISO-8601 time to run as (default: now). Naive values are UTC.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the run summary as JSON",
    )
    args = parser.parse_args(argv)

    settings = load_settings()
    if settings is None:
        print("Error")
        return 1

    try:
        reference_time = parse_reference_time(args.reference_time)
    except ValueError:
        parser.error(f"invalid --reference-time: {args.reference_time}")

    summary = run_job(settings, reference_time)
    if summary is None:
        print("Error")
        return 1

    if args.json:
        print(json.dumps(summary.to_dict(), indent=2))
    else:
        for outcome in summary.outcomes:
            print(f"{outcome.camera}: {outcome.status.value} {outcome.detail}".rstrip())
        if summary.discovery_error:
            print(f"discovery failed: {summary.discovery_error}")
        print(summary.status)

    return 0 if summary.status == "Success" else 1


if __name__ == "__main__":
    raise SystemExit(cli())
