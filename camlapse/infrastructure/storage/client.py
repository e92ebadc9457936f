"""
Object storage client for camera stills and compiled videos.

Talks to S3 (or any S3-compatible store) through boto3, with a mock mode
that keeps objects in memory for local runs and tests.

Transient failures (timeouts, throttling) are retried by botocore at the
transport layer with a small fixed budget. Whatever still fails is
surfaced as StorageError, which the job treats as fatal for the current
camera only.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from ...core.timelapse.models import ImageObject, ObjectPage

logger = logging.getLogger(__name__)

MAX_KEYS_PER_PAGE = 1000


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


@dataclass
class StorageConfig:
    """
    Configuration for S3-compatible storage.

    Credentials are optional: when unset, boto3's default credential
    chain (environment, instance role) is used.
    """
    bucket_name: str
    region: str = "us-west-2"
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    max_retries: int = 2
    connect_timeout_seconds: float = 2.0
    read_timeout_seconds: float = 3.0


class StorageClient(Protocol):
    """
    Protocol for the object storage operations the job needs.

    Tests provide the in-memory client; production uses S3.
    """

    async def list_common_prefixes(self, prefix: str = "", delimiter: str = "/") -> list[str]:
        """List "folder" prefixes directly below prefix."""
        ...

    async def list_objects_page(
        self,
        prefix: str,
        continuation_token: Optional[str] = None,
    ) -> ObjectPage:
        """Return one page of objects under prefix."""
        ...

    async def prefix_exists(self, prefix: str) -> bool:
        """True if any object or sub-prefix exists under prefix."""
        ...

    async def get_object(self, key: str) -> bytes:
        """Download object body."""
        ...

    async def put_object(
        self,
        key: str,
        body: bytes,
        content_type: str,
        tagging: Optional[str] = None,
    ) -> None:
        """Store bytes under key."""
        ...

    async def upload_file(
        self,
        key: str,
        path: Path,
        content_type: str,
        tagging: Optional[str] = None,
    ) -> None:
        """Store a local file under key."""
        ...


class S3StorageClient:
    """
    S3 object storage client.

    All methods are async to match the Protocol even though boto3 is
    synchronous. The job awaits them one at a time, so blocking inside
    a call is acceptable.
    """

    def __init__(self, config: StorageConfig) -> None:
        import boto3
        from botocore.config import Config

        self._config = config

        boto_config = Config(
            connect_timeout=config.connect_timeout_seconds,
            read_timeout=config.read_timeout_seconds,
            retries={"max_attempts": config.max_retries, "mode": "standard"},
        )

        self._s3_client = boto3.client(
            "s3",
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized S3 storage client",
            extra={
                "bucket": config.bucket_name,
                "region": config.region,
                "endpoint": config.endpoint_url,
            }
        )

    async def list_common_prefixes(self, prefix: str = "", delimiter: str = "/") -> list[str]:
        """
        List "folder" prefixes directly below prefix.

        Follows continuation tokens so buckets with more than 1000
        cameras are still fully enumerated.
        """
        params = {
            "Bucket": self._config.bucket_name,
            "Prefix": prefix,
            "Delimiter": delimiter,
        }
        prefixes: list[str] = []

        try:
            while True:
                response = self._s3_client.list_objects_v2(**params)
                prefixes.extend(
                    entry["Prefix"] for entry in response.get("CommonPrefixes", [])
                )
                token = response.get("NextContinuationToken")
                if not token:
                    break
                params["ContinuationToken"] = token

        except Exception as e:
            logger.error(
                "Failed to list prefixes",
                extra={"prefix": prefix, "error": str(e)}
            )
            raise StorageError(f"Prefix listing failed: {e}") from e

        return prefixes

    async def list_objects_page(
        self,
        prefix: str,
        continuation_token: Optional[str] = None,
    ) -> ObjectPage:
        """Return one page (up to 1000 keys) of objects under prefix."""
        params = {
            "Bucket": self._config.bucket_name,
            "Prefix": prefix,
            "MaxKeys": MAX_KEYS_PER_PAGE,
        }
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        try:
            response = self._s3_client.list_objects_v2(**params)
        except Exception as e:
            logger.error(
                "Failed to list objects",
                extra={"prefix": prefix, "error": str(e)}
            )
            raise StorageError(f"Object listing failed: {e}") from e

        objects = [
            ImageObject(key=entry["Key"], last_modified=entry["LastModified"])
            for entry in response.get("Contents", [])
        ]

        return ObjectPage(
            objects=objects,
            next_token=response.get("NextContinuationToken"),
        )

    async def prefix_exists(self, prefix: str) -> bool:
        """
        True if any object or sub-prefix exists under prefix.

        KeyCount covers both Contents and CommonPrefixes, so a folder
        holding only date sub-folders still counts as existing.
        """
        try:
            response = self._s3_client.list_objects_v2(
                Bucket=self._config.bucket_name,
                Prefix=prefix,
                Delimiter="/",
                MaxKeys=1,
            )
        except Exception as e:
            logger.error(
                "Failed to check prefix",
                extra={"prefix": prefix, "error": str(e)}
            )
            raise StorageError(f"Prefix check failed: {e}") from e

        return response.get("KeyCount", 0) > 0

    async def get_object(self, key: str) -> bytes:
        """Download object body."""
        try:
            response = self._s3_client.get_object(
                Bucket=self._config.bucket_name,
                Key=key,
            )

            return response["Body"].read()

        except Exception as e:
            logger.error(
                "Failed to download object",
                extra={"key": key, "error": str(e)}
            )
            raise StorageError(f"Download failed: {e}") from e

    async def put_object(
        self,
        key: str,
        body: bytes,
        content_type: str,
        tagging: Optional[str] = None,
    ) -> None:
        """Store bytes under key, optionally tagged."""
        params = {
            "Bucket": self._config.bucket_name,
            "Key": key,
            "Body": body,
            "ContentType": content_type,
        }
        if tagging:
            params["Tagging"] = tagging

        try:
            self._s3_client.put_object(**params)

            logger.debug(
                "Stored object",
                extra={"key": key, "size_bytes": len(body)}
            )

        except Exception as e:
            logger.error(
                "Failed to store object",
                extra={"key": key, "error": str(e)}
            )
            raise StorageError(f"Upload failed: {e}") from e

    async def upload_file(
        self,
        key: str,
        path: Path,
        content_type: str,
        tagging: Optional[str] = None,
    ) -> None:
        """Stream a local file to key, optionally tagged."""
        params = {
            "Bucket": self._config.bucket_name,
            "Key": key,
            "ContentType": content_type,
        }
        if tagging:
            params["Tagging"] = tagging

        try:
            with open(path, "rb") as body:
                self._s3_client.put_object(Body=body, **params)

            logger.info(
                "Uploaded file",
                extra={"key": key, "path": str(path)}
            )

        except Exception as e:
            logger.error(
                "Failed to upload file",
                extra={"key": key, "path": str(path), "error": str(e)}
            )
            raise StorageError(f"File upload failed: {e}") from e


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

@dataclass
class StoredObject:
    """An object held by the mock store."""
    body: bytes
    last_modified: datetime
    content_type: str = "application/octet-stream"
    tagging: Optional[str] = None


class MockStorageClient:
    """
    In-memory storage for local development and tests.

    Listings are paginated like S3 (keys in lexicographic order,
    `page_size` per page) so pagination logic is exercised without a
    bucket. Every write is recorded in `writes`.
    """

    def __init__(self, page_size: int = MAX_KEYS_PER_PAGE) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._objects: dict[str, StoredObject] = {}
        self._page_size = page_size
        self.writes: list[str] = []
        logger.info("Initialized mock storage client (in-memory)")

    def add_object(
        self,
        key: str,
        body: bytes = b"",
        last_modified: Optional[datetime] = None,
        content_type: str = "image/jpeg",
    ) -> None:
        """Seed an object without recording it as a write."""
        self._objects[key] = StoredObject(
            body=body,
            last_modified=last_modified or datetime.now(timezone.utc),
            content_type=content_type,
        )

    def get_stored(self, key: str) -> Optional[StoredObject]:
        return self._objects.get(key)

    def keys(self) -> list[str]:
        return sorted(self._objects)

    async def list_common_prefixes(self, prefix: str = "", delimiter: str = "/") -> list[str]:
        found: set[str] = set()
        for key in self._objects:
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix):]
            if delimiter in rest:
                found.add(prefix + rest.split(delimiter, 1)[0] + delimiter)
        return sorted(found)

    async def list_objects_page(
        self,
        prefix: str,
        continuation_token: Optional[str] = None,
    ) -> ObjectPage:
        matching = [key for key in sorted(self._objects) if key.startswith(prefix)]
        start = int(continuation_token) if continuation_token else 0
        end = start + self._page_size

        objects = [
            ImageObject(key=key, last_modified=self._objects[key].last_modified)
            for key in matching[start:end]
        ]

        return ObjectPage(
            objects=objects,
            next_token=str(end) if end < len(matching) else None,
        )

    async def prefix_exists(self, prefix: str) -> bool:
        return any(key.startswith(prefix) for key in self._objects)

    async def get_object(self, key: str) -> bytes:
        if key not in self._objects:
            raise StorageError(f"Object not found: {key}")

        return self._objects[key].body

    async def put_object(
        self,
        key: str,
        body: bytes,
        content_type: str,
        tagging: Optional[str] = None,
    ) -> None:
        self._objects[key] = StoredObject(
            body=body,
            last_modified=datetime.now(timezone.utc),
            content_type=content_type,
            tagging=tagging,
        )
        self.writes.append(key)

        logger.debug(
            "Stored object in mock storage",
            extra={"key": key, "size_bytes": len(body)}
        )

    async def upload_file(
        self,
        key: str,
        path: Path,
        content_type: str,
        tagging: Optional[str] = None,
    ) -> None:
        try:
            body = Path(path).read_bytes()
        except OSError as e:
            raise StorageError(f"File upload failed: {e}") from e

        await self.put_object(key, body, content_type, tagging)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageClient:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return the in-memory client

    Returns:
        StorageClient implementation (S3 or Mock)
    """
    if mock_mode:
        return MockStorageClient()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3StorageClient(config)
