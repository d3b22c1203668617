"""
Object storage client for journal media, exercise media and program images.

Supabase Storage exposes an S3-compatible endpoint, so the client talks to
it through boto3. The same client works against AWS S3 or MinIO by
changing the endpoint.

Unlike a single-bucket client, every call names its bucket: journal
attachments and exercise/program media live in separate buckets with
separate retention.

Mock mode stores objects in memory, enabling API testing without
provisioning buckets.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

logger = logging.getLogger(__name__)


MAX_PRESIGNED_EXPIRY_SECONDS = 7 * 24 * 3600


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


@dataclass
class StorageConfig:
    """Configuration for the S3-compatible storage endpoint."""
    access_key_id: str
    secret_access_key: str
    endpoint_url: str
    region: str = "us-east-1"


class StorageClient(Protocol):
    """
    Protocol for object storage operations.

    Routes depend on this protocol, never on boto3, so tests can swap in
    the in-memory client.
    """

    async def upload_file(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str,
    ) -> str:
        """Store an object and return its path."""
        ...

    async def get_presigned_url(
        self,
        bucket: str,
        path: str,
        expiry_seconds: int = 3600,
    ) -> str:
        """Generate a temporary download URL."""
        ...

    async def delete_objects(self, bucket: str, paths: list[str]) -> int:
        """Delete objects by path. Returns count deleted."""
        ...

    async def ensure_buckets(self, buckets: Iterable[str]) -> None:
        """Create any missing buckets."""
        ...


def _clamp_expiry(expiry_seconds: int) -> int:
    # SigV4 presigned URLs cannot outlive seven days.
    return max(1, min(expiry_seconds, MAX_PRESIGNED_EXPIRY_SECONDS))


class S3StorageClient:
    """
    S3-compatible object storage client.

    Methods are async to satisfy StorageClient; the boto3 calls block.
    """

    def __init__(self, config: StorageConfig) -> None:
        """
        Initialize the boto3 client.

        boto3 is imported here (not at module level) so mock mode never
        needs it.
        """
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for object storage. Install with: pip install boto3"
            )

        self._config = config

        # Supabase's S3 gateway only accepts v4 signatures and path-style URLs
        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'},
        )

        self._s3_client = boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized S3 storage client",
            extra={"endpoint": config.endpoint_url}
        )

    async def upload_file(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str,
    ) -> str:
        try:
            self._s3_client.put_object(
                Bucket=bucket,
                Key=path,
                Body=data,
                ContentType=content_type or 'application/octet-stream',
            )

            logger.info(
                "Uploaded object",
                extra={
                    "bucket": bucket,
                    "storage_path": path,
                    "size_bytes": len(data),
                }
            )

            return path

        except Exception as e:
            logger.error(
                "Failed to upload object",
                extra={"bucket": bucket, "storage_path": path, "error": str(e)}
            )
            raise StorageError(f"Upload failed: {e}")

    async def get_presigned_url(
        self,
        bucket: str,
        path: str,
        expiry_seconds: int = 3600,
    ) -> str:
        """
        Generate a temporary download URL.

        Stored documents keep the object path, not the URL; callers re-sign
        on every read so links never go stale in the store.
        """
        try:
            return self._s3_client.generate_presigned_url(
                'get_object',
                Params={'Bucket': bucket, 'Key': path},
                ExpiresIn=_clamp_expiry(expiry_seconds),
            )

        except Exception as e:
            logger.error(
                "Failed to generate presigned URL",
                extra={"bucket": bucket, "storage_path": path, "error": str(e)}
            )
            raise StorageError(f"Presigned URL generation failed: {e}")

    async def delete_objects(self, bucket: str, paths: list[str]) -> int:
        if not paths:
            return 0

        try:
            self._s3_client.delete_objects(
                Bucket=bucket,
                Delete={'Objects': [{'Key': path} for path in paths]}
            )

            logger.info(
                "Deleted objects",
                extra={"bucket": bucket, "count": len(paths)}
            )

            return len(paths)

        except Exception as e:
            logger.error(
                "Failed to delete objects",
                extra={"bucket": bucket, "error": str(e)}
            )
            raise StorageError(f"Delete failed: {e}")

    async def ensure_buckets(self, buckets: Iterable[str]) -> None:
        """
        Create the private media buckets if they don't exist yet.

        Runs at startup. Buckets are private; every read goes through a
        presigned URL.
        """
        try:
            response = self._s3_client.list_buckets()
            existing = {b['Name'] for b in response.get('Buckets', [])}

            for bucket in buckets:
                if bucket in existing:
                    continue
                self._s3_client.create_bucket(Bucket=bucket)
                logger.info("Created storage bucket", extra={"bucket": bucket})

        except Exception as e:
            logger.error(
                "Failed to ensure storage buckets",
                extra={"error": str(e)}
            )
            raise StorageError(f"Bucket setup failed: {e}")


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient:
    """
    In-memory storage for local development and tests.

    Objects are kept in a dictionary keyed by (bucket, path) and "URLs"
    are mock URIs.
    """

    def __init__(self) -> None:
        self._objects: dict[tuple[str, str], tuple[bytes, str]] = {}
        self.buckets: set[str] = set()
        logger.info("Initialized mock storage client (in-memory)")

    async def upload_file(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str,
    ) -> str:
        self._objects[(bucket, path)] = (data, content_type)

        logger.debug(
            "Stored object in mock storage",
            extra={"bucket": bucket, "storage_path": path, "size_bytes": len(data)}
        )

        return path

    async def get_presigned_url(
        self,
        bucket: str,
        path: str,
        expiry_seconds: int = 3600,
    ) -> str:
        if (bucket, path) not in self._objects:
            raise StorageError(f"Object not found: {bucket}/{path}")

        return f"mock://storage/{bucket}/{path}?expires={_clamp_expiry(expiry_seconds)}"

    async def delete_objects(self, bucket: str, paths: list[str]) -> int:
        deleted = 0
        for path in paths:
            if self._objects.pop((bucket, path), None) is not None:
                deleted += 1
        return deleted

    async def ensure_buckets(self, buckets: Iterable[str]) -> None:
        self.buckets.update(buckets)

    def exists(self, bucket: str, path: str) -> bool:
        return (bucket, path) in self._objects


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
