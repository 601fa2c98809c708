"""Object storage client abstraction.

Provides a clean interface for the three storage operations documents need:
- Object upload (server-side put of validated bytes)
- Signed download URLs (short-lived, read-only, response headers pinned)
- Object deletion (raises on failure; deletion is two-phase)

S3StorageClient talks to S3 or an S3-compatible endpoint through boto3.
FakeStorageClient keeps objects in memory for local development and tests.
All methods receive the full storage key directly - no prefix manipulation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import quote, urlencode
from uuid import uuid4

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from marginalia.config import get_settings
from marginalia.logging import get_logger

logger = get_logger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
INLINE_PDF_DISPOSITION = 'inline; filename="document.pdf"'


@dataclass(frozen=True)
class ObjectMetadata:
    """Storage object metadata (advisory only)."""

    content_type: str
    size_bytes: int


class StorageError(Exception):
    """Storage operation error."""

    def __init__(self, message: str, code: str = "E_STORAGE_ERROR"):
        super().__init__(message)
        self.message = message
        self.code = code


class StorageClientBase(ABC):
    """Abstract base class for storage client implementations."""

    @abstractmethod
    def put_object(self, key: str, data: bytes, *, content_type: str) -> None:
        """Store bytes under key.

        Raises:
            StorageError: If the write fails or times out.
        """
        ...

    @abstractmethod
    def sign_download(
        self,
        key: str,
        *,
        expires_in: int,
        response_content_type: str = PDF_CONTENT_TYPE,
        response_disposition: str = INLINE_PDF_DISPOSITION,
    ) -> str:
        """Create a signed, read-only download URL for exactly one object.

        The response content type and disposition are pinned in the signature,
        so the viewer gets a renderable response whatever metadata the object
        was stored with. No existence check is made.

        Raises:
            StorageError: If signing fails.
        """
        ...

    @abstractmethod
    def delete_object(self, key: str) -> None:
        """Delete an object. Deleting a missing object succeeds.

        Raises:
            StorageError: If the delete fails or times out.
        """
        ...


class S3StorageClient(StorageClientBase):
    """S3 storage client using boto3.

    Connect/read timeouts and a bounded retry budget keep every call finite;
    exhausting them surfaces as StorageError.
    """

    def __init__(
        self,
        bucket: str,
        *,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        connect_timeout: int = 5,
        read_timeout: int = 30,
        max_attempts: int = 2,
        client=None,
    ):
        """Initialize the storage client.

        Args:
            bucket: Bucket holding documents.
            region: AWS region of the bucket.
            endpoint_url: Optional S3-compatible endpoint.
            connect_timeout: Seconds to wait for a connection.
            read_timeout: Seconds to wait for a response.
            max_attempts: Total attempts per call, including the first.
            client: Pre-built boto3 S3 client (tests).
        """
        self._bucket = bucket
        if client is None:
            client = boto3.client(
                "s3",
                region_name=region,
                endpoint_url=endpoint_url,
                config=Config(
                    signature_version="s3v4",
                    connect_timeout=connect_timeout,
                    read_timeout=read_timeout,
                    retries={"total_max_attempts": max_attempts, "mode": "standard"},
                ),
            )
        self._client = client

    def put_object(self, key: str, data: bytes, *, content_type: str) -> None:
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                ContentDisposition="inline",
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to put object: {e}", code="E_STORAGE_PUT_FAILED") from e

    def sign_download(
        self,
        key: str,
        *,
        expires_in: int,
        response_content_type: str = PDF_CONTENT_TYPE,
        response_disposition: str = INLINE_PDF_DISPOSITION,
    ) -> str:
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params={
                    "Bucket": self._bucket,
                    "Key": key,
                    "ResponseContentType": response_content_type,
                    "ResponseContentDisposition": response_disposition,
                },
                ExpiresIn=expires_in,
                HttpMethod="GET",
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(
                f"Failed to sign download: {e}", code="E_SIGN_DOWNLOAD_FAILED"
            ) from e

    def delete_object(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code in ("NoSuchKey", "404"):
                return
            raise StorageError(
                f"Failed to delete object: {e}", code="E_STORAGE_DELETE_FAILED"
            ) from e
        except BotoCoreError as e:
            raise StorageError(
                f"Failed to delete object: {e}", code="E_STORAGE_DELETE_FAILED"
            ) from e


class FakeStorageClient(StorageClientBase):
    """Fake storage client for testing without a real bucket.

    Stores files in memory and provides deterministic behavior for unit tests.
    Failure injection helpers let tests exercise each storage failure path.
    """

    def __init__(self):
        self._objects: dict[str, tuple[bytes, str]] = {}  # key -> (content, content_type)
        self.fail_puts = False
        self.fail_deletes = False
        self.fail_signing_for: set[str] = set()
        self.sign_calls: list[str] = []

    def put_object(self, key: str, data: bytes, *, content_type: str) -> None:
        if self.fail_puts:
            raise StorageError("Injected put failure", code="E_STORAGE_PUT_FAILED")
        self._objects[key] = (data, content_type)

    def sign_download(
        self,
        key: str,
        *,
        expires_in: int,
        response_content_type: str = PDF_CONTENT_TYPE,
        response_disposition: str = INLINE_PDF_DISPOSITION,
    ) -> str:
        self.sign_calls.append(key)
        if key in self.fail_signing_for:
            raise StorageError("Injected signing failure", code="E_SIGN_DOWNLOAD_FAILED")
        query = urlencode(
            {
                "expires_in": expires_in,
                "response-content-type": response_content_type,
                "response-content-disposition": response_disposition,
                "token": f"fake-{uuid4()}",
            }
        )
        return f"https://fake-storage.test/download/{quote(key)}?{query}"

    def delete_object(self, key: str) -> None:
        if self.fail_deletes:
            raise StorageError("Injected delete failure", code="E_STORAGE_DELETE_FAILED")
        self._objects.pop(key, None)

    # Test helper methods

    def head_object(self, key: str) -> ObjectMetadata | None:
        """Return metadata for a stored object (test helper)."""
        if key not in self._objects:
            return None
        content, content_type = self._objects[key]
        return ObjectMetadata(content_type=content_type, size_bytes=len(content))

    def get_object(self, key: str) -> bytes | None:
        """Get object content directly (test helper)."""
        if key not in self._objects:
            return None
        return self._objects[key][0]

    def keys(self) -> list[str]:
        """List stored keys (test helper)."""
        return list(self._objects)

    def clear(self) -> None:
        """Clear all stored objects and injected failures (test helper)."""
        self._objects.clear()
        self.fail_puts = False
        self.fail_deletes = False
        self.fail_signing_for.clear()
        self.sign_calls.clear()


@lru_cache
def get_storage_client() -> StorageClientBase:
    """Get the configured storage client.

    Returns:
        S3StorageClient if S3_BUCKET is set, FakeStorageClient otherwise.
        The instance is cached so the in-memory store survives across requests.
    """
    settings = get_settings()

    if settings.s3_bucket:
        return S3StorageClient(
            settings.s3_bucket,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
            connect_timeout=settings.storage_connect_timeout_s,
            read_timeout=settings.storage_read_timeout_s,
            max_attempts=settings.storage_max_attempts,
        )

    logger.warning("fake_storage_in_use", env=settings.marginalia_env.value)
    return FakeStorageClient()
