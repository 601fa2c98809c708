"""Object storage for uploaded documents.

Provides:
- Storage clients (S3 via boto3, in-memory fake for tests)
- Storage key building utilities with test isolation prefixes
- Access grant issuance (signed, short-lived download URLs)
"""

from marginalia.storage.client import (
    FakeStorageClient,
    ObjectMetadata,
    S3StorageClient,
    StorageClientBase,
    StorageError,
    get_storage_client,
)
from marginalia.storage.grants import AccessGrant, GrantError, issue_grant
from marginalia.storage.paths import build_storage_key, parse_storage_key, sanitize_filename

__all__ = [
    "StorageClientBase",
    "S3StorageClient",
    "FakeStorageClient",
    "ObjectMetadata",
    "StorageError",
    "get_storage_client",
    "AccessGrant",
    "GrantError",
    "issue_grant",
    "build_storage_key",
    "parse_storage_key",
    "sanitize_filename",
]
