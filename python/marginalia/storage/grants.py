"""Content access grants.

An AccessGrant is a short-lived, read-only URL for exactly one stored
document. Grants are minted on every read and never persisted or cached, so
a caller always receives at least a full validity window.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from marginalia.config import get_settings
from marginalia.db.models import utcnow
from marginalia.logging import get_logger
from marginalia.storage.client import (
    INLINE_PDF_DISPOSITION,
    PDF_CONTENT_TYPE,
    StorageClientBase,
    StorageError,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class AccessGrant:
    """Signed download URL for one storage key."""

    storage_key: str
    url: str
    expires_at: datetime


class GrantError(Exception):
    """A grant could not be issued. Transient, never means "missing"."""

    def __init__(self, message: str, storage_key: str | None = None):
        super().__init__(message)
        self.message = message
        self.storage_key = storage_key


def issue_grant(
    storage: StorageClientBase, storage_key: str, *, expires_in: int | None = None
) -> AccessGrant:
    """Mint a fresh grant for a storage key.

    The object is not checked for existence; a stale key fails when the URL
    is dereferenced.

    Args:
        storage: Storage client used to sign.
        storage_key: Key of the stored PDF.
        expires_in: Validity in seconds. Defaults to SIGNED_URL_EXPIRY_S.

    Returns:
        AccessGrant whose expires_at is no later than the URL's real expiry.

    Raises:
        GrantError: If the key is empty or signing fails.
    """
    if not storage_key:
        logger.warning("grant_issue_failed", reason="empty_storage_key")
        raise GrantError("Storage key is empty")

    if expires_in is None:
        expires_in = get_settings().signed_url_expiry_s

    # Taken before signing, truncated like the signature timestamp, so the
    # reported expiry never overshoots the URL
    expires_at = utcnow().replace(microsecond=0) + timedelta(seconds=expires_in)

    try:
        url = storage.sign_download(
            storage_key,
            expires_in=expires_in,
            response_content_type=PDF_CONTENT_TYPE,
            response_disposition=INLINE_PDF_DISPOSITION,
        )
    except StorageError as e:
        logger.warning(
            "grant_issue_failed",
            reason="signing_failed",
            storage_key=storage_key,
            error_code=e.code,
        )
        raise GrantError("Failed to generate signed URL", storage_key=storage_key) from e

    return AccessGrant(storage_key=storage_key, url=url, expires_at=expires_at)
