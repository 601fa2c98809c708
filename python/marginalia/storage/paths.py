"""Storage key building utilities.

This module provides the single point of logic for building storage keys.
All key construction must go through build_storage_key() to ensure
consistent prefix handling between production and test environments.

Key Invariant:
    - Production: documents/{owner_id}/{time_ns}-{filename}
    - Test: test_runs/{run_id}/documents/{owner_id}/{time_ns}-{filename}

Rules:
    - No leading slash
    - Keys are namespaced by owner; the time-based discriminator keeps two
      uploads of the same filename by one owner from colliding
    - Prefix applied exactly once in build_storage_key()
"""

import os
import re
import time
from uuid import UUID

# Environment variable for test run prefix
TEST_PREFIX_ENV_VAR = "STORAGE_TEST_PREFIX"

DEFAULT_FILENAME = "document.pdf"
MAX_FILENAME_LENGTH = 128

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _get_test_prefix() -> str:
    """Get the test prefix from environment.

    Returns:
        Empty string in production, "test_runs/{run_id}/" in test.
    """
    prefix = os.environ.get(TEST_PREFIX_ENV_VAR, "")
    if prefix and not prefix.endswith("/"):
        prefix = f"{prefix}/"
    return prefix


def sanitize_filename(filename: str | None) -> str:
    """Reduce a client-supplied filename to a safe key segment.

    Path components are dropped, runs of unsafe characters collapse to "_",
    and an empty result falls back to DEFAULT_FILENAME.

    Example:
        >>> sanitize_filename("../My Report (final).pdf")
        'My_Report_final_.pdf'
    """
    if not filename:
        return DEFAULT_FILENAME

    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    name = _UNSAFE_FILENAME_CHARS.sub("_", name).strip("._")
    if not name:
        return DEFAULT_FILENAME
    return name[-MAX_FILENAME_LENGTH:]


def build_storage_key(owner_id: UUID | str, filename: str | None) -> str:
    """Build the full storage key for an uploaded document.

    This is the ONLY function that should construct storage keys.

    Args:
        owner_id: The owning user's id.
        filename: Original filename (sanitized here).

    Returns:
        Full storage key, e.g. "documents/{owner_id}/1718000000000000000-report.pdf".
    """
    prefix = _get_test_prefix()
    return f"{prefix}documents/{owner_id}/{time.time_ns()}-{sanitize_filename(filename)}"


def parse_storage_key(key: str) -> tuple[str | None, str]:
    """Parse a storage key to extract the owner id and object name.

    Args:
        key: Full storage key.

    Returns:
        Tuple of (owner_id_str, object_name).
        owner_id_str is None if the key doesn't match the expected pattern.
    """
    key = key.lstrip("/")
    if key.startswith("test_runs/"):
        # Skip test_runs/{run_id}/ prefix
        parts = key.split("/", 2)
        if len(parts) > 2:
            key = parts[2]

    if not key.startswith("documents/"):
        return None, ""

    parts = key[len("documents/") :].split("/", 1)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return None, ""
    return parts[0], parts[1]
