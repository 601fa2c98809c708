"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from marginalia.schemas.documents import DocumentDetailOut, DocumentOut
from marginalia.schemas.highlights import (
    CreateHighlightRequest,
    HighlightOut,
    UpdateHighlightRequest,
)

__all__ = [
    # Documents
    "DocumentOut",
    "DocumentDetailOut",
    # Highlights
    "HighlightOut",
    "CreateHighlightRequest",
    "UpdateHighlightRequest",
]
