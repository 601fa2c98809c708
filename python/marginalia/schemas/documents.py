"""Document Pydantic schemas.

A document response always states whether it can be served: ready
documents carry a freshly issued url, pending ones carry url=None and
never a signed link.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel

from marginalia.schemas.highlights import HighlightOut


class DocumentOut(BaseModel):
    """Response schema for a document.

    `error` is set when `url` is None on a listing item, e.g.
    "Storage path missing" or "Failed to generate signed URL".
    """

    id: UUID
    title: str
    status: Literal["pending", "ready"]
    content_type: str
    size_bytes: int
    url: str | None = None
    url_expires_at: datetime | None = None
    error: str | None = None
    created_at: datetime
    updated_at: datetime


class DocumentDetailOut(DocumentOut):
    """Single-document response, including highlights in creation order."""

    highlights: list[HighlightOut]
