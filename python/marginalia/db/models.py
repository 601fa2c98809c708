"""SQLAlchemy ORM models for Marginalia.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Column types are dialect-neutral (generic UUID, timezone-aware DateTime) so
the same models run against PostgreSQL in production and SQLite in tests.
"""

from datetime import UTC, datetime
from enum import Enum as PyEnum
from uuid import UUID, uuid4

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    attribute_keyed_dict,
    mapped_column,
    relationship,
    validates,
)


def utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class HighlightColor(str, PyEnum):
    """Fixed highlight palette. `yellow` is the default."""

    yellow = "yellow"
    blue = "blue"
    green = "green"
    pink = "pink"
    orange = "orange"


DEFAULT_HIGHLIGHT_COLOR = HighlightColor.yellow

# Migration 0001 pins the same list
_HIGHLIGHT_COLOR_CHECK = "color IN ({})".format(
    ",".join(f"'{c.value}'" for c in HighlightColor)
)


class DocumentStatus(str, PyEnum):
    """Servability of a document, derived from its storage key.

    States:
        pending: No storage key yet; the upload never completed. Never served.
        ready: Bytes are in storage and a grant can be issued.
    """

    pending = "pending"
    ready = "ready"


# =============================================================================
# Models
# =============================================================================


class Document(Base):
    """Uploaded PDF owned by exactly one user.

    The owner id is opaque (the verified token subject); there is no users
    table. storage_key is written once by the upload path and never changed.
    """

    __tablename__ = "documents"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    owner_user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    storage_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    content_type: Mapped[str] = mapped_column(
        Text, nullable=False, default="application/pdf", server_default="application/pdf"
    )
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    # Next highlight sequence number; allocated under a row lock
    next_highlight_seq: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default="1"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        CheckConstraint("size_bytes >= 0", name="ck_documents_size_nonnegative"),
        Index("ix_documents_owner_created", "owner_user_id", "created_at"),
    )

    # Arena: highlight id -> Highlight, iterated in creation order
    highlights: Mapped[dict[UUID, "Highlight"]] = relationship(
        "Highlight",
        back_populates="document",
        collection_class=attribute_keyed_dict("id"),
        order_by="Highlight.seq",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @validates("storage_key")
    def _validate_storage_key(self, key: str, value: str | None) -> str | None:
        current = self.__dict__.get("storage_key")
        if current is not None and value != current:
            raise ValueError("storage_key is immutable once set")
        return value

    @property
    def status(self) -> DocumentStatus:
        return DocumentStatus.ready if self.storage_key else DocumentStatus.pending


class Highlight(Base):
    """Highlight anchor - a captured text selection on one page of a document.

    `text` is the content-based re-location key. start_offset/end_offset are
    hints captured from the selection event and are not stable across
    renders; they may run backwards for reversed selections. Duplicate and
    overlapping text on the same document is allowed.
    """

    __tablename__ = "highlights"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    document_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    color: Mapped[str] = mapped_column(
        Text, nullable=False, default=DEFAULT_HIGHLIGHT_COLOR.value
    )
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    page: Mapped[int] = mapped_column(Integer, nullable=False)
    start_offset: Mapped[int] = mapped_column(Integer, nullable=False)
    end_offset: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        CheckConstraint("length(text) > 0", name="ck_highlights_text_nonempty"),
        CheckConstraint("page >= 1", name="ck_highlights_page_positive"),
        CheckConstraint(
            "start_offset >= 0 AND end_offset >= 0",
            name="ck_highlights_offsets_nonnegative",
        ),
        CheckConstraint(
            _HIGHLIGHT_COLOR_CHECK,
            name="ck_highlights_color",
        ),
        UniqueConstraint("document_id", "seq", name="uix_highlights_document_seq"),
    )

    document: Mapped["Document"] = relationship("Document", back_populates="highlights")
