"""Highlight anchor service layer.

Implements highlight CRUD scoped to documents the viewer owns.

All operations:
- Use E_DOCUMENT_NOT_FOUND for missing documents, documents owned by someone
  else, and missing highlights alike (prevent probing attacks)
- Mutate one highlight per statement; the collection is never rewritten
- Append under a row lock on the document so concurrent adds never lose one

Service functions correspond 1:1 with route handlers.
Routes are transport-only and call exactly one service function.
"""

from uuid import UUID, uuid4

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from marginalia.db.models import Document, Highlight, utcnow
from marginalia.db.session import translate_db_errors
from marginalia.errors import ApiError, ApiErrorCode, NotFoundError
from marginalia.logging import get_logger
from marginalia.schemas.highlights import (
    CreateHighlightRequest,
    HighlightOut,
    UpdateHighlightRequest,
)
from marginalia.services.documents import get_document_for_owner_or_404

logger = get_logger(__name__)


# =============================================================================
# Shared Helpers
# =============================================================================


def _owned_document_ids(viewer_id: UUID, document_id: UUID):
    return select(Document.id).where(
        Document.id == document_id,
        Document.owner_user_id == viewer_id,
    )


def _highlight_scope(viewer_id: UUID, document_id: UUID, highlight_id: UUID) -> tuple:
    """WHERE clauses selecting one highlight on a document the viewer owns."""
    return (
        Highlight.id == highlight_id,
        Highlight.document_id == document_id,
        Highlight.document_id.in_(_owned_document_ids(viewer_id, document_id)),
    )


def _assign_next_highlight_seq(document: Document) -> int:
    """Take the next creation-order number from a locked document row."""
    seq = document.next_highlight_seq
    document.next_highlight_seq = seq + 1
    return seq


# =============================================================================
# Operations
# =============================================================================


def add_highlight(
    db: Session, viewer_id: UUID, document_id: UUID, req: CreateHighlightRequest
) -> HighlightOut:
    """Append a highlight to an owned document.

    Identical payloads create distinct highlights.

    Raises:
        NotFoundError(E_DOCUMENT_NOT_FOUND): If the document is missing or not owned.
        UpstreamUnavailableError(E_DATABASE_UNAVAILABLE): If persistence fails.
    """
    with translate_db_errors(db, "add_highlight"):
        document = get_document_for_owner_or_404(db, viewer_id, document_id, for_update=True)

        now = utcnow()
        highlight = Highlight(
            id=uuid4(),
            document_id=document.id,
            seq=_assign_next_highlight_seq(document),
            text=req.text,
            color=req.color,
            comment=req.comment,
            page=req.page,
            start_offset=req.start_offset,
            end_offset=req.end_offset,
            created_at=now,
            updated_at=now,
        )
        document.updated_at = now
        db.add(highlight)
        db.commit()

    logger.info(
        "highlight_added",
        document_id=str(document_id),
        highlight_id=str(highlight.id),
        page=highlight.page,
    )
    return HighlightOut.model_validate(highlight)


def list_highlights(db: Session, viewer_id: UUID, document_id: UUID) -> list[HighlightOut]:
    """List an owned document's highlights in creation order.

    Raises:
        NotFoundError(E_DOCUMENT_NOT_FOUND): If the document is missing or not owned.
    """
    with translate_db_errors(db, "list_highlights"):
        get_document_for_owner_or_404(db, viewer_id, document_id)
        highlights = db.scalars(
            select(Highlight)
            .where(Highlight.document_id == document_id)
            .order_by(Highlight.seq.asc())
            .execution_options(populate_existing=True)
        ).all()

    return [HighlightOut.model_validate(h) for h in highlights]


def update_highlight(
    db: Session,
    viewer_id: UUID,
    document_id: UUID,
    highlight_id: UUID,
    req: UpdateHighlightRequest,
) -> HighlightOut:
    """Update color and/or comment of one highlight.

    Only fields present in the request change. The write is a single
    owner-scoped UPDATE, so concurrent updates to other highlights (or other
    fields) are never lost.

    Raises:
        NotFoundError(E_DOCUMENT_NOT_FOUND): If the highlight or document is
            missing, or the document is not owned.
    """
    values = {}
    if "color" in req.model_fields_set:
        values["color"] = req.color
    if "comment" in req.model_fields_set:
        values["comment"] = req.comment

    scope = _highlight_scope(viewer_id, document_id, highlight_id)

    with translate_db_errors(db, "update_highlight"):
        if values:
            values["updated_at"] = utcnow()
            result = db.execute(
                update(Highlight)
                .where(*scope)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                db.rollback()
                raise NotFoundError(ApiErrorCode.E_DOCUMENT_NOT_FOUND, "Not found")
            db.commit()

        highlight = db.scalar(
            select(Highlight).where(*scope).execution_options(populate_existing=True)
        )

    if highlight is None:
        raise NotFoundError(ApiErrorCode.E_DOCUMENT_NOT_FOUND, "Not found")

    if values:
        logger.info(
            "highlight_updated",
            document_id=str(document_id),
            highlight_id=str(highlight_id),
            fields=sorted(k for k in values if k != "updated_at"),
        )
    return HighlightOut.model_validate(highlight)


def remove_highlight(
    db: Session, viewer_id: UUID, document_id: UUID, highlight_id: UUID
) -> None:
    """Remove exactly one highlight and confirm it is gone.

    Raises:
        NotFoundError(E_DOCUMENT_NOT_FOUND): If nothing matched; the collection
            is unchanged.
        ApiError(E_INTERNAL): If the highlight is still present after commit.
    """
    scope = _highlight_scope(viewer_id, document_id, highlight_id)

    with translate_db_errors(db, "remove_highlight"):
        result = db.execute(
            delete(Highlight).where(*scope).execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.rollback()
            raise NotFoundError(ApiErrorCode.E_DOCUMENT_NOT_FOUND, "Not found")
        db.commit()

        remaining = db.scalar(
            select(func.count()).select_from(Highlight).where(Highlight.id == highlight_id)
        )

    if remaining:
        logger.error(
            "highlight_delete_unconfirmed",
            document_id=str(document_id),
            highlight_id=str(highlight_id),
        )
        raise ApiError(ApiErrorCode.E_INTERNAL, "Highlight removal could not be confirmed")

    logger.info(
        "highlight_removed", document_id=str(document_id), highlight_id=str(highlight_id)
    )
