"""Document registry service layer.

Owns document records and their stored bytes.

Key invariants:
- Every lookup is owner-scoped; missing and not-owned are the same 404
- Bytes are written to storage before the record exists, so a record with a
  storage key always points at an object that was stored successfully
- Pending documents (no storage key) are never signed or served
- Deletion is two-phase: storage object first, then highlights and record in
  one transaction; a storage failure leaves the record intact for retry

Service functions correspond 1:1 with route handlers.
"""

from typing import BinaryIO
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from marginalia.config import get_settings
from marginalia.db.models import Document, Highlight, utcnow
from marginalia.db.session import translate_db_errors
from marginalia.errors import (
    ApiErrorCode,
    InvalidRequestError,
    NotFoundError,
    UpstreamUnavailableError,
)
from marginalia.logging import get_logger
from marginalia.schemas.documents import DocumentDetailOut, DocumentOut
from marginalia.schemas.highlights import HighlightOut
from marginalia.storage import (
    GrantError,
    StorageClientBase,
    StorageError,
    build_storage_key,
    get_storage_client,
    issue_grant,
)
from marginalia.storage.client import PDF_CONTENT_TYPE
from marginalia.storage.paths import DEFAULT_FILENAME

logger = get_logger(__name__)

PDF_MAGIC = b"%PDF-"

# Per-item soft errors on listings
STORAGE_PATH_MISSING = "Storage path missing"
SIGNED_URL_FAILED = "Failed to generate signed URL"

MAX_TITLE_LENGTH = 255


# =============================================================================
# Shared Helpers
# =============================================================================


def get_document_for_owner_or_404(
    db: Session,
    viewer_id: UUID,
    document_id: UUID,
    *,
    for_update: bool = False,
    with_highlights: bool = False,
) -> Document:
    """Load a document owned by the viewer.

    Args:
        for_update: Lock the row (SELECT ... FOR UPDATE) until commit.
        with_highlights: Eagerly load the highlight collection.

    Raises:
        NotFoundError(E_DOCUMENT_NOT_FOUND): If the document doesn't exist
            or belongs to someone else.
    """
    stmt = select(Document).where(
        Document.id == document_id,
        Document.owner_user_id == viewer_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    if with_highlights:
        stmt = stmt.options(selectinload(Document.highlights))
    document = db.scalar(stmt.execution_options(populate_existing=True))
    if document is None:
        raise NotFoundError(ApiErrorCode.E_DOCUMENT_NOT_FOUND, "Not found")
    return document


def _normalize_content_type(content_type: str | None) -> str:
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def _read_upload(stream: BinaryIO, max_bytes: int) -> bytes:
    """Read at most max_bytes + 1 bytes so oversize uploads are detectable."""
    return stream.read(max_bytes + 1)


def _validate_content_type(content_type: str | None) -> None:
    if _normalize_content_type(content_type) != PDF_CONTENT_TYPE:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_CONTENT_TYPE,
            f"Invalid content type '{content_type}'. Only PDF files are allowed.",
        )


def _validate_pdf_bytes(data: bytes, max_bytes: int) -> None:
    """Validate upload bytes before anything is stored.

    Raises:
        InvalidRequestError: If the file is empty, too large, or not a PDF.
    """
    if not data:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_FILE_TYPE, "Uploaded file is empty")
    if len(data) > max_bytes:
        raise InvalidRequestError(
            ApiErrorCode.E_FILE_TOO_LARGE,
            f"File exceeds maximum size of {max_bytes} bytes.",
        )
    if not data.startswith(PDF_MAGIC):
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_FILE_TYPE, "File content does not match PDF format"
        )


def _resolve_title(title: str | None, filename: str | None) -> str:
    if title and title.strip():
        return title.strip()[:MAX_TITLE_LENGTH]
    if filename and filename.strip():
        return filename.strip()[:MAX_TITLE_LENGTH]
    return DEFAULT_FILENAME


def _document_fields(document: Document) -> dict:
    return {
        "id": document.id,
        "title": document.title,
        "status": document.status.value,
        "content_type": document.content_type,
        "size_bytes": document.size_bytes,
        "created_at": document.created_at,
        "updated_at": document.updated_at,
    }


def _decorate(storage: StorageClientBase, document: Document) -> dict:
    """Attach a fresh grant, or a per-item error, to a document's fields.

    Never raises: a grant failure on one item must not fail a listing.
    """
    fields = _document_fields(document)
    if not document.storage_key:
        fields.update(url=None, url_expires_at=None, error=STORAGE_PATH_MISSING)
        return fields

    try:
        grant = issue_grant(storage, document.storage_key)
    except GrantError:
        fields.update(url=None, url_expires_at=None, error=SIGNED_URL_FAILED)
        return fields

    fields.update(url=grant.url, url_expires_at=grant.expires_at, error=None)
    return fields


# =============================================================================
# Operations
# =============================================================================


def create_document(
    db: Session,
    viewer_id: UUID,
    *,
    stream: BinaryIO,
    filename: str | None,
    content_type: str | None,
    title: str | None = None,
) -> DocumentOut:
    """Validate, store and register an uploaded PDF.

    Ordering: bytes are put to storage first; the record is inserted only
    after the put succeeds. A record failure after a successful put leaves
    an orphaned object, which is logged and accepted.

    Returns:
        The new document, decorated with a fresh grant (or a per-item error).

    Raises:
        InvalidRequestError: If the upload is not an acceptable PDF.
        UpstreamUnavailableError(E_STORAGE_UNAVAILABLE): If the put fails.
        UpstreamUnavailableError(E_DATABASE_UNAVAILABLE): If the insert fails.
    """
    settings = get_settings()

    _validate_content_type(content_type)
    data = _read_upload(stream, settings.max_pdf_bytes)
    _validate_pdf_bytes(data, settings.max_pdf_bytes)

    storage = get_storage_client()
    storage_key = build_storage_key(viewer_id, filename)

    try:
        storage.put_object(storage_key, data, content_type=PDF_CONTENT_TYPE)
    except StorageError as e:
        logger.error(
            "document_upload_failed",
            storage_key=storage_key,
            error_code=e.code,
            error=e.message,
        )
        raise UpstreamUnavailableError(
            ApiErrorCode.E_STORAGE_UNAVAILABLE, "Storage temporarily unavailable"
        ) from e

    now = utcnow()
    document = Document(
        owner_user_id=viewer_id,
        title=_resolve_title(title, filename),
        storage_key=storage_key,
        content_type=PDF_CONTENT_TYPE,
        size_bytes=len(data),
        created_at=now,
        updated_at=now,
    )

    try:
        with translate_db_errors(db, "create_document"):
            db.add(document)
            db.commit()
    except Exception:
        logger.error("orphaned_storage_object", storage_key=storage_key)
        raise

    logger.info(
        "document_created",
        document_id=str(document.id),
        size_bytes=document.size_bytes,
    )
    return DocumentOut(**_decorate(storage, document))


def get_document(db: Session, viewer_id: UUID, document_id: UUID) -> DocumentDetailOut:
    """Get one owned document with a fresh grant and its highlights.

    Pending documents come back with status "pending" and no url; no
    signing is attempted for them.

    Raises:
        NotFoundError(E_DOCUMENT_NOT_FOUND): If missing or not owned.
        UpstreamUnavailableError(E_GRANT_UNAVAILABLE): If a grant can't be issued.
    """
    with translate_db_errors(db, "get_document"):
        document = get_document_for_owner_or_404(
            db, viewer_id, document_id, with_highlights=True
        )

    highlights = [HighlightOut.model_validate(h) for h in document.highlights.values()]
    fields = _document_fields(document)

    if not document.storage_key:
        return DocumentDetailOut(**fields, error=STORAGE_PATH_MISSING, highlights=highlights)

    try:
        grant = issue_grant(get_storage_client(), document.storage_key)
    except GrantError as e:
        raise UpstreamUnavailableError(
            ApiErrorCode.E_GRANT_UNAVAILABLE, "Document access temporarily unavailable"
        ) from e

    return DocumentDetailOut(
        **fields, url=grant.url, url_expires_at=grant.expires_at, highlights=highlights
    )


def list_documents(db: Session, viewer_id: UUID) -> list[DocumentOut]:
    """List the viewer's documents in insertion order.

    Each item is decorated independently; a failed grant yields url=None and
    an error string on that item only.
    """
    with translate_db_errors(db, "list_documents"):
        documents = db.scalars(
            select(Document)
            .where(Document.owner_user_id == viewer_id)
            .order_by(Document.created_at.asc(), Document.id.asc())
        ).all()

    storage = get_storage_client()
    return [DocumentOut(**_decorate(storage, d)) for d in documents]


def delete_document(db: Session, viewer_id: UUID, document_id: UUID) -> None:
    """Delete an owned document, its stored bytes and its highlights.

    Raises:
        NotFoundError(E_DOCUMENT_NOT_FOUND): If missing or not owned.
        UpstreamUnavailableError(E_STORAGE_UNAVAILABLE): If the storage delete
            fails. The record is left intact so the caller can retry.
    """
    with translate_db_errors(db, "delete_document"):
        document = get_document_for_owner_or_404(db, viewer_id, document_id)
    storage_key = document.storage_key

    # Phase 1: storage
    if storage_key:
        try:
            get_storage_client().delete_object(storage_key)
        except StorageError as e:
            logger.warning(
                "document_storage_delete_failed",
                document_id=str(document_id),
                storage_key=storage_key,
                error_code=e.code,
            )
            db.rollback()
            raise UpstreamUnavailableError(
                ApiErrorCode.E_STORAGE_UNAVAILABLE, "Storage temporarily unavailable"
            ) from e

    # Phase 2: record and highlights together
    with translate_db_errors(db, "delete_document"):
        db.execute(delete(Highlight).where(Highlight.document_id == document_id))
        db.execute(
            delete(Document).where(
                Document.id == document_id,
                Document.owner_user_id == viewer_id,
            )
        )
        db.commit()

    logger.info("document_deleted", document_id=str(document_id))
