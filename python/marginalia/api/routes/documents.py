"""Document API routes.

Routes are transport-only: each calls exactly one service function.
All routes require authentication; documents owned by someone else are
reported exactly like missing ones (404 E_DOCUMENT_NOT_FOUND).
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from sqlalchemy.orm import Session

from marginalia.api.deps import Viewer, get_db, get_viewer
from marginalia.errors import InvalidRequestError
from marginalia.responses import success_response
from marginalia.services import documents as documents_service

router = APIRouter(tags=["documents"])


@router.post("/documents", status_code=201)
def upload_document(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    file: Annotated[UploadFile | None, File()] = None,
    pdf: Annotated[UploadFile | None, File()] = None,
    title: Annotated[str | None, Form()] = None,
) -> dict:
    """Upload a PDF and register it.

    The bytes go in the `file` form field; `pdf` is accepted as well.
    Returns 201 with the document and a fresh download url.

    Errors:
        E_INVALID_REQUEST (400): No file sent.
        E_INVALID_CONTENT_TYPE (400): Not application/pdf.
        E_INVALID_FILE_TYPE (400): Empty, or bytes are not a PDF.
        E_FILE_TOO_LARGE (400): Over MAX_PDF_BYTES.
        E_STORAGE_UNAVAILABLE (503): Storage write failed; nothing was recorded.
        E_DATABASE_UNAVAILABLE (503): Record write failed after the bytes were stored.
    """
    upload = file if file is not None else pdf
    if upload is None:
        raise InvalidRequestError(message="A PDF file is required")

    result = documents_service.create_document(
        db=db,
        viewer_id=viewer.user_id,
        stream=upload.file,
        filename=upload.filename,
        content_type=upload.content_type,
        title=title,
    )
    return success_response(result.model_dump(mode="json"))


@router.get("/documents")
def list_documents(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List the viewer's documents, each with its own url or error."""
    result = documents_service.list_documents(db=db, viewer_id=viewer.user_id)
    return success_response({"documents": [d.model_dump(mode="json") for d in result]})


@router.get("/documents/{document_id}")
def get_document(
    document_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Get one document with a fresh url and its highlights.

    Pending documents return status "pending" and url null.

    Errors:
        E_DOCUMENT_NOT_FOUND (404): Missing or not owned.
        E_GRANT_UNAVAILABLE (503): A download url could not be issued.
    """
    result = documents_service.get_document(
        db=db, viewer_id=viewer.user_id, document_id=document_id
    )
    return success_response(result.model_dump(mode="json"))


@router.delete("/documents/{document_id}", status_code=204)
def delete_document(
    document_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Delete a document, its stored bytes and its highlights.

    Errors:
        E_DOCUMENT_NOT_FOUND (404): Missing or not owned.
        E_STORAGE_UNAVAILABLE (503): Bytes could not be deleted; record kept.
    """
    documents_service.delete_document(db=db, viewer_id=viewer.user_id, document_id=document_id)
    return Response(status_code=204)
