"""Highlight API routes.

Route handlers for highlight CRUD on a document.
Routes are transport-only: each calls exactly one service function.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from marginalia.api.deps import Viewer, get_db, get_viewer
from marginalia.responses import success_response
from marginalia.schemas.highlights import CreateHighlightRequest, UpdateHighlightRequest
from marginalia.services import highlights as highlights_service

router = APIRouter(tags=["highlights"])


@router.get("/documents/{document_id}/highlights")
def list_highlights(
    document_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List highlights on a document in creation order.

    Errors:
        E_DOCUMENT_NOT_FOUND (404): Document missing or not owned.
    """
    result = highlights_service.list_highlights(
        db=db, viewer_id=viewer.user_id, document_id=document_id
    )
    return success_response({"highlights": [h.model_dump(mode="json") for h in result]})


@router.post("/documents/{document_id}/highlights", status_code=201)
def create_highlight(
    document_id: UUID,
    request: CreateHighlightRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Add a highlight to a document.

    Returns 201 Created with the highlight object.

    Errors:
        E_INVALID_REQUEST (400): Blank text, bad page/offsets, unknown color.
        E_DOCUMENT_NOT_FOUND (404): Document missing or not owned.
    """
    result = highlights_service.add_highlight(
        db=db,
        viewer_id=viewer.user_id,
        document_id=document_id,
        req=request,
    )
    return success_response(result.model_dump(mode="json"))


@router.put("/documents/{document_id}/highlights/{highlight_id}")
def update_highlight(
    document_id: UUID,
    highlight_id: UUID,
    request: UpdateHighlightRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Change the color and/or comment of a highlight.

    Fields absent from the body are left unchanged.

    Errors:
        E_INVALID_REQUEST (400): Unknown or null color.
        E_DOCUMENT_NOT_FOUND (404): Highlight or document missing, or not owned.
    """
    result = highlights_service.update_highlight(
        db=db,
        viewer_id=viewer.user_id,
        document_id=document_id,
        highlight_id=highlight_id,
        req=request,
    )
    return success_response(result.model_dump(mode="json"))


@router.delete("/documents/{document_id}/highlights/{highlight_id}", status_code=204)
def delete_highlight(
    document_id: UUID,
    highlight_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Remove a highlight.

    Errors:
        E_DOCUMENT_NOT_FOUND (404): Highlight or document missing, or not owned.
    """
    highlights_service.remove_highlight(
        db=db,
        viewer_id=viewer.user_id,
        document_id=document_id,
        highlight_id=highlight_id,
    )
    return Response(status_code=204)
