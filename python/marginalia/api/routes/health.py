"""Liveness endpoint. Public; touches neither the database nor storage."""

from fastapi import APIRouter

from marginalia.config import get_settings
from marginalia.responses import success_response

router = APIRouter()


@router.get("/health")
def health_check() -> dict:
    """Report that the process is up and which storage backend it uses."""
    settings = get_settings()
    return success_response(
        {"status": "ok", "storage": "memory" if settings.uses_fake_storage else "s3"}
    )
