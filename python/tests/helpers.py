"""Test helpers for authentication, seeding and uploads.

Provides:
- Token minting for test authentication
- Header generation for test requests
- Document/highlight seeding straight into the database
- Multipart upload helper
"""

import time
from uuid import UUID, uuid4

import jwt
from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from marginalia.db.models import Document, Highlight, utcnow
from tests.support.test_verifier import MockJwtVerifier, generate_rsa_keypair

DEFAULT_ISSUER = "test-issuer"
DEFAULT_AUDIENCE = "test-audience"
DEFAULT_EXPIRES_IN = 3600  # 1 hour

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF\n"


def mint_test_token(
    user_id: UUID | str,
    expires_in: int = DEFAULT_EXPIRES_IN,
    issuer: str = DEFAULT_ISSUER,
    audience: str = DEFAULT_AUDIENCE,
    private_key: bytes | None = None,
    **extra_claims,
) -> str:
    """Mint a signed RS256 test token for user_id."""
    now = int(time.time())
    payload = {
        "sub": str(user_id),
        "iss": issuer,
        "aud": audience,
        "iat": now,
        "exp": now + expires_in,
        **extra_claims,
    }
    return jwt.encode(
        payload, private_key or MockJwtVerifier.get_private_key(), algorithm="RS256"
    )


def mint_token_with_bad_signature(user_id: UUID | str) -> str:
    """Mint a token signed with a key the verifier doesn't know."""
    other_private_key, _ = generate_rsa_keypair()
    return mint_test_token(user_id, private_key=other_private_key)


def auth_headers(user_id: UUID | str, **token_kwargs) -> dict[str, str]:
    """Return headers with a valid Authorization for the given user."""
    token = mint_test_token(user_id, **token_kwargs)
    return {"Authorization": f"Bearer {token}"}


def create_test_user_id() -> UUID:
    return uuid4()


def seed_document(
    session_factory: sessionmaker[Session],
    owner_id: UUID,
    *,
    storage_key: str | None = None,
    title: str = "Seeded.pdf",
    size_bytes: int = 0,
) -> UUID:
    """Insert a document row directly. storage_key=None makes it pending."""
    with session_factory() as db:
        now = utcnow()
        document = Document(
            owner_user_id=owner_id,
            title=title,
            storage_key=storage_key,
            size_bytes=size_bytes,
            created_at=now,
            updated_at=now,
        )
        db.add(document)
        db.commit()
        return document.id


def count_highlights(session_factory: sessionmaker[Session], document_id: UUID | str) -> int:
    """Count highlight rows; accepts ids as returned in JSON bodies."""
    document_id = UUID(str(document_id))
    with session_factory() as db:
        return db.scalar(
            select(func.count()).select_from(Highlight).where(Highlight.document_id == document_id)
        )


def upload_pdf(
    client,
    user_id: UUID,
    *,
    filename: str = "paper.pdf",
    data: bytes = PDF_BYTES,
    content_type: str = "application/pdf",
    title: str | None = None,
):
    """POST /documents as user_id and return the response."""
    form = {"title": title} if title is not None else None
    return client.post(
        "/documents",
        files={"file": (filename, data, content_type)},
        data=form,
        headers=auth_headers(user_id),
    )
