"""Pytest configuration and fixtures for Marginalia tests.

Test isolation strategy:
- Each test gets its own in-memory SQLite database built from the ORM metadata
- The app's get_db dependency is overridden to use that database
- Object storage is replaced with a FakeStorageClient per test
- Authenticated requests use tokens minted with a test RSA keypair
"""

import os

# Settings validation needs these before any marginalia import reads config
os.environ.setdefault("MARGINALIA_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWKS_URL", "https://auth.test/.well-known/jwks.json")
os.environ.setdefault("JWT_ISSUER", "test-issuer")
os.environ.setdefault("JWT_AUDIENCES", "test-audience")
os.environ.pop("S3_BUCKET", None)

from collections.abc import Generator
from uuid import UUID

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from marginalia.app import add_request_id_middleware, create_app
from marginalia.config import clear_settings_cache
from marginalia.db.models import Base
from marginalia.db.session import create_session_factory, get_db
from marginalia.storage.client import FakeStorageClient, get_storage_client
from tests.helpers import create_test_user_id
from tests.support.test_verifier import MockJwtVerifier


@pytest.fixture(autouse=True)
def _fresh_settings() -> Generator[None, None, None]:
    """Re-read settings for every test so env monkeypatching takes effect."""
    clear_settings_cache()
    get_storage_client.cache_clear()
    yield
    clear_settings_cache()
    get_storage_client.cache_clear()


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """In-memory SQLite database shared by every session in the test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Session for calling service functions directly."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_storage(monkeypatch) -> FakeStorageClient:
    """In-memory storage wired into the document service."""
    storage = FakeStorageClient()
    monkeypatch.setattr("marginalia.services.documents.get_storage_client", lambda: storage)
    return storage


@pytest.fixture
def app(session_factory: sessionmaker[Session], fake_storage: FakeStorageClient) -> FastAPI:
    """App with auth (test verifier), request-id middleware and the test database."""
    app = create_app(token_verifier=MockJwtVerifier())
    add_request_id_middleware(app, log_requests=False)

    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Test client. Unhandled errors come back as 500 responses."""
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client


@pytest.fixture
def user_id() -> UUID:
    return create_test_user_id()


@pytest.fixture
def other_user_id() -> UUID:
    return create_test_user_id()
