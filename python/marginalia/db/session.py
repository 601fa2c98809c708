"""Sessions and error translation for the document store.

Sessions are request-scoped (get_db) and keep loaded objects usable after
commit, so services can build responses from rows they just wrote.

translate_db_errors() is the one place where driver failures become API
errors: an unreachable, overloaded or slow database is a retryable 503.
"""

from collections.abc import Generator
from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from marginalia.db.engine import get_engine
from marginalia.errors import ApiErrorCode, UpstreamUnavailableError
from marginalia.logging import get_logger

logger = get_logger(__name__)


def create_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """Session factory bound to engine (the application engine by default)."""
    return sessionmaker(
        bind=engine if engine is not None else get_engine(),
        autoflush=False,
        expire_on_commit=False,
    )


@lru_cache
def get_session_factory() -> sessionmaker[Session]:
    return create_session_factory()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, closed afterwards."""
    with get_session_factory()() as db:
        yield db


@contextmanager
def translate_db_errors(db: Session, operation: str) -> Generator[None, None, None]:
    """Roll back and raise E_DATABASE_UNAVAILABLE on driver or pool failures.

    IntegrityError is a data problem rather than an outage and propagates
    unchanged (after rollback).

    Args:
        db: Session to roll back.
        operation: Short operation name for the log entry.
    """
    try:
        yield
    except IntegrityError:
        db.rollback()
        raise
    except (DBAPIError, PoolTimeoutError) as e:
        db.rollback()
        logger.error("database_unavailable", operation=operation, error_type=type(e).__name__)
        raise UpstreamUnavailableError(
            ApiErrorCode.E_DATABASE_UNAVAILABLE, "Document store temporarily unavailable"
        ) from e
