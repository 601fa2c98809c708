"""Database module for Marginalia.

Engine, request-scoped sessions, database error translation and ORM models.
"""

from marginalia.db.engine import create_db_engine, get_engine
from marginalia.db.models import (
    DEFAULT_HIGHLIGHT_COLOR,
    Base,
    Document,
    DocumentStatus,
    Highlight,
    HighlightColor,
)
from marginalia.db.session import create_session_factory, get_db, translate_db_errors

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "create_session_factory",
    "get_db",
    "translate_db_errors",
    # Base
    "Base",
    # Enums
    "DocumentStatus",
    "HighlightColor",
    "DEFAULT_HIGHLIGHT_COLOR",
    # Models
    "Document",
    "Highlight",
]
