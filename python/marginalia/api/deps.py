"""FastAPI dependencies for route handlers."""

from marginalia.auth.middleware import Viewer, get_viewer
from marginalia.db.session import get_db

__all__ = ["Viewer", "get_db", "get_viewer"]
