"""Bearer token authentication.

The verified token subject is the only identity the service knows: it
becomes Viewer.user_id, the opaque owner id every document and highlight
operation is scoped by. Failures never reach a route handler.
"""

from dataclasses import dataclass
from uuid import UUID

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from marginalia.auth.verifier import TokenVerifier
from marginalia.errors import ApiError, ApiErrorCode
from marginalia.logging import bind_viewer, get_logger
from marginalia.responses import error_json

logger = get_logger(__name__)

AUTHORIZATION_HEADER = "authorization"
BEARER_PREFIX = "bearer "

# Paths that don't require authentication
PUBLIC_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


@dataclass(frozen=True)
class Viewer:
    """Authenticated viewer identity.

    Attributes:
        user_id: Opaque owner id (the verified JWT sub claim).
    """

    user_id: UUID


class AuthMiddleware(BaseHTTPMiddleware):
    """Require a verified bearer token on every non-public path.

    On success the Viewer is attached to request.state and its id is bound
    into the logging context.
    """

    def __init__(self, app: ASGIApp, verifier: TokenVerifier):
        super().__init__(app)
        self.verifier = verifier

    async def dispatch(self, request: Request, call_next):
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        token = self._extract_bearer_token(request)
        if token is None:
            return error_json(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")

        try:
            payload = self.verifier.verify(token)
        except ApiError as e:
            return error_json(e.code, e.message)

        viewer = Viewer(user_id=UUID(payload["sub"]))
        request.state.viewer = viewer
        bind_viewer(str(viewer.user_id))

        return await call_next(request)

    def _extract_bearer_token(self, request: Request) -> str | None:
        """Return the bearer token, or None if the header is absent or malformed."""
        auth_header = request.headers.get(AUTHORIZATION_HEADER)
        if not auth_header:
            logger.warning("auth_failure", reason="missing_header")
            return None

        if not auth_header.lower().startswith(BEARER_PREFIX):
            logger.warning("auth_failure", reason="invalid_header_format")
            return None

        token = auth_header[len(BEARER_PREFIX) :].strip()
        if not token:
            logger.warning("auth_failure", reason="empty_token")
            return None
        return token


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency to get the authenticated viewer.

    Raises:
        ApiError(E_UNAUTHENTICATED): If the middleware didn't attach a viewer.
    """
    viewer = getattr(request.state, "viewer", None)
    if viewer is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return viewer
