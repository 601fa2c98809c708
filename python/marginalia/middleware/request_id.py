"""X-Request-ID middleware for request correlation and access logging.

Must be registered LAST so it runs FIRST (outermost): auth failures and
unhandled errors then still carry X-Request-ID and are logged with it.
"""

import re
import time
from uuid import UUID, uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from marginalia.logging import clear_request_context, get_logger, set_request_context

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

# Alphanumeric, dots, hyphens, underscores
VALID_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,128}$")

logger = get_logger(__name__)


def resolve_request_id(incoming: str | None) -> str:
    """Return the caller's request id if acceptable, else a fresh one.

    UUIDs are normalized to lowercase canonical form; other ids must match
    VALID_REQUEST_ID_PATTERN and are kept as sent.
    """
    if not incoming or len(incoming.encode("utf-8")) > MAX_REQUEST_ID_LENGTH:
        return str(uuid4())
    try:
        return str(UUID(incoming)) if len(incoming) == 36 else _plain_id(incoming)
    except ValueError:
        return _plain_id(incoming)


def _plain_id(value: str) -> str:
    if VALID_REQUEST_ID_PATTERN.match(value):
        return value
    return str(uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a request id to every request and log one access entry.

    Args:
        app: The ASGI application.
        log_requests: If True, log a request_completed entry per request.
    """

    def __init__(self, app, log_requests: bool = True):
        super().__init__(app)
        self.log_requests = log_requests

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_time = time.monotonic()

        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        set_request_context(request_id, path=request.url.path, method=request.method)

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id

            if self.log_requests:
                viewer = getattr(request.state, "viewer", None)
                logger.info(
                    "request_completed",
                    status_code=response.status_code,
                    duration_ms=round((time.monotonic() - start_time) * 1000, 2),
                    user_id=str(viewer.user_id) if viewer else None,
                )
            return response

        except Exception:
            logger.exception("request_failed")
            raise

        finally:
            clear_request_context()
