"""Response envelopes and exception handlers.

Success bodies are {"data": ...}. Error bodies are
{"error": {"code": "E_...", "message": "...", "request_id": "..."}}, where
request_id comes from the logging context unless given.

Retryable errors (503) also carry a Retry-After header so clients can back
off without parsing the body.
"""

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from marginalia.errors import ERROR_CODE_TO_STATUS, RETRY_AFTER_SECONDS, ApiError, ApiErrorCode
from marginalia.logging import get_logger, get_request_id

logger = get_logger(__name__)

# Framework-raised HTTP errors (unknown route, wrong method)
_HTTP_STATUS_TO_CODE = {
    400: ApiErrorCode.E_INVALID_REQUEST,
    401: ApiErrorCode.E_UNAUTHENTICATED,
    404: ApiErrorCode.E_NOT_FOUND,
    405: ApiErrorCode.E_INVALID_REQUEST,
    422: ApiErrorCode.E_INVALID_REQUEST,
}


def success_response(data: Any) -> dict[str, Any]:
    return {"data": data}


def error_response(
    code: ApiErrorCode, message: str, request_id: str | None = None
) -> dict[str, Any]:
    """Build an error envelope. request_id is omitted when none is known."""
    error = {"code": code.value, "message": message}
    request_id = request_id or get_request_id()
    if request_id:
        error["request_id"] = request_id
    return {"error": error}


def error_json(
    code: ApiErrorCode, message: str, *, status_code: int | None = None
) -> JSONResponse:
    """JSON error response for a code, with Retry-After on 503s.

    Args:
        code: Error code; also decides the status unless status_code is given.
        message: Client-facing message. Never includes provider details.
        status_code: Explicit status for framework-raised errors.
    """
    status = status_code or ERROR_CODE_TO_STATUS.get(code, 500)
    headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if status == 503 else None
    return JSONResponse(status_code=status, content=error_response(code, message), headers=headers)


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.retryable:
        logger.warning("upstream_unavailable", error_code=exc.code.value)
    return error_json(exc.code, exc.message)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    code = _HTTP_STATUS_TO_CODE.get(exc.status_code, ApiErrorCode.E_INTERNAL)
    message = str(exc.detail) if exc.detail else "An error occurred"
    return error_json(code, message, status_code=exc.status_code)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the failure and answer 500 E_INTERNAL with no details."""
    logger.exception("unhandled_exception", error_type=type(exc).__name__)
    return error_json(ApiErrorCode.E_INTERNAL, "Internal server error")
