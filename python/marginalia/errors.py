"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.

Missing resources and resources owned by someone else share one code and one
status (E_DOCUMENT_NOT_FOUND, 404) so callers cannot test for existence.
Every 503 code is retryable.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_DOCUMENT_NOT_FOUND = "E_DOCUMENT_NOT_FOUND"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_INVALID_CONTENT_TYPE = "E_INVALID_CONTENT_TYPE"
    E_INVALID_FILE_TYPE = "E_INVALID_FILE_TYPE"
    E_FILE_TOO_LARGE = "E_FILE_TOO_LARGE"

    # Upstream errors (503, retryable)
    E_AUTH_UNAVAILABLE = "E_AUTH_UNAVAILABLE"
    E_STORAGE_UNAVAILABLE = "E_STORAGE_UNAVAILABLE"
    E_DATABASE_UNAVAILABLE = "E_DATABASE_UNAVAILABLE"
    E_GRANT_UNAVAILABLE = "E_GRANT_UNAVAILABLE"

    # Server errors
    E_INTERNAL = "E_INTERNAL"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_DOCUMENT_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_INVALID_CONTENT_TYPE: 400,
    ApiErrorCode.E_INVALID_FILE_TYPE: 400,
    ApiErrorCode.E_FILE_TOO_LARGE: 400,
    ApiErrorCode.E_AUTH_UNAVAILABLE: 503,
    ApiErrorCode.E_STORAGE_UNAVAILABLE: 503,
    ApiErrorCode.E_DATABASE_UNAVAILABLE: 503,
    ApiErrorCode.E_GRANT_UNAVAILABLE: 503,
    ApiErrorCode.E_INTERNAL: 500,
}

# Seconds a client should wait before retrying a 503
RETRY_AFTER_SECONDS = 1


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ApiErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Whether the caller may retry the same request with backoff."""
        return self.status_code == 503


class NotFoundError(ApiError):
    """Resource not found (or not visible to the caller) error."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_DOCUMENT_NOT_FOUND, message: str = "Not found"
    ):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST, message: str = "Invalid request"
    ):
        super().__init__(code, message)


class UpstreamUnavailableError(ApiError):
    """Storage, persistence or signing failure. Safe to retry."""

    def __init__(
        self,
        code: ApiErrorCode = ApiErrorCode.E_STORAGE_UNAVAILABLE,
        message: str = "Temporarily unavailable",
    ):
        super().__init__(code, message)
