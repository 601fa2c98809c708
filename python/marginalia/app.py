"""FastAPI application creation and configuration.

Registers exception handlers, auth middleware, request-id middleware and
routes.

Middleware Ordering:
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST (via add_request_id_middleware) so it
  runs FIRST and every response, auth failures included, has X-Request-ID

Execution order per request:
1. RequestIDMiddleware (sets request_id, starts timer)
2. AuthMiddleware (verifies bearer token, sets viewer)
3. Route handler
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from marginalia.api.routes import create_api_router
from marginalia.auth.middleware import AuthMiddleware
from marginalia.auth.verifier import JwksVerifier, TokenVerifier
from marginalia.config import get_settings
from marginalia.db.engine import get_engine
from marginalia.errors import ApiError, ApiErrorCode
from marginalia.logging import configure_logging, get_logger
from marginalia.middleware.request_id import RequestIDMiddleware
from marginalia.responses import (
    api_error_handler,
    error_json,
    http_exception_handler,
    unhandled_exception_handler,
)

logger = get_logger(__name__)


def create_token_verifier() -> JwksVerifier:
    """Create the JWKS token verifier from settings.

    All environments use the same verifier; only the configured JWKS URL,
    issuer and audiences differ.
    """
    settings = get_settings()

    return JwksVerifier(
        jwks_url=settings.jwks_url,  # type: ignore[arg-type]
        issuer=settings.normalized_issuer,  # type: ignore[arg-type]
        audiences=settings.audience_list,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup configuration and release pooled connections on shutdown."""
    settings = get_settings()
    logger.info(
        "app_started",
        env=settings.marginalia_env.value,
        fake_storage=settings.uses_fake_storage,
    )

    yield

    if get_engine.cache_info().currsize:
        get_engine().dispose()
    logger.info("app_stopped")


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return request validation failures (including malformed JSON) as 400."""
    errors = exc.errors()
    if any(e.get("type") == "json_invalid" for e in errors):
        message = "Malformed JSON body"
    else:
        fields = sorted({".".join(str(p) for p in e.get("loc", ())[1:]) for e in errors} - {""})
        message = f"Invalid request: {', '.join(fields)}" if fields else "Invalid request"
    return error_json(ApiErrorCode.E_INVALID_REQUEST, message)


def create_app(
    skip_auth_middleware: bool = False,
    token_verifier: TokenVerifier | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, skip adding auth middleware (for testing).
        token_verifier: Optional custom token verifier (for testing).

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    app = FastAPI(
        title="Marginalia API",
        description="PDF reading and highlighting service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(create_api_router())

    if not skip_auth_middleware:
        app.add_middleware(AuthMiddleware, verifier=token_verifier or create_token_verifier())
        logger.info("auth_middleware_enabled", env=settings.marginalia_env.value)

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    Call AFTER all other middleware is added, so it runs FIRST.

    Args:
        app: The FastAPI application.
        log_requests: Whether to log access entries for each request.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
