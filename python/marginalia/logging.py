"""Structured logging for Marginalia.

Every event is a snake_case name plus keyword fields, rendered as one JSON
object per line (or a console layout for local work):

    logger.info("document_created", document_id=str(document.id))

Request-scoped fields (request_id, user_id, path, method) live in
contextvars and are merged into every event, including events emitted by
stdlib loggers such as botocore and uvicorn. The request-id middleware sets
them; the auth middleware adds the viewer.
"""

import logging
import sys
from contextvars import ContextVar

import structlog

REQUEST_FIELDS = ("request_id", "user_id", "path", "method")

_request_context: dict[str, ContextVar[str | None]] = {
    name: ContextVar(name, default=None) for name in REQUEST_FIELDS
}

# Third-party loggers that are only useful when something is wrong
_QUIET_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "uvicorn.access")


def add_request_context(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """structlog processor: copy set request fields into the event.

    Fields passed explicitly on the event win over the context.
    """
    for name, var in _request_context.items():
        value = var.get()
        if value:
            event_dict.setdefault(name, value)
    return event_dict


def configure_logging(level: str | int = logging.INFO, json_format: bool = True) -> None:
    """Route structlog and stdlib logging through one renderer.

    Safe to call more than once; the root handler is replaced each time.

    Args:
        level: Root level, as a name ("DEBUG") or a logging constant.
        json_format: JSON lines if True, console-friendly output otherwise.
    """
    pre_chain = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_request_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    renderer = (
        structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper() if isinstance(level, str) else level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_request_context(
    request_id: str | None,
    user_id: str | None = None,
    path: str | None = None,
    method: str | None = None,
) -> None:
    """Start the logging context for a request. None leaves a field as is."""
    _request_context["request_id"].set(request_id)
    for name, value in (("user_id", user_id), ("path", path), ("method", method)):
        if value is not None:
            _request_context[name].set(value)


def bind_viewer(user_id: str) -> None:
    """Attach the authenticated owner id to the current request's events."""
    _request_context["user_id"].set(user_id)


def clear_request_context() -> None:
    for var in _request_context.values():
        var.set(None)


def get_request_id() -> str | None:
    return _request_context["request_id"].get()
