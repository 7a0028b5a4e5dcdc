"""Structured logging for tether, built on structlog.

Request-scoped fields (request_id, user_id, path, method, action) live in
structlog's contextvars store and are merged into every entry, including
entries from stdlib loggers such as sqlalchemy and uvicorn.

Message bodies never reach the logs: any ``content`` field is dropped.

    logger = get_logger(__name__)
    logger.info("touch_request_created", relation_id=12)
"""

import logging
import sys

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, get_contextvars

REDACTED_FIELDS = frozenset({"content", "token", "authorization"})

QUIET_LOGGERS = ("httpx", "uvicorn.access", "sqlalchemy.engine")


def drop_redacted_fields(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    for key in REDACTED_FIELDS & event_dict.keys():
        del event_dict[key]
    return event_dict


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        drop_redacted_fields,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(json_format: bool = True) -> None:
    """Route structlog and stdlib logging through one stdout handler.

    Args:
        json_format: JSON lines when True, the structlog console renderer otherwise.
    """
    shared = _shared_processors()
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = (
        structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer()
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.INFO)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_request_context(
    request_id: str | None,
    user_id: str | None = None,
    path: str | None = None,
    method: str | None = None,
) -> None:
    """Bind request fields for the current context. None leaves a field as it was."""
    fields = {"user_id": user_id, "path": path, "method": method}
    bind_contextvars(
        request_id=request_id, **{key: value for key, value in fields.items() if value}
    )


def set_action(action: str | None) -> None:
    """Record which /ops action the current request dispatched."""
    bind_contextvars(action=action)


def clear_request_context() -> None:
    clear_contextvars()


def get_request_id() -> str | None:
    return get_contextvars().get("request_id")
