"""
Structured logging — structlog configured once per process.

Every module does::

    from usfm_export.core.logging import get_logger
    logger = get_logger(__name__)
    logger.info("Export completed", workflow_id=wf_id, file_size=1234)

Stdlib loggers (celery, uvicorn, sqlalchemy) are routed through the same
structlog renderer so worker and API output share one format.
"""

from __future__ import annotations

import logging
import sys

import structlog

_LOGGING_INITIALIZED = False

_QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio", "amqp", "kombu")


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]


def setup_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """
    Configure structlog and the stdlib root logger.

    Call once at process startup (API lifespan, Celery worker init, CLI).
    Repeated calls only adjust the level.
    """
    global _LOGGING_INITIALIZED

    log_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(log_level)

    if _LOGGING_INITIALIZED:
        return

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_processors(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    root.handlers = [handler]

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    _LOGGING_INITIALIZED = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to `name`."""
    return structlog.get_logger(name)
