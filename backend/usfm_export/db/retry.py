"""
Database retry helpers.

Connection-level failures (refused, reset, server restart) are transient:
`with_db_retry` re-runs the operation with exponential backoff, everything
else is raised on the first attempt.
"""

from __future__ import annotations

import asyncio
import re
from contextlib import contextmanager
from typing import Awaitable, Callable, Iterator, TypeVar

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

from usfm_export.core.config import settings
from usfm_export.core.logging import get_logger
from usfm_export.pipeline.errors import StorageUnavailableError

logger = get_logger(__name__)

T = TypeVar("T")

RETRYABLE_ERROR_PATTERNS: tuple[str | re.Pattern, ...] = (
    "ECONNREFUSED",
    "ECONNRESET",
    "ETIMEDOUT",
    "ENOTFOUND",
    re.compile(r"connection refused", re.IGNORECASE),
    re.compile(r"connection terminated", re.IGNORECASE),
    re.compile(r"server closed the connection", re.IGNORECASE),
)


def is_retryable_error(exc: BaseException | None) -> bool:
    """True when `exc` looks like a transient storage failure."""
    if exc is None:
        return False

    if getattr(exc, "retryable", False) is True:
        return True

    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True

    message = str(exc)
    code = getattr(exc, "code", None)
    for pattern in RETRYABLE_ERROR_PATTERNS:
        if isinstance(pattern, str):
            if pattern in message or code == pattern:
                return True
        elif pattern.search(message):
            return True
    return False


@contextmanager
def translate_storage_errors(operation: str, workflow_id: str | None = None) -> Iterator[None]:
    """Re-raise transient database failures as StorageUnavailableError."""
    try:
        yield
    except StorageUnavailableError:
        raise
    except Exception as exc:
        if not is_retryable_error(exc):
            raise
        raise StorageUnavailableError(
            f"Storage unavailable during {operation}: {exc}",
            workflow_id=workflow_id,
        ) from exc


async def with_db_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int | None = None,
    base_delay: float | None = None,
    max_delay: float | None = None,
    backoff_factor: float | None = None,
) -> T:
    """
    Run `operation`, retrying transient failures with exponential backoff.

    Delay before attempt n+1 is ``min(base_delay * backoff_factor ** (n - 1), max_delay)``.
    """
    max_retries = max_retries if max_retries is not None else settings.DB_RETRY_MAX_ATTEMPTS
    base_delay = base_delay if base_delay is not None else settings.DB_RETRY_BASE_DELAY
    max_delay = max_delay if max_delay is not None else settings.DB_RETRY_MAX_DELAY
    backoff_factor = backoff_factor if backoff_factor is not None else settings.DB_RETRY_BACKOFF_FACTOR

    for attempt in range(1, max_retries + 1):
        try:
            return await operation()
        except Exception as exc:
            if attempt >= max_retries or not is_retryable_error(exc):
                raise

            delay = min(base_delay * backoff_factor ** (attempt - 1), max_delay)
            logger.warning(
                "Retrying database operation",
                attempt=attempt,
                max_retries=max_retries,
                delay=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)

    raise RuntimeError("with_db_retry called with max_retries < 1")
