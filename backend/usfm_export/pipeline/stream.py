"""
Stream assembly — drain an async byte stream into one contiguous blob.

The producer's resource is released through `on_cleanup` exactly once,
whether the stream ends normally or fails part-way through.
"""

from __future__ import annotations

import inspect
from typing import AsyncIterable, Awaitable, Callable

from usfm_export.core.logging import get_logger

logger = get_logger(__name__)


async def _release(on_cleanup: Callable[[], None | Awaitable[None]]) -> None:
    outcome = on_cleanup()
    if inspect.isawaitable(outcome):
        await outcome


async def assemble(
    stream: AsyncIterable[bytes],
    on_cleanup: Callable[[], None | Awaitable[None]],
) -> bytes:
    """
    Concatenate every chunk of `stream` in arrival order.

    Only the awaiting task is suspended while the producer works. A stream
    error is re-raised unchanged after `on_cleanup` has run, even when the
    cleanup itself fails.
    """
    chunks: list[bytes] = []
    total = 0
    try:
        async for chunk in stream:
            if not chunk:
                continue
            chunks.append(bytes(chunk))
            total += len(chunk)
    except BaseException as exc:
        if isinstance(exc, Exception):
            logger.error("Stream failed during assembly", chunks=len(chunks), bytes_received=total, error=str(exc))
        try:
            await _release(on_cleanup)
        except Exception as cleanup_exc:
            logger.error("Stream cleanup failed", error=str(cleanup_exc), stream_error=str(exc))
        raise

    await _release(on_cleanup)

    logger.debug("Stream assembled", chunks=len(chunks), size=total)
    return b"".join(chunks)
