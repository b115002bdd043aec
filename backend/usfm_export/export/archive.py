"""
UsfmArchiveProducer — streams a ZIP archive of USFM books.

`open_export_stream()` resolves the books to export up front (so "nothing
to export" is known before any work starts) and returns an ExportStream:
an async iterator of compressed bytes plus a `cleanup` callable that
releases the archive. When the stream is first consumed, the verses of every
selected book are loaded in one pass; books are then rendered and
compressed one at a time, one `<BOOKCODE>.usfm` entry per book.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Callable

import pyzipper

from usfm_export.core.config import settings
from usfm_export.core.constants import USFM_EXTENSION
from usfm_export.core.logging import get_logger
from usfm_export.export.catalog import BookInfo, ProjectCatalog
from usfm_export.export.usfm import render_book_text
from usfm_export.pipeline.errors import ArtifactStreamError, ExportError

logger = get_logger(__name__)


@dataclass
class ExportStream:
    """A producer byte stream and the callable that releases it."""

    stream: AsyncIterator[bytes]
    cleanup: Callable[[], None]


class ArtifactProducer(ABC):
    """Base interface for export artifact producers."""

    @abstractmethod
    async def open_export_stream(
        self,
        project_unit_id: int,
        book_ids: list[int] | None = None,
    ) -> ExportStream | None:
        """Open the artifact stream, or return None when nothing qualifies for export."""
        ...


class _ChunkSink:
    """
    Write-only, non-seekable target for the ZIP writer.

    Without `seek`/`tell` the writer emits data descriptors instead of
    rewriting local headers, so bytes handed out by `drain()` are final.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self.closed = False

    def write(self, data: bytes) -> int:
        self._buffer.extend(data)
        return len(data)

    def flush(self) -> None:
        pass

    def drain(self) -> bytes:
        data = bytes(self._buffer)
        self._buffer.clear()
        return data


class _ArchiveCleanup:
    """Idempotent release of one archive stream."""

    def __init__(self, project_unit_id: int, book_ids: list[int] | None) -> None:
        self.project_unit_id = project_unit_id
        self.book_ids = book_ids
        self.executed = False

    def __call__(self) -> None:
        if self.executed:
            return
        self.executed = True
        logger.info("Archive cleanup executed", project_unit_id=self.project_unit_id, book_ids=self.book_ids)


class UsfmArchiveProducer(ArtifactProducer):
    """Builds `<BOOKCODE>.usfm` entries into a deflated ZIP stream."""

    def __init__(self, catalog: ProjectCatalog, compression_level: int | None = None) -> None:
        self.catalog = catalog
        self.compression_level = (
            compression_level if compression_level is not None else settings.USFM_ZIP_COMPRESSION_LEVEL
        )

    async def open_export_stream(
        self,
        project_unit_id: int,
        book_ids: list[int] | None = None,
    ) -> ExportStream | None:
        books = await self.catalog.get_project_books(project_unit_id, book_ids)
        if not books:
            logger.info("No books found for export", project_unit_id=project_unit_id, book_ids=book_ids)
            return None

        cleanup = _ArchiveCleanup(project_unit_id, book_ids)
        stream = self._generate(project_unit_id, books, cleanup)
        return ExportStream(stream=stream, cleanup=cleanup)

    async def _generate(
        self,
        project_unit_id: int,
        books: list[BookInfo],
        cleanup: _ArchiveCleanup,
    ) -> AsyncIterator[bytes]:
        log = logger.bind(project_unit_id=project_unit_id)
        sink = _ChunkSink()
        written = 0

        try:
            verses_by_book = await self.catalog.get_book_verses(
                project_unit_id, [book.book_id for book in books]
            )

            with pyzipper.ZipFile(
                sink,
                mode="w",
                compression=pyzipper.ZIP_DEFLATED,
                compresslevel=self.compression_level,
            ) as archive:
                for book in books:
                    if cleanup.executed:
                        log.warning("Stopping USFM generation, archive was released")
                        break

                    verses = verses_by_book.get(book.book_id, [])
                    if not verses:
                        log.warning("No verses found for book", book_id=book.book_id, book_code=book.book_code)
                        continue

                    archive.writestr(f"{book.book_code}{USFM_EXTENSION}", render_book_text(verses))
                    written += 1

                    chunk = sink.drain()
                    if chunk:
                        yield chunk

                    # let other runs on this loop make progress between books
                    await asyncio.sleep(0)

            tail = sink.drain()
            if tail:
                yield tail

        except ExportError:
            raise
        except Exception as exc:
            log.error("Error generating USFM archive", error=str(exc))
            raise ArtifactStreamError(f"USFM archive generation failed: {exc}") from exc

        log.info("Archive finalized successfully", books_written=written)
