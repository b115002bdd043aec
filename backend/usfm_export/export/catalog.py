"""
Project catalog — read access to the translation tables an export draws on.

The tables (projects, project_units, project_unit_bible_books, books,
bible_texts, translated_verses) belong to the main application; this
module only queries them, so it uses textual SQL instead of declaring
ORM models for tables it does not own.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from usfm_export.core.config import settings
from usfm_export.core.logging import get_logger
from usfm_export.db.retry import translate_storage_errors

logger = get_logger(__name__)


@dataclass(frozen=True)
class BookInfo:
    """A book assigned to a project unit."""

    book_id: int
    book_code: str
    book_name: str


@dataclass(frozen=True)
class VerseRow:
    """One source verse with its translation for the project unit (if any)."""

    book_id: int
    book_code: str
    book_name: str
    chapter_number: int
    verse_number: int
    translated_content: str | None = None


@dataclass(frozen=True)
class AvailableBook:
    """A book with its verse and translated-verse counts."""

    book_id: int
    book_code: str
    book_name: str
    verse_count: int
    translated_count: int

    def to_dict(self) -> dict:
        return {
            "bookId": self.book_id,
            "bookCode": self.book_code,
            "bookName": self.book_name,
            "verseCount": self.verse_count,
            "translatedCount": self.translated_count,
        }


class ProjectCatalog(ABC):
    """Base interface for project/book/verse lookups."""

    @abstractmethod
    async def get_project_name(self, project_unit_id: int) -> str | None:
        """Display name of the project owning the unit, or None."""
        ...

    @abstractmethod
    async def validate_book_ids(self, project_unit_id: int, book_ids: list[int] | None) -> bool:
        """True when every requested book belongs to the unit (or none requested)."""
        ...

    @abstractmethod
    async def get_project_books(self, project_unit_id: int, book_ids: list[int] | None = None) -> list[BookInfo]:
        """Books of the unit, optionally narrowed to `book_ids`, ordered by book id."""
        ...

    @abstractmethod
    async def get_book_verses(self, project_unit_id: int, book_ids: list[int]) -> dict[int, list[VerseRow]]:
        """Verses grouped by book id, ordered by chapter then verse."""
        ...

    @abstractmethod
    async def list_available_books(self, project_unit_id: int) -> list[AvailableBook]:
        """Exportable books with verse/translation counts."""
        ...


# ─── SQL ──────────────────────────────────────────────

_PROJECT_NAME_SQL = text(
    """
    SELECT p.name
    FROM projects p
    JOIN project_units pu ON p.id = pu.project_id
    WHERE pu.id = :project_unit_id
    LIMIT 1
    """
)

_VALID_BOOK_IDS_SQL = text(
    """
    SELECT DISTINCT pubb.book_id
    FROM project_unit_bible_books pubb
    WHERE pubb.project_unit_id = :project_unit_id
      AND pubb.book_id IN :book_ids
    """
).bindparams(bindparam("book_ids", expanding=True))

_PROJECT_BOOKS_SQL = """
    SELECT DISTINCT pubb.book_id, b.code, b.eng_display_name
    FROM project_unit_bible_books pubb
    JOIN books b ON pubb.book_id = b.id
    WHERE pubb.project_unit_id = :project_unit_id
    {book_filter}
    ORDER BY pubb.book_id
"""

_BOOK_VERSES_SQL = text(
    """
    SELECT bt.book_id, b.code, b.eng_display_name,
           bt.chapter_number, bt.verse_number, tv.content
    FROM bible_texts bt
    JOIN books b ON bt.book_id = b.id
    JOIN project_unit_bible_books pubb
      ON pubb.book_id = bt.book_id
     AND pubb.bible_id = bt.bible_id
     AND pubb.project_unit_id = :project_unit_id
    LEFT JOIN translated_verses tv
      ON tv.bible_text_id = bt.id
     AND tv.project_unit_id = :project_unit_id
    WHERE bt.book_id IN :book_ids
    ORDER BY bt.book_id, bt.chapter_number, bt.verse_number
    """
).bindparams(bindparam("book_ids", expanding=True))

_AVAILABLE_BOOKS_SQL = text(
    """
    SELECT pubb.book_id, b.code, b.eng_display_name,
           COUNT(bt.id) AS verse_count,
           COUNT(tv.id) AS translated_count
    FROM project_unit_bible_books pubb
    JOIN books b ON pubb.book_id = b.id
    JOIN bible_texts bt
      ON bt.bible_id = pubb.bible_id
     AND bt.book_id = pubb.book_id
    LEFT JOIN translated_verses tv
      ON tv.bible_text_id = bt.id
     AND tv.project_unit_id = :project_unit_id
    WHERE pubb.project_unit_id = :project_unit_id
    GROUP BY pubb.book_id, b.code, b.eng_display_name
    ORDER BY pubb.book_id
    """
)


class SqlProjectCatalog(ProjectCatalog):
    """Catalog backed by the application's translation tables."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        batch_size: int | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.batch_size = batch_size or settings.USFM_VERSE_BATCH_SIZE

    async def get_project_name(self, project_unit_id: int) -> str | None:
        with translate_storage_errors("project lookup"):
            async with self.session_factory() as session:
                result = await session.execute(_PROJECT_NAME_SQL, {"project_unit_id": project_unit_id})
                return result.scalar_one_or_none()

    async def validate_book_ids(self, project_unit_id: int, book_ids: list[int] | None) -> bool:
        if not book_ids:
            return True

        wanted = set(book_ids)
        with translate_storage_errors("book validation"):
            async with self.session_factory() as session:
                result = await session.execute(
                    _VALID_BOOK_IDS_SQL,
                    {"project_unit_id": project_unit_id, "book_ids": sorted(wanted)},
                )
                found = {row[0] for row in result}
        return found == wanted

    async def get_project_books(self, project_unit_id: int, book_ids: list[int] | None = None) -> list[BookInfo]:
        params: dict = {"project_unit_id": project_unit_id}
        if book_ids:
            stmt = text(_PROJECT_BOOKS_SQL.format(book_filter="AND pubb.book_id IN :book_ids")).bindparams(
                bindparam("book_ids", expanding=True)
            )
            params["book_ids"] = list(book_ids)
        else:
            stmt = text(_PROJECT_BOOKS_SQL.format(book_filter=""))

        with translate_storage_errors("book lookup"):
            async with self.session_factory() as session:
                result = await session.execute(stmt, params)
                return [BookInfo(book_id=row[0], book_code=row[1], book_name=row[2]) for row in result]

    async def get_book_verses(self, project_unit_id: int, book_ids: list[int]) -> dict[int, list[VerseRow]]:
        verses_by_book: dict[int, list[VerseRow]] = {}
        if not book_ids:
            return verses_by_book

        with translate_storage_errors("verse loading"):
            async with self.session_factory() as session:
                for start in range(0, len(book_ids), self.batch_size):
                    batch = list(book_ids[start:start + self.batch_size])
                    result = await session.execute(
                        _BOOK_VERSES_SQL,
                        {"project_unit_id": project_unit_id, "book_ids": batch},
                    )
                    for row in result:
                        verse = VerseRow(
                            book_id=row[0],
                            book_code=row[1],
                            book_name=row[2],
                            chapter_number=row[3],
                            verse_number=row[4],
                            translated_content=row[5],
                        )
                        verses_by_book.setdefault(verse.book_id, []).append(verse)

        logger.debug(
            "Verses loaded",
            project_unit_id=project_unit_id,
            books=len(verses_by_book),
            verses=sum(len(v) for v in verses_by_book.values()),
        )
        return verses_by_book

    async def list_available_books(self, project_unit_id: int) -> list[AvailableBook]:
        with translate_storage_errors("available books lookup"):
            async with self.session_factory() as session:
                result = await session.execute(_AVAILABLE_BOOKS_SQL, {"project_unit_id": project_unit_id})
                return [
                    AvailableBook(
                        book_id=row[0],
                        book_code=row[1],
                        book_name=row[2],
                        verse_count=int(row[3]),
                        translated_count=int(row[4]),
                    )
                    for row in result
                ]
