"""USFM text rendering for one book's verse rows."""

from __future__ import annotations

from typing import Iterable, Iterator

from usfm_export.export.catalog import VerseRow


def render_book(verses: Iterable[VerseRow]) -> Iterator[str]:
    r"""
    Yield the USFM text of a book in chunks.

    Emits the ``\id``, ``\h`` and ``\mt`` headers from the first verse,
    a ``\c N`` + ``\p`` pair whenever the chapter changes, one ``\v N text``
    line per verse (untranslated verses get an empty text), and a trailing
    blank line. No verses, no output.
    """
    current_chapter: int | None = None
    started = False

    for verse in verses:
        if not started:
            yield f"\\id {verse.book_code}\n"
            yield f"\\h {verse.book_name}\n"
            yield f"\\mt {verse.book_name}\n"
            started = True

        if verse.chapter_number != current_chapter:
            yield f"\\c {verse.chapter_number}\n\\p\n"
            current_chapter = verse.chapter_number

        yield f"\\v {verse.verse_number} {verse.translated_content or ''}\n"

    if started:
        yield "\n"


def render_book_text(verses: Iterable[VerseRow]) -> str:
    return "".join(render_book(verses))
