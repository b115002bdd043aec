import pytest

from tests.conftest import EMPTY_UNIT, GOSPEL_UNIT, UNKNOWN_UNIT
from usfm_export.db.session import create_session_factory
from usfm_export.export.catalog import SqlProjectCatalog
from usfm_export.pipeline.errors import StorageUnavailableError


async def test_project_name_lookup(catalog):
    assert await catalog.get_project_name(GOSPEL_UNIT) == "Gospel Set"
    assert await catalog.get_project_name(UNKNOWN_UNIT) is None


async def test_validate_book_ids(catalog):
    assert await catalog.validate_book_ids(GOSPEL_UNIT, None) is True
    assert await catalog.validate_book_ids(GOSPEL_UNIT, [40, 41]) is True
    assert await catalog.validate_book_ids(GOSPEL_UNIT, [40, 42]) is False
    assert await catalog.validate_book_ids(EMPTY_UNIT, [40]) is False


async def test_project_books_with_and_without_selection(catalog):
    books = await catalog.get_project_books(GOSPEL_UNIT)
    assert [(b.book_id, b.book_code, b.book_name) for b in books] == [(40, "MAT", "Matthew"), (41, "MRK", "Mark")]

    selected = await catalog.get_project_books(GOSPEL_UNIT, [41])
    assert [b.book_code for b in selected] == ["MRK"]

    assert await catalog.get_project_books(EMPTY_UNIT) == []


async def test_book_verses_are_ordered_and_batched(db):
    catalog = SqlProjectCatalog(db, batch_size=1)
    verses = await catalog.get_book_verses(GOSPEL_UNIT, [40, 41])

    assert [(v.chapter_number, v.verse_number) for v in verses[40]] == [(1, 1), (1, 2), (2, 1)]
    assert verses[40][2].translated_content is None
    assert [v.translated_content for v in verses[41]] == ["The beginning of the gospel."]


async def test_list_available_books_counts_translations(catalog):
    books = await catalog.list_available_books(GOSPEL_UNIT)

    assert [b.to_dict() for b in books] == [
        {"bookId": 40, "bookCode": "MAT", "bookName": "Matthew", "verseCount": 3, "translatedCount": 2},
        {"bookId": 41, "bookCode": "MRK", "bookName": "Mark", "verseCount": 1, "translatedCount": 1},
    ]


@pytest.fixture
async def unreachable_catalog(tmp_path):
    factory, engine = create_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'catalog.db'}")
    yield SqlProjectCatalog(factory)
    await engine.dispose()


async def test_database_outage_is_reported_as_storage_unavailable(unreachable_catalog):
    with pytest.raises(StorageUnavailableError, match="project lookup"):
        await unreachable_catalog.get_project_name(GOSPEL_UNIT)

    with pytest.raises(StorageUnavailableError, match="verse loading"):
        await unreachable_catalog.get_book_verses(GOSPEL_UNIT, [40])
