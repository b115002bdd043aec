"""Shared fixtures: in-memory SQLite database, seeded catalog tables, stores."""

from __future__ import annotations

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.pool import StaticPool

from usfm_export.core.logging import setup_logging
from usfm_export.db.session import create_session_factory, init_models
from usfm_export.export.archive import UsfmArchiveProducer
from usfm_export.export.catalog import SqlProjectCatalog
from usfm_export.pipeline.engine import ExportWorkflow
from usfm_export.pipeline.job_store import ExportJobStore
from usfm_export.pipeline.ledger import StepExecutor

# Project units used across the suite
GOSPEL_UNIT = 10        # "Gospel Set": Matthew + Mark, with translations
EMPTY_UNIT = 20         # project exists, no books assigned
UNKNOWN_UNIT = 999      # no project at all

CATALOG_DDL = [
    "CREATE TABLE projects (id INTEGER PRIMARY KEY, name TEXT NOT NULL)",
    "CREATE TABLE project_units (id INTEGER PRIMARY KEY, project_id INTEGER NOT NULL)",
    "CREATE TABLE books (id INTEGER PRIMARY KEY, code TEXT NOT NULL, eng_display_name TEXT NOT NULL)",
    """
    CREATE TABLE project_unit_bible_books (
        project_unit_id INTEGER NOT NULL,
        bible_id INTEGER NOT NULL,
        book_id INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE bible_texts (
        id INTEGER PRIMARY KEY,
        bible_id INTEGER NOT NULL,
        book_id INTEGER NOT NULL,
        chapter_number INTEGER NOT NULL,
        verse_number INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE translated_verses (
        id INTEGER PRIMARY KEY,
        project_unit_id INTEGER NOT NULL,
        bible_text_id INTEGER NOT NULL,
        content TEXT
    )
    """,
]

CATALOG_SEED = [
    "INSERT INTO projects (id, name) VALUES (1, 'Gospel Set'), (2, 'Empty Project')",
    "INSERT INTO project_units (id, project_id) VALUES (10, 1), (20, 2)",
    "INSERT INTO books (id, code, eng_display_name) VALUES (40, 'MAT', 'Matthew'), (41, 'MRK', 'Mark'), (42, 'LUK', 'Luke')",
    "INSERT INTO project_unit_bible_books (project_unit_id, bible_id, book_id) VALUES (10, 1, 40), (10, 1, 41)",
    """
    INSERT INTO bible_texts (id, bible_id, book_id, chapter_number, verse_number) VALUES
        (1, 1, 40, 1, 1),
        (2, 1, 40, 1, 2),
        (3, 1, 40, 2, 1),
        (4, 1, 41, 1, 1),
        (5, 1, 42, 1, 1)
    """,
    """
    INSERT INTO translated_verses (id, project_unit_id, bible_text_id, content) VALUES
        (1, 10, 1, 'The book of the genealogy of Jesus Christ.'),
        (2, 10, 2, 'Abraham was the father of Isaac.'),
        (3, 10, 4, 'The beginning of the gospel.')
    """,
]


async def seed_catalog(engine: AsyncEngine) -> None:
    """Create and fill the translation tables the catalog reads."""
    async with engine.begin() as conn:
        for statement in CATALOG_DDL + CATALOG_SEED:
            await conn.execute(text(statement))


@pytest.fixture(autouse=True, scope="session")
def _configure_logging():
    """Route logs to the captured stderr once, before any command swaps streams."""
    setup_logging("WARNING")


@pytest.fixture
async def db():
    """Fresh in-memory database per test: export tables plus seeded catalog."""
    factory, engine = create_session_factory(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_models(engine)
    await seed_catalog(engine)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture
def store(db) -> ExportJobStore:
    return ExportJobStore(db)


@pytest.fixture
def executor(db) -> StepExecutor:
    return StepExecutor(db)


@pytest.fixture
def catalog(db) -> SqlProjectCatalog:
    return SqlProjectCatalog(db)


@pytest.fixture
def producer(catalog) -> UsfmArchiveProducer:
    return UsfmArchiveProducer(catalog)


@pytest.fixture
def workflow(store, executor, catalog, producer) -> ExportWorkflow:
    return ExportWorkflow(store, executor, catalog, producer)
