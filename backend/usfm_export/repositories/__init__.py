"""
Repositories package — data-access layer.

Each repository file handles all DB operations for one table.
Repositories do NOT handle HTTP concerns or workflow logic beyond
basic data integrity (idempotent inserts, forward-only status guards).

Convention:
    - One file per table (export_jobs.py, workflow_steps.py)
    - All functions accept `AsyncSession` as the first argument
    - Use `flush()` internally; commit/rollback belongs to the caller
      (`ExportJobStore`, `StepExecutor`, or the `get_db` dependency)
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession


async def insert_ignoring_conflict(
    db: AsyncSession,
    model: Any,
    values: dict[str, Any],
    index_elements: list[str],
) -> bool:
    """
    INSERT a row unless one with the same key already exists.

    Uses ON CONFLICT DO NOTHING on PostgreSQL and SQLite; other dialects
    fall back to a savepoint-guarded plain INSERT. Returns True when a row
    was inserted.
    """
    dialect = db.get_bind().dialect.name

    if dialect in ("postgresql", "sqlite"):
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        else:
            from sqlalchemy.dialects.sqlite import insert

        stmt = insert(model).values(**values).on_conflict_do_nothing(index_elements=index_elements)
        result = await db.execute(stmt)
        return bool(result.rowcount)

    key = [getattr(model, name) == values[name] for name in index_elements]
    existing = await db.execute(select(model).where(*key))
    if existing.scalar_one_or_none() is not None:
        return False
    try:
        async with db.begin_nested():
            db.add(model(**values))
    except IntegrityError:
        return False
    return True
