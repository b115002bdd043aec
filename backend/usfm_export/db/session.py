"""
Async SQLAlchemy engine and session factories.

The API lifespan and the CLI own one engine each. Celery tasks call
`create_session_factory()` for a FRESH engine per task, because every task
runs its own `asyncio.run()` loop and pooled asyncpg connections cannot
cross event loops.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from usfm_export.core.config import settings
from usfm_export.db.models import Base


def create_engine(url: str | None = None, **kwargs) -> AsyncEngine:
    """Build an async engine; pool sizing only applies to server databases."""
    url = url or settings.DATABASE_URL
    options = {"echo": False, "pool_pre_ping": True}
    if not url.startswith("sqlite"):
        options.update(pool_size=20, max_overflow=10)
    options.update(kwargs)
    return create_async_engine(url, **options)


def create_session_factory(
    url: str | None = None,
    **kwargs,
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create a fresh async engine + session factory. Caller disposes the engine."""
    engine = create_engine(url, **kwargs)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return factory, engine


async def init_models(engine: AsyncEngine) -> None:
    """Create the export tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

