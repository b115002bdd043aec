"""
ExportJobStore — the job record store used by workflow steps, the
submission queue, and the query surfaces (API, CLI).

Each call runs in its own short transaction so a checkpoint is durable
the moment the call returns; a crash right after `advance(..., 50)`
leaves `progress=50` visible to pollers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from usfm_export.core.logging import get_logger
from usfm_export.db.models.base import utcnow
from usfm_export.db.models.export_job import ExportJob
from usfm_export.db.retry import translate_storage_errors
from usfm_export.pipeline.errors import JobNotFoundError
from usfm_export.repositories import export_jobs as export_job_repository

logger = get_logger(__name__)


def normalize_book_ids(book_ids: list[int] | tuple[int, ...] | set[int] | None) -> list[int] | None:
    """Sorted, de-duplicated book ids; an empty selection means all books (None)."""
    if not book_ids:
        return None
    return sorted({int(book_id) for book_id in book_ids})


class ExportJobStore:
    """Keyed-by-workflow-id access to the usfm_export_jobs table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def create_if_absent(
        self,
        workflow_id: str,
        project_unit_id: int,
        book_ids: list[int] | None = None,
        requested_by: str | None = None,
    ) -> bool:
        """Insert a pending row; returns False when the row already existed."""
        with translate_storage_errors("create_if_absent", workflow_id):
            async with self.session_factory() as session:
                async with session.begin():
                    inserted = await export_job_repository.insert_if_absent(
                        session,
                        workflow_id=workflow_id,
                        project_unit_id=project_unit_id,
                        book_ids=normalize_book_ids(book_ids),
                        requested_by=requested_by,
                    )

        logger.debug(
            "Export job registered" if inserted else "Export job already registered",
            workflow_id=workflow_id,
            project_unit_id=project_unit_id,
        )
        return inserted

    async def update_fields(self, workflow_id: str, **fields: Any) -> None:
        """Plain overwrite of job columns."""
        with translate_storage_errors("update_fields", workflow_id):
            async with self.session_factory() as session:
                async with session.begin():
                    await export_job_repository.update_fields(session, workflow_id, **fields)

    async def advance(self, workflow_id: str, progress: int, **fields: Any) -> None:
        """Forward-only progress checkpoint on a non-terminal job."""
        with translate_storage_errors("advance", workflow_id):
            async with self.session_factory() as session:
                async with session.begin():
                    touched = await export_job_repository.advance(session, workflow_id, progress, **fields)

        if not touched:
            logger.debug("Progress checkpoint skipped (job terminal or missing)", workflow_id=workflow_id, progress=progress)

    async def mark_completed(
        self,
        workflow_id: str,
        *,
        filename: str,
        file_data: bytes,
        file_size: int,
        completed_at: datetime | None = None,
    ) -> None:
        with translate_storage_errors("mark_completed", workflow_id):
            async with self.session_factory() as session:
                async with session.begin():
                    await export_job_repository.mark_completed(
                        session,
                        workflow_id,
                        filename=filename,
                        file_data=file_data,
                        file_size=file_size,
                        completed_at=completed_at or utcnow(),
                    )

    async def mark_failed(self, workflow_id: str, error: str, completed_at: datetime | None = None) -> bool:
        """Record the terminal failure; False if the row was missing or already completed."""
        with translate_storage_errors("mark_failed", workflow_id):
            async with self.session_factory() as session:
                async with session.begin():
                    touched = await export_job_repository.mark_failed(
                        session,
                        workflow_id,
                        error=error,
                        completed_at=completed_at or utcnow(),
                    )
        return bool(touched)

    async def find(self, workflow_id: str) -> ExportJob | None:
        with translate_storage_errors("find", workflow_id):
            async with self.session_factory() as session:
                return await export_job_repository.get_by_workflow_id(session, workflow_id)

    async def get(self, workflow_id: str) -> ExportJob:
        """Fetch a job or raise JobNotFoundError."""
        job = await self.find(workflow_id)
        if job is None:
            raise JobNotFoundError(f"Export job {workflow_id} not found", workflow_id=workflow_id)
        return job

    async def find_active(self, project_unit_id: int, book_ids: list[int] | None = None) -> ExportJob | None:
        """Newest pending/processing job exporting the same selection, if any."""
        wanted = normalize_book_ids(book_ids)
        with translate_storage_errors("find_active"):
            async with self.session_factory() as session:
                jobs = await export_job_repository.list_active_for_unit(session, project_unit_id)

        for job in jobs:
            if normalize_book_ids(job.book_ids) == wanted:
                return job
        return None
