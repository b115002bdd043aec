"""
Export job repository containing all data-access operations for the
usfm_export_jobs table.

Repository rules:
- Pure data-access logic only
- Every function receives AsyncSession explicitly
- Functions flush, but never commit
- Status writes are guarded in SQL so a row never leaves a terminal state
  and progress never moves backwards
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from usfm_export.core.constants import ACTIVE_STATUSES, TERMINAL_STATUSES, ExportJobStatus, ExportProgress
from usfm_export.db.models.export_job import ExportJob
from usfm_export.repositories import insert_ignoring_conflict

_TERMINAL = [status.value for status in TERMINAL_STATUSES]
_ACTIVE = [status.value for status in ACTIVE_STATUSES]


async def insert_if_absent(
    db: AsyncSession,
    *,
    workflow_id: str,
    project_unit_id: int,
    book_ids: list[int] | None,
    requested_by: str | None = None,
) -> bool:
    """Create a pending job row; no-op if the workflow id already exists."""
    inserted = await insert_ignoring_conflict(
        db,
        ExportJob,
        {
            "workflow_id": workflow_id,
            "project_unit_id": project_unit_id,
            "book_ids": book_ids,
            "requested_by": requested_by,
            "status": ExportJobStatus.PENDING.value,
            "progress": ExportProgress.QUEUED.value,
        },
        index_elements=["workflow_id"],
    )
    await db.flush()
    return inserted


async def get_by_workflow_id(db: AsyncSession, workflow_id: str) -> ExportJob | None:
    """Fetch a job by workflow id."""
    stmt = select(ExportJob).where(ExportJob.workflow_id == workflow_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def update_fields(db: AsyncSession, workflow_id: str, **fields: Any) -> int:
    """Plain overwrite of the given columns. Returns the number of rows touched."""
    if not fields:
        return 0
    stmt = (
        update(ExportJob)
        .where(ExportJob.workflow_id == workflow_id)
        .values(**fields)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.flush()
    return result.rowcount


async def advance(db: AsyncSession, workflow_id: str, progress: int, **fields: Any) -> int:
    """
    Write a progress checkpoint on a non-terminal job.

    Progress is only ever raised: re-running a step after a crash writes
    its early checkpoints again, and those must not pull the row back.
    """
    stmt = (
        update(ExportJob)
        .where(
            ExportJob.workflow_id == workflow_id,
            ExportJob.status.not_in(_TERMINAL),
        )
        .values(
            progress=case((ExportJob.progress < progress, progress), else_=ExportJob.progress),
            **fields,
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.flush()
    return result.rowcount


async def mark_completed(
    db: AsyncSession,
    workflow_id: str,
    *,
    filename: str,
    file_data: bytes,
    file_size: int,
    completed_at: datetime,
) -> int:
    """Store the artifact and move the job to `completed` in one UPDATE."""
    stmt = (
        update(ExportJob)
        .where(
            ExportJob.workflow_id == workflow_id,
            ExportJob.status != ExportJobStatus.FAILED.value,
        )
        .values(
            status=ExportJobStatus.COMPLETED.value,
            progress=ExportProgress.DONE.value,
            filename=filename,
            file_data=file_data,
            file_size=file_size,
            error=None,
            completed_at=completed_at,
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.flush()
    return result.rowcount


async def mark_failed(
    db: AsyncSession,
    workflow_id: str,
    *,
    error: str,
    completed_at: datetime,
) -> int:
    """Move the job to `failed`; a completed job is left untouched."""
    stmt = (
        update(ExportJob)
        .where(
            ExportJob.workflow_id == workflow_id,
            ExportJob.status != ExportJobStatus.COMPLETED.value,
        )
        .values(
            status=ExportJobStatus.FAILED.value,
            error=error,
            completed_at=completed_at,
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.flush()
    return result.rowcount


async def list_active_for_unit(db: AsyncSession, project_unit_id: int) -> list[ExportJob]:
    """Pending/processing jobs for a project unit, newest first."""
    stmt = (
        select(ExportJob)
        .where(
            ExportJob.project_unit_id == project_unit_id,
            ExportJob.status.in_(_ACTIVE),
        )
        .order_by(ExportJob.created_at.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
