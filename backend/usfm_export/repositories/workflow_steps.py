"""Workflow step ledger repository (workflow_steps table)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from usfm_export.core.constants import StepStatus
from usfm_export.db.models.workflow_step import WorkflowStep
from usfm_export.repositories import insert_ignoring_conflict


async def get_completed_step(db: AsyncSession, workflow_id: str, step_name: str) -> WorkflowStep | None:
    """Fetch the ledger row for a completed step, if any."""
    stmt = select(WorkflowStep).where(
        WorkflowStep.workflow_id == workflow_id,
        WorkflowStep.step_name == step_name,
        WorkflowStep.status == StepStatus.COMPLETED.value,
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def record_completed_step(
    db: AsyncSession,
    *,
    workflow_id: str,
    step_name: str,
    output: Any,
    started_at: datetime,
    completed_at: datetime,
) -> bool:
    """Record a step as completed. A concurrent duplicate keeps the first row."""
    duration_ms = int((completed_at - started_at).total_seconds() * 1000)
    inserted = await insert_ignoring_conflict(
        db,
        WorkflowStep,
        {
            "workflow_id": workflow_id,
            "step_name": step_name,
            "status": StepStatus.COMPLETED.value,
            "output": output,
            "started_at": started_at,
            "completed_at": completed_at,
            "duration_ms": duration_ms,
        },
        index_elements=["workflow_id", "step_name"],
    )
    await db.flush()
    return inserted


async def list_steps(db: AsyncSession, workflow_id: str) -> list[WorkflowStep]:
    """All recorded steps for a workflow, in completion order."""
    stmt = (
        select(WorkflowStep)
        .where(WorkflowStep.workflow_id == workflow_id)
        .order_by(WorkflowStep.completed_at)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
