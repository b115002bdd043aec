"""
StepExecutor — exactly-once-in-effect execution of named workflow steps.

A workflow may be re-driven from the start after a crash or a redelivered
queue message. Before running a step the executor consults the
`workflow_steps` ledger; a step already recorded for the workflow id is
not executed again, its recorded output is returned instead.

Usage::

    executor = StepExecutor(session_factory)
    result = await executor.run_step(
        workflow_id, "initialize", lambda: init_job(workflow_id),
    )
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from usfm_export.core.logging import get_logger
from usfm_export.db.models.base import utcnow
from usfm_export.db.retry import translate_storage_errors
from usfm_export.repositories import workflow_steps as step_repository

logger = get_logger(__name__)

T = TypeVar("T")


class StepExecutor:
    """Runs step work at most once per (workflow_id, step_name) in effect."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def run_step(
        self,
        workflow_id: str,
        step_name: str,
        work: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Run `work` unless the ledger already holds a result for this step.

        `work` must return a JSON-serializable value; it is what gets replayed.
        Exceptions from `work` propagate unchanged and nothing is recorded,
        so the next invocation runs the step again.
        """
        log = logger.bind(workflow_id=workflow_id, step_name=step_name)

        recorded = await self._load(workflow_id, step_name)
        if recorded is not None:
            log.info("Step already completed, replaying recorded result")
            return recorded.output

        started_at = utcnow()
        log.info("Step started")
        result = await work()
        completed_at = utcnow()

        await self._record(workflow_id, step_name, result, started_at, completed_at)
        log.info(
            "Step completed",
            duration_ms=int((completed_at - started_at).total_seconds() * 1000),
        )
        return result

    async def completed_steps(self, workflow_id: str) -> list[str]:
        """Names of the steps recorded for a workflow, in completion order."""
        with translate_storage_errors("completed_steps", workflow_id):
            async with self.session_factory() as session:
                rows = await step_repository.list_steps(session, workflow_id)
        return [row.step_name for row in rows]

    async def _load(self, workflow_id: str, step_name: str):
        with translate_storage_errors("ledger lookup", workflow_id):
            async with self.session_factory() as session:
                return await step_repository.get_completed_step(session, workflow_id, step_name)

    async def _record(
        self,
        workflow_id: str,
        step_name: str,
        output: Any,
        started_at,
        completed_at,
    ) -> None:
        with translate_storage_errors("ledger write", workflow_id):
            async with self.session_factory() as session:
                async with session.begin():
                    inserted = await step_repository.record_completed_step(
                        session,
                        workflow_id=workflow_id,
                        step_name=step_name,
                        output=output,
                        started_at=started_at,
                        completed_at=completed_at,
                    )

        if not inserted:
            logger.warning(
                "Step was recorded concurrently by another run",
                workflow_id=workflow_id,
                step_name=step_name,
            )
