"""
Celery tasks — USFM export workflow.

Wires the ExportWorkflow into the Celery task system. The task id is the
workflow id, and messages are acknowledged late, so a worker crash leads
to redelivery; the workflow resumes from its step ledger.
"""

import asyncio

import structlog
from celery.utils.time import get_exponential_backoff_interval

from usfm_export.core.config import settings
from usfm_export.db.session import create_session_factory
from usfm_export.pipeline.context import ExportResult
from usfm_export.pipeline.engine import ExportWorkflow
from usfm_export.pipeline.errors import ExportAlreadyFailedError, StorageUnavailableError
from usfm_export.tasks import celery_app
from usfm_export.tasks.queue import RUN_EXPORT_TASK

logger = structlog.get_logger("tasks.export")


async def _run_export(
    workflow_id: str,
    project_unit_id: int,
    book_ids: list[int] | None,
    requested_by: str | None,
) -> ExportResult:
    """Drive one workflow on a fresh engine (each task owns its event loop)."""
    factory, engine = create_session_factory()
    try:
        workflow = ExportWorkflow.from_session_factory(factory)
        return await workflow.run(
            workflow_id,
            project_unit_id,
            book_ids=book_ids,
            requested_by=requested_by,
        )
    finally:
        await engine.dispose()


async def _fail_export(workflow_id: str, project_unit_id: int, exc: Exception) -> None:
    """Write the terminal `failed` state once storage retries are exhausted."""
    factory, engine = create_session_factory()
    try:
        workflow = ExportWorkflow.from_session_factory(factory)
        await workflow.record_failure(workflow_id, exc, project_unit_id=project_unit_id)
    finally:
        await engine.dispose()


@celery_app.task(
    bind=True,
    name=RUN_EXPORT_TASK,
    max_retries=settings.EXPORT_TASK_MAX_RETRIES,
)
def run_usfm_export(
    self,
    workflow_id: str,
    project_unit_id: int,
    book_ids: list[int] | None = None,
    requested_by: str | None = None,
):
    """
    Run the export workflow for `workflow_id`.

    Storage outages are retried with exponential backoff and leave the job
    resumable; once retries run out the job is marked `failed`. Input
    errors (unknown project, nothing to export) leave the job `failed` and
    fail the task. A redelivered message for an already-failed job is a
    no-op.
    """
    task_log = logger.bind(
        task_id=self.request.id,
        workflow_id=workflow_id,
        project_unit_id=project_unit_id,
        retries=self.request.retries,
    )
    task_log.info("Export task started")

    try:
        result = asyncio.run(_run_export(workflow_id, project_unit_id, book_ids, requested_by))
    except ExportAlreadyFailedError as exc:
        task_log.warning("Export job already failed, skipping", error=str(exc))
        return {"workflow_id": workflow_id, "status": "failed", "error": str(exc)}
    except StorageUnavailableError as exc:
        if self.request.retries >= self.max_retries:
            task_log.error("Export retries exhausted, marking job failed", error=str(exc))
            asyncio.run(_fail_export(workflow_id, project_unit_id, exc))
            raise

        countdown = get_exponential_backoff_interval(
            factor=1,
            retries=self.request.retries,
            maximum=settings.EXPORT_TASK_RETRY_BACKOFF_MAX,
            full_jitter=True,
        )
        task_log.warning("Storage unavailable, retrying export", error=str(exc), countdown=countdown)
        raise self.retry(exc=exc, countdown=countdown)

    task_log.info("Export task finished", filename=result.filename, file_size=result.file_size)
    return {"status": "completed", **result.to_dict()}
