"""
ExportQueue — accepts export requests and hands them to the Celery worker.

The queue is an explicit object with a start/stop lifecycle, owned by the
FastAPI lifespan or the CLI. `submit()` registers the pending job row
before publishing, so a poller sees the job immediately, and publishes
with `task_id=workflow_id` so redeliveries and duplicates share one id.
"""

from __future__ import annotations

import asyncio
import secrets
import time

from celery import Celery

from usfm_export.core.config import settings
from usfm_export.core.logging import get_logger
from usfm_export.pipeline.errors import QueueNotStartedError
from usfm_export.pipeline.job_store import ExportJobStore, normalize_book_ids

logger = get_logger(__name__)

RUN_EXPORT_TASK = "usfm_export.tasks.export_tasks.run_usfm_export"


def new_workflow_id(project_unit_id: int) -> str:
    """`export-<project_unit_id>-<epoch ms>-<6 hex>`."""
    return f"export-{project_unit_id}-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


class ExportQueue:
    """Submission side of the export task queue."""

    def __init__(
        self,
        celery_app: Celery,
        store: ExportJobStore,
        task_name: str = RUN_EXPORT_TASK,
        queue: str | None = None,
    ) -> None:
        self.celery_app = celery_app
        self.store = store
        self.task_name = task_name
        self.queue = queue or settings.EXPORT_QUEUE_NAME
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def start(self, verify_connection: bool = True) -> None:
        """Mark the queue ready; optionally check the broker is reachable first."""
        if self._started:
            return
        if verify_connection:
            with self.celery_app.connection_for_write() as conn:
                conn.ensure_connection(max_retries=3)
        self._started = True
        logger.info("Export queue started", queue=self.queue)

    def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        logger.info("Export queue stopped", queue=self.queue)

    async def submit(
        self,
        project_unit_id: int,
        book_ids: list[int] | None = None,
        requested_by: str | None = None,
        workflow_id: str | None = None,
    ) -> str:
        """
        Enqueue an export and return its workflow id.

        A caller-supplied `workflow_id` is reused as-is. Otherwise an active
        job for the same unit and book selection is returned instead of
        starting a second one.
        """
        if not self._started:
            raise QueueNotStartedError("Export queue is not started", workflow_id=workflow_id)

        book_ids = normalize_book_ids(book_ids)
        log = logger.bind(project_unit_id=project_unit_id, book_ids=book_ids)

        if workflow_id is None:
            active = await self.store.find_active(project_unit_id, book_ids)
            if active is not None:
                log.info("Reusing active export job", workflow_id=active.workflow_id, status=active.status)
                return active.workflow_id
            workflow_id = new_workflow_id(project_unit_id)

        await self.store.create_if_absent(workflow_id, project_unit_id, book_ids, requested_by=requested_by)
        await asyncio.to_thread(self._publish, workflow_id, project_unit_id, book_ids, requested_by)

        log.info("Export job queued", workflow_id=workflow_id, queue=self.queue)
        return workflow_id

    def _publish(
        self,
        workflow_id: str,
        project_unit_id: int,
        book_ids: list[int] | None,
        requested_by: str | None,
    ) -> None:
        self.celery_app.send_task(
            self.task_name,
            kwargs={
                "workflow_id": workflow_id,
                "project_unit_id": project_unit_id,
                "book_ids": book_ids,
                "requested_by": requested_by,
            },
            task_id=workflow_id,
            queue=self.queue,
        )
