"""
ExportWorkflow — the orchestrator that drives one USFM export job.

Responsibilities:
    - Refuse to re-drive a job that already failed
    - Run `initialize` then `generateZip` through the StepExecutor, so a
      re-invocation after a crash resumes instead of repeating side effects
    - Map any input or producer failure to the terminal `failed` state, then
      re-raise; storage outages leave the job resumable and surface as
      StorageUnavailableError for the task layer to retry
    - Return an ExportResult built from the recorded step outputs
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from usfm_export.core.constants import ExportJobStatus, StepName
from usfm_export.db.retry import is_retryable_error, with_db_retry
from usfm_export.export.archive import ArtifactProducer, UsfmArchiveProducer
from usfm_export.export.catalog import ProjectCatalog, SqlProjectCatalog
from usfm_export.pipeline.context import ExportContext, ExportResult
from usfm_export.pipeline.errors import ExportAlreadyFailedError, StorageUnavailableError
from usfm_export.pipeline.job_store import ExportJobStore, normalize_book_ids
from usfm_export.pipeline.ledger import StepExecutor
from usfm_export.pipeline.step import ExportStep
from usfm_export.pipeline.steps.generate_zip import GenerateZipStep
from usfm_export.pipeline.steps.initialize_job import InitializeJobStep


class ExportWorkflow:
    """
    Runs the export steps for a workflow id.

    Usage::

        workflow = ExportWorkflow(store, StepExecutor(factory), catalog, producer)
        result = await workflow.run("export-7-1700000000000-a1b2c3", project_unit_id=7)

    Safe to call again with the same workflow id: completed steps replay
    from the ledger and only unfinished work runs.
    """

    def __init__(
        self,
        store: ExportJobStore,
        executor: StepExecutor,
        catalog: ProjectCatalog,
        producer: ArtifactProducer,
    ) -> None:
        self.store = store
        self.executor = executor
        self.catalog = catalog
        self.producer = producer
        self.logger = structlog.get_logger("pipeline.engine")

    @classmethod
    def from_session_factory(cls, session_factory: async_sessionmaker[AsyncSession]) -> "ExportWorkflow":
        """Wire the SQL-backed store, ledger, catalog and ZIP producer onto one database."""
        catalog = SqlProjectCatalog(session_factory)
        return cls(
            store=ExportJobStore(session_factory),
            executor=StepExecutor(session_factory),
            catalog=catalog,
            producer=UsfmArchiveProducer(catalog),
        )

    def build_steps(self) -> list[ExportStep]:
        return [
            InitializeJobStep(self.store),
            GenerateZipStep(self.store, self.catalog, self.producer),
        ]

    async def run(
        self,
        workflow_id: str,
        project_unit_id: int,
        book_ids: list[int] | None = None,
        requested_by: str | None = None,
    ) -> ExportResult:
        started_at = datetime.now(timezone.utc)

        ctx = ExportContext(
            workflow_id=workflow_id,
            project_unit_id=project_unit_id,
            book_ids=normalize_book_ids(book_ids),
            requested_by=requested_by,
        )
        log = self.logger.bind(workflow_id=workflow_id, project_unit_id=project_unit_id)

        existing = await self.store.find(workflow_id)
        if existing is not None and existing.status == ExportJobStatus.FAILED.value:
            log.warning("Export job already failed, not re-running", error=existing.error)
            raise ExportAlreadyFailedError(
                existing.error or f"Export job {workflow_id} already failed",
                workflow_id=workflow_id,
            )

        log.info("Export workflow started", book_ids=ctx.book_ids)

        # ── Run steps ─────────────────────────────────
        try:
            for step in self.build_steps():
                log.debug("Dispatching step", step_name=step.name, step_description=step.description)
                output = await self.executor.run_step(
                    workflow_id,
                    step.name,
                    lambda step=step: step.execute(ctx),
                )
                ctx.record_output(step.name, output)
        except Exception as exc:
            if is_retryable_error(exc):
                # job stays non-terminal so a redelivery can resume it
                log.warning(
                    "Export workflow interrupted by storage outage",
                    error=str(exc),
                    step_name=getattr(exc, "step_name", None),
                )
                if isinstance(exc, StorageUnavailableError):
                    raise
                raise StorageUnavailableError(
                    f"Storage unavailable: {exc}", workflow_id=workflow_id
                ) from exc
            await self.record_failure(workflow_id, exc, project_unit_id=project_unit_id)
            raise

        generated = ctx.step_outputs.get(StepName.GENERATE_ZIP.value) or {}
        result = ExportResult(
            workflow_id=workflow_id,
            filename=generated.get("filename", ""),
            file_size=int(generated.get("file_size", 0)),
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            steps=list(ctx.step_outputs),
        )

        log.info("Export workflow completed", filename=result.filename, file_size=result.file_size)
        return result

    async def record_failure(
        self,
        workflow_id: str,
        exc: Exception,
        project_unit_id: int | None = None,
    ) -> None:
        """Best-effort terminal write; the caller re-raises the original error."""
        log = self.logger.bind(workflow_id=workflow_id, project_unit_id=project_unit_id)
        log.error(
            "Export workflow failed",
            error=str(exc),
            error_type=type(exc).__name__,
            step_name=getattr(exc, "step_name", None),
        )

        try:
            await with_db_retry(lambda: self.store.mark_failed(workflow_id, str(exc)))
        except Exception as write_exc:
            log.error("Could not record export failure", error=str(write_exc))
