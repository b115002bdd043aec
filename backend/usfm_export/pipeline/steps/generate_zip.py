"""
GenerateZipStep — builds the USFM archive and stores it on the job row.

Checkpoints (each durable before the next phase starts):
    10  status=processing
    20  project name resolved
    50  archive stream opened
    80  archive assembled and named
    100 status=completed with filename, bytes and size in one write
"""

from __future__ import annotations

import re
from typing import Any

from usfm_export.core.constants import (
    ARCHIVE_EXTENSION,
    ILLEGAL_FILENAME_CHARS,
    ExportJobStatus,
    ExportProgress,
    StepName,
)
from usfm_export.core.logging import get_logger
from usfm_export.db.models.base import utcnow
from usfm_export.export.archive import ArtifactProducer
from usfm_export.export.catalog import ProjectCatalog
from usfm_export.pipeline.context import ExportContext
from usfm_export.pipeline.errors import NoExportableContentError, ProjectNotFoundError
from usfm_export.pipeline.job_store import ExportJobStore
from usfm_export.pipeline.step import ExportStep
from usfm_export.pipeline.stream import assemble

logger = get_logger(__name__)

_UNSAFE_FILENAME_RE = re.compile(r"[%s\x00-\x1f\x7f]|\s+" % re.escape(ILLEGAL_FILENAME_CHARS))

DEFAULT_ARCHIVE_NAME = "export"


def safe_filename(project_name: str | None) -> str:
    """
    Archive filename for a project display name.

    >>> safe_filename("Gospel Set")
    'Gospel_Set.zip'
    """
    stem = _UNSAFE_FILENAME_RE.sub("_", (project_name or "").strip())
    return f"{stem or DEFAULT_ARCHIVE_NAME}{ARCHIVE_EXTENSION}"


class GenerateZipStep(ExportStep):
    """Resolve the project, assemble the archive, store the artifact."""

    name = StepName.GENERATE_ZIP.value
    description = "Generate USFM ZIP archive"

    def __init__(
        self,
        store: ExportJobStore,
        catalog: ProjectCatalog,
        producer: ArtifactProducer,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.producer = producer

    async def execute(self, ctx: ExportContext) -> dict[str, Any]:
        log = logger.bind(workflow_id=ctx.workflow_id, project_unit_id=ctx.project_unit_id)

        await self.store.advance(
            ctx.workflow_id,
            ExportProgress.STARTED.value,
            status=ExportJobStatus.PROCESSING.value,
        )

        # ── Resolve project ───────────────────────────
        project_name = await self.catalog.get_project_name(ctx.project_unit_id)
        if not project_name:
            raise ProjectNotFoundError(
                f"Project not found for project unit {ctx.project_unit_id}",
                workflow_id=ctx.workflow_id,
                step_name=self.name,
            )

        await self.store.advance(ctx.workflow_id, ExportProgress.PROJECT_RESOLVED.value, project_name=project_name)
        log.info("Project resolved", project_name=project_name)

        # ── Open artifact stream ──────────────────────
        export_stream = await self.producer.open_export_stream(ctx.project_unit_id, ctx.book_ids)
        if export_stream is None:
            raise NoExportableContentError(
                "No books available for export",
                workflow_id=ctx.workflow_id,
                step_name=self.name,
                details={"book_ids": ctx.book_ids},
            )

        await self.store.advance(ctx.workflow_id, ExportProgress.STREAM_OPENED.value)

        # ── Assemble ──────────────────────────────────
        file_data = await assemble(export_stream.stream, export_stream.cleanup)
        filename = safe_filename(project_name)
        file_size = len(file_data)

        await self.store.advance(ctx.workflow_id, ExportProgress.ENCODED.value)

        # ── Store artifact ────────────────────────────
        await self.store.mark_completed(
            ctx.workflow_id,
            filename=filename,
            file_data=file_data,
            file_size=file_size,
            completed_at=utcnow(),
        )

        log.info("Export archive stored", filename=filename, file_size=file_size)
        return {"filename": filename, "file_size": file_size}
