"""
InitializeJobStep — registers the pending export job row.

Creation is an idempotent insert: when the submission queue already
registered the row, or a previous run got this far, nothing changes.
"""

from __future__ import annotations

from typing import Any

from usfm_export.core.constants import StepName
from usfm_export.core.logging import get_logger
from usfm_export.pipeline.context import ExportContext
from usfm_export.pipeline.job_store import ExportJobStore
from usfm_export.pipeline.step import ExportStep

logger = get_logger(__name__)


class InitializeJobStep(ExportStep):
    """Insert the pending job record."""

    name = StepName.INITIALIZE.value
    description = "Initialize export job record"

    def __init__(self, store: ExportJobStore) -> None:
        self.store = store

    async def execute(self, ctx: ExportContext) -> dict[str, Any]:
        logger.info("Initializing export job", **ctx.to_log_dict())

        await self.store.create_if_absent(
            ctx.workflow_id,
            ctx.project_unit_id,
            ctx.book_ids,
            requested_by=ctx.requested_by,
        )
        return {"initialized": True}
