"""
WorkflowStep — the step idempotency ledger.

One row per completed step per workflow run. A row only exists once the
step's work has succeeded; its `output` is replayed instead of re-running
the step when the workflow is driven again with the same workflow id.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String

from usfm_export.core.constants import StepStatus
from usfm_export.db.models.base import Base, JSONType, utcnow


class WorkflowStep(Base):
    """One row per completed step within a workflow run."""

    __tablename__ = "workflow_steps"

    # ── Step identity ─────────────────────────
    workflow_id = Column(String(255), primary_key=True)
    step_name = Column(String(100), primary_key=True)

    # ── Status ────────────────────────────────
    status = Column(String(50), nullable=False, default=StepStatus.COMPLETED.value)

    # ── Recorded result ───────────────────────
    output = Column(JSONType, nullable=True)

    # ── Timing (UTC) ─────────────────────────
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    duration_ms = Column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<WorkflowStep {self.workflow_id}/{self.step_name} status={self.status}>"
