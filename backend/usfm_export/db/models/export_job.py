"""
ExportJob — one row per USFM export attempt.

Keyed by the workflow id, which is also the idempotency key of every
workflow step. Rows are created pending, driven forward by the export
workflow, and never deleted here (retention is handled elsewhere).
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, LargeBinary, String, Text

from usfm_export.core.constants import ExportJobStatus
from usfm_export.db.models.base import Base, JSONType, utcnow


class ExportJob(Base):
    """One row per export attempt."""

    __tablename__ = "usfm_export_jobs"

    workflow_id = Column(String(255), primary_key=True)

    # ── Export target ─────────────────────────
    project_unit_id = Column(Integer, nullable=False, index=True)
    book_ids = Column(JSONType, nullable=True)  # NULL = all books
    requested_by = Column(String(255), nullable=True)

    # ── Status / Progress ────────────────────
    status = Column(String(20), nullable=False, default=ExportJobStatus.PENDING.value, index=True)
    progress = Column(Integer, nullable=False, default=0)

    # ── Artifact ─────────────────────────────
    project_name = Column(String(255), nullable=True)
    filename = Column(String(500), nullable=True)
    file_data = Column(LargeBinary, nullable=True)
    file_size = Column(Integer, nullable=True)

    # ── Error ─────────────────────────────────
    error = Column(Text, nullable=True)

    # ── Timestamps (UTC) ─────────────────────
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<ExportJob {self.workflow_id} unit={self.project_unit_id} status={self.status} progress={self.progress}>"
