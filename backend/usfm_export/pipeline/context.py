"""
ExportContext — state carried through the steps of one export run.

Identity fields are fixed for the lifetime of the workflow id. The step
outputs collected here are the ledger results, so a resumed run sees the
same values a fresh run would have produced.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class ExportContext:
    """Carries all state between export steps."""

    # ─── Identity (set at init) ────────────────────────
    workflow_id: str
    project_unit_id: int
    book_ids: list[int] | None = None
    requested_by: str | None = None

    # ─── Step outputs, keyed by step name ──────────────
    step_outputs: dict[str, Any] = field(default_factory=dict)

    def record_output(self, step_name: str, output: Any) -> None:
        self.step_outputs[step_name] = output

    def to_log_dict(self) -> dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "project_unit_id": self.project_unit_id,
            "book_ids": self.book_ids,
            "requested_by": self.requested_by,
        }


@dataclass
class ExportResult:
    """Final outcome of a completed export run."""

    workflow_id: str
    filename: str
    file_size: int
    started_at: datetime | None = None
    completed_at: datetime | None = None
    steps: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "filename": self.filename,
            "file_size": self.file_size,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "steps": self.steps,
        }
