"""
Domain-specific exception hierarchy for the export workflow.

All export exceptions inherit from ExportError so callers can catch
broadly or narrowly as needed.  Each exception carries structured
context (workflow ID, step name, etc.) for logging/debugging, and a
`retryable` flag the task layer uses to decide on automatic retries.
"""

from __future__ import annotations


class ExportError(Exception):
    """Base exception for all export errors."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        workflow_id: str | None = None,
        step_name: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.workflow_id = workflow_id
        self.step_name = step_name
        self.details = details or {}
        super().__init__(message)


# ─── Input errors (never retried) ─────────────────────

class ProjectNotFoundError(ExportError):
    """The project unit has no resolvable project / display name."""
    pass


class NoExportableContentError(ExportError):
    """No books qualify for export for the requested selection."""
    pass


# ─── Producer errors ──────────────────────────────────

class ArtifactStreamError(ExportError):
    """The archive producer failed while generating the byte stream."""
    pass


# ─── Storage errors ───────────────────────────────────

class StorageUnavailableError(ExportError):
    """The job store / ledger database could not be reached."""

    retryable = True


# ─── Lookup / lifecycle errors ────────────────────────

class JobNotFoundError(ExportError):
    """No job record exists for the workflow id."""
    pass


class ExportAlreadyFailedError(ExportError):
    """The workflow already reached the terminal `failed` state."""
    pass


class QueueNotStartedError(ExportError):
    """submit() was called on a queue that is not started."""
    pass
