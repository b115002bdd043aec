"""Shared constants and enums used across the application."""

from enum import IntEnum, StrEnum


class ExportJobStatus(StrEnum):
    """Lifecycle status of a USFM export job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({ExportJobStatus.COMPLETED, ExportJobStatus.FAILED})
ACTIVE_STATUSES = frozenset({ExportJobStatus.PENDING, ExportJobStatus.PROCESSING})


class StepStatus(StrEnum):
    """Status of a step recorded in the workflow ledger."""

    COMPLETED = "COMPLETED"


class StepName(StrEnum):
    """Names of the export workflow steps (ledger keys)."""

    INITIALIZE = "initialize"
    GENERATE_ZIP = "generateZip"


class ExportProgress(IntEnum):
    """Coarse progress checkpoints written by the generate step."""

    QUEUED = 0
    STARTED = 10
    PROJECT_RESOLVED = 20
    STREAM_OPENED = 50
    ENCODED = 80
    DONE = 100


# Characters that cannot appear in a file name on common filesystems
ILLEGAL_FILENAME_CHARS = '<>:"/\\|?*'

ARCHIVE_EXTENSION = ".zip"
USFM_EXTENSION = ".usfm"
