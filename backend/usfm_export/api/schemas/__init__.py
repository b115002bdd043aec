from usfm_export.api.schemas.exports import (
    ExportRequest,
    BackgroundExportResponse,
    ExportableBook,
    ExportableBooksResponse,
    JobStatusResponse,
)

__all__ = [
    "ExportRequest",
    "BackgroundExportResponse",
    "ExportableBook",
    "ExportableBooksResponse",
    "JobStatusResponse",
]
