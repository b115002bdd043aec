"""
USFM export endpoints — exportable books, direct and background export,
job status and artifact download.
"""

from __future__ import annotations

from typing import AsyncIterator
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import StreamingResponse

from usfm_export.api.deps import get_catalog, get_producer, get_queue, get_store
from usfm_export.api.schemas.exports import (
    BackgroundExportResponse,
    ExportableBook,
    ExportableBooksResponse,
    ExportRequest,
    JobStatusResponse,
)
from usfm_export.core.config import settings
from usfm_export.core.constants import ARCHIVE_EXTENSION, ExportJobStatus
from usfm_export.core.logging import get_logger
from usfm_export.export.archive import ArtifactProducer, ExportStream
from usfm_export.export.catalog import ProjectCatalog
from usfm_export.pipeline.errors import QueueNotStartedError
from usfm_export.pipeline.job_store import ExportJobStore, normalize_book_ids
from usfm_export.pipeline.steps.generate_zip import DEFAULT_ARCHIVE_NAME, safe_filename
from usfm_export.tasks.queue import ExportQueue

logger = get_logger(__name__)

router = APIRouter(tags=["USFM Export"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _job_url(workflow_id: str, suffix: str = "") -> str:
    return f"{settings.API_PREFIX}/usfm/jobs/{workflow_id}{suffix}"


def _attachment_headers(filename: str) -> dict[str, str]:
    """
    Download headers for `filename`.

    Header values go out as latin-1, so non-ASCII names travel in the
    RFC 5987 `filename*` parameter with an ASCII `filename` fallback.
    """
    fallback = filename.encode("ascii", "ignore").decode("ascii").replace('"', "_").replace("\\", "_")
    if not fallback.removesuffix(ARCHIVE_EXTENSION).strip("_ "):
        fallback = f"{DEFAULT_ARCHIVE_NAME}{ARCHIVE_EXTENSION}"

    disposition = f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"
    return {"Content-Disposition": disposition, **NO_CACHE_HEADERS}


async def _require_project(catalog: ProjectCatalog, project_unit_id: int) -> str:
    project_name = await catalog.get_project_name(project_unit_id)
    if not project_name:
        logger.warning("Project not found for project unit", project_unit_id=project_unit_id)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project_name


async def _require_valid_books(catalog: ProjectCatalog, project_unit_id: int, book_ids: list[int] | None) -> None:
    if not await catalog.validate_book_ids(project_unit_id, book_ids):
        logger.warning("Invalid book IDs for export", project_unit_id=project_unit_id, book_ids=book_ids)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="One or more book IDs are not part of this project unit",
        )


# ─── Exportable books ─────────────────────────────────────
@router.get("/project-units/{project_unit_id}/usfm/books", response_model=ExportableBooksResponse)
async def list_exportable_books(
    project_unit_id: int,
    catalog: ProjectCatalog = Depends(get_catalog),
):
    """Books of a project unit with verse and translation counts."""
    await _require_project(catalog, project_unit_id)

    books = await catalog.list_available_books(project_unit_id)
    return ExportableBooksResponse(
        project_unit_id=project_unit_id,
        books=[ExportableBook(**book.to_dict()) for book in books],
    )


# ─── Direct export ────────────────────────────────────────
@router.post("/project-units/{project_unit_id}/usfm")
async def export_usfm(
    project_unit_id: int,
    body: ExportRequest | None = None,
    catalog: ProjectCatalog = Depends(get_catalog),
    producer: ArtifactProducer = Depends(get_producer),
):
    """
    Stream the USFM archive in the response instead of queueing a job.

    Nothing is persisted; the archive is released when the response ends,
    fails, or the client disconnects.
    """
    book_ids = normalize_book_ids(body.book_ids if body else None)

    await _require_valid_books(catalog, project_unit_id, book_ids)
    project_name = await _require_project(catalog, project_unit_id)

    export_stream = await producer.open_export_stream(project_unit_id, book_ids)
    if export_stream is None:
        logger.warning("No books available for export", project_unit_id=project_unit_id, book_ids=book_ids)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No books available for export")

    return StreamingResponse(
        _stream_archive(export_stream, project_unit_id, book_ids),
        media_type="application/zip",
        headers=_attachment_headers(safe_filename(project_name)),
    )


async def _stream_archive(
    export_stream: ExportStream,
    project_unit_id: int,
    book_ids: list[int] | None,
) -> AsyncIterator[bytes]:
    log = logger.bind(project_unit_id=project_unit_id, book_ids=book_ids)
    try:
        async for chunk in export_stream.stream:
            yield chunk
        log.info("USFM export completed successfully")
    except Exception as exc:
        log.error("Error writing stream chunks", error=str(exc))
        raise
    finally:
        export_stream.cleanup()


# ─── Background export ────────────────────────────────────
@router.post(
    "/project-units/{project_unit_id}/usfm/background-export",
    response_model=BackgroundExportResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_background_export(
    project_unit_id: int,
    body: ExportRequest | None = None,
    catalog: ProjectCatalog = Depends(get_catalog),
    queue: ExportQueue = Depends(get_queue),
):
    """
    Queue a USFM export.

    1. Checks the project exists and the requested books belong to it
    2. Registers the pending job and publishes it to the export worker
    3. Returns the workflow id and the URL to poll
    """
    book_ids = normalize_book_ids(body.book_ids if body else None)

    await _require_project(catalog, project_unit_id)
    await _require_valid_books(catalog, project_unit_id, book_ids)

    try:
        workflow_id = await queue.submit(project_unit_id, book_ids)
    except QueueNotStartedError as exc:
        logger.error("Export queue unavailable", project_unit_id=project_unit_id, error=str(exc))
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return BackgroundExportResponse(workflow_id=workflow_id, status_url=_job_url(workflow_id))


# ─── Job status ───────────────────────────────────────────
@router.get("/usfm/jobs/{workflow_id}", response_model=JobStatusResponse)
async def get_export_job(
    workflow_id: str,
    store: ExportJobStore = Depends(get_store),
):
    """Current status and progress of an export job."""
    job = await store.find(workflow_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Export job not found")

    completed = job.status == ExportJobStatus.COMPLETED.value
    return JobStatusResponse(
        workflow_id=job.workflow_id,
        project_unit_id=job.project_unit_id,
        book_ids=job.book_ids,
        status=job.status,
        progress=job.progress,
        project_name=job.project_name,
        filename=job.filename,
        file_size=job.file_size,
        error=job.error,
        created_at=job.created_at,
        completed_at=job.completed_at,
        download_url=_job_url(workflow_id, "/download") if completed else None,
    )


# ─── Download ─────────────────────────────────────────────
@router.get("/usfm/jobs/{workflow_id}/download")
async def download_export(
    workflow_id: str,
    store: ExportJobStore = Depends(get_store),
):
    """Return the finished ZIP archive."""
    job = await store.find(workflow_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Export job not found")

    if job.status != ExportJobStatus.COMPLETED.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Export is not ready (status: {job.status})",
        )

    if not job.file_data:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Export file not found")

    return Response(
        content=bytes(job.file_data),
        media_type="application/zip",
        headers=_attachment_headers(job.filename or f"{DEFAULT_ARCHIVE_NAME}{ARCHIVE_EXTENSION}"),
    )
