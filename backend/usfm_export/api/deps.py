"""Shared dependencies for API routes."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from usfm_export.export.archive import ArtifactProducer
from usfm_export.export.catalog import ProjectCatalog
from usfm_export.pipeline.job_store import ExportJobStore
from usfm_export.tasks.queue import ExportQueue


def _app_state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Service not ready: {name} is not configured",
        )
    return value


def get_store(request: Request) -> ExportJobStore:
    """Job record store created in the app lifespan."""
    return _app_state(request, "store")


def get_catalog(request: Request) -> ProjectCatalog:
    """Project catalog created in the app lifespan."""
    return _app_state(request, "catalog")


def get_producer(request: Request) -> ArtifactProducer:
    return _app_state(request, "producer")


def get_queue(request: Request) -> ExportQueue:
    """Started export queue owned by the app lifespan."""
    return _app_state(request, "queue")
