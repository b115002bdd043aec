"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from usfm_export.api.v1 import exports
from usfm_export.core.config import settings
from usfm_export.core.logging import get_logger, setup_logging
from usfm_export.db.session import create_session_factory
from usfm_export.export.archive import UsfmArchiveProducer
from usfm_export.export.catalog import SqlProjectCatalog
from usfm_export.pipeline.job_store import ExportJobStore
from usfm_export.tasks import celery_app
from usfm_export.tasks.queue import ExportQueue


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle hooks."""
    setup_logging(
        "DEBUG" if settings.APP_ENV == "development" else settings.LOG_LEVEL,
        json_logs=settings.LOG_JSON,
    )
    logger = get_logger("startup")
    logger.info("Application starting", env=settings.APP_ENV)

    session_factory, engine = create_session_factory()
    store = ExportJobStore(session_factory)
    queue = ExportQueue(celery_app, store)

    app.state.store = store
    catalog = SqlProjectCatalog(session_factory)
    app.state.catalog = catalog
    app.state.producer = UsfmArchiveProducer(catalog)
    app.state.queue = queue

    try:
        queue.start()
    except Exception as exc:
        # Status and download stay available; submissions answer 503
        logger.error("Export queue failed to start", error=str(exc))

    yield

    logger.info("Application shutting down")
    queue.stop()
    await engine.dispose()


app = FastAPI(
    title="USFM Export API",
    description="Durable background export of translated books as USFM archives",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(exports.router, prefix=settings.API_PREFIX)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Public health-check endpoint."""
    return {"status": "ok", "env": settings.APP_ENV}
