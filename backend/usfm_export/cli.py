"""
CLI interface for the USFM export service.

Provides commands to create the export tables, queue or run an export,
inspect a job and save its archive.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Awaitable, Callable

import click
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from usfm_export.core.config import settings
from usfm_export.core.constants import ExportJobStatus
from usfm_export.core.logging import setup_logging
from usfm_export.db.session import create_engine, create_session_factory, init_models
from usfm_export.pipeline.errors import ExportError
from usfm_export.pipeline.job_store import ExportJobStore


def _run(database_url: str | None, work: Callable[[async_sessionmaker[AsyncSession]], Awaitable[Any]]) -> Any:
    """Run `work` against a fresh engine and dispose it afterwards."""

    async def _main():
        factory, engine = create_session_factory(database_url)
        try:
            return await work(factory)
        finally:
            await engine.dispose()

    return asyncio.run(_main())


def _job_summary(job) -> dict[str, Any]:
    return {
        "workflowId": job.workflow_id,
        "projectUnitId": job.project_unit_id,
        "bookIds": job.book_ids,
        "status": job.status,
        "progress": job.progress,
        "projectName": job.project_name,
        "filename": job.filename,
        "fileSize": job.file_size,
        "error": job.error,
        "createdAt": job.created_at.isoformat() if job.created_at else None,
        "completedAt": job.completed_at.isoformat() if job.completed_at else None,
    }


@click.group()
@click.option(
    "--database-url",
    default=None,
    help="Async SQLAlchemy URL; defaults to the configured database.",
)
@click.option("--log-level", default=None, help="Log level (default from LOG_LEVEL).")
@click.pass_context
def main(ctx, database_url, log_level):
    """
    usfm-export - durable USFM export jobs.
    """
    setup_logging(log_level or settings.LOG_LEVEL, json_logs=settings.LOG_JSON)
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url


@main.command("init-db")
@click.pass_context
def init_db(ctx):
    """Create the export job and step ledger tables."""

    async def _main():
        engine = create_engine(ctx.obj["database_url"])
        try:
            await init_models(engine)
        finally:
            await engine.dispose()

    asyncio.run(_main())
    click.echo("✓ Export tables ready")


@main.command()
@click.argument("project_unit_id", type=int)
@click.option("--book-id", "book_ids", type=int, multiple=True, help="Book to export (repeatable).")
@click.option("--requested-by", default=None, help="Who requested the export.")
@click.pass_context
def submit(ctx, project_unit_id, book_ids, requested_by):
    """Queue an export for the Celery worker and print its workflow id."""
    from usfm_export.tasks import celery_app
    from usfm_export.tasks.queue import ExportQueue

    async def work(factory):
        queue = ExportQueue(celery_app, ExportJobStore(factory))
        queue.start()
        try:
            return await queue.submit(project_unit_id, list(book_ids), requested_by=requested_by)
        finally:
            queue.stop()

    try:
        workflow_id = _run(ctx.obj["database_url"], work)
    except ExportError as exc:
        click.echo(f"✗ {exc}", err=True)
        raise SystemExit(1)
    click.echo(workflow_id)


@main.command()
@click.argument("workflow_id")
@click.pass_context
def status(ctx, workflow_id):
    """Print the job record as JSON."""

    async def work(factory):
        return await ExportJobStore(factory).find(workflow_id)

    job = _run(ctx.obj["database_url"], work)
    if job is None:
        click.echo(f"✗ Export job {workflow_id} not found", err=True)
        raise SystemExit(1)
    click.echo(json.dumps(_job_summary(job), indent=2))


@main.command()
@click.argument("project_unit_id", type=int)
@click.option("--workflow-id", default=None, help="Resume or reuse this workflow id.")
@click.option("--book-id", "book_ids", type=int, multiple=True, help="Book to export (repeatable).")
@click.option("--requested-by", default=None, help="Who requested the export.")
@click.pass_context
def run(ctx, project_unit_id, workflow_id, book_ids, requested_by):
    """Run the export workflow inline, without Celery."""
    from usfm_export.pipeline.engine import ExportWorkflow
    from usfm_export.tasks.queue import new_workflow_id

    workflow_id = workflow_id or new_workflow_id(project_unit_id)

    async def work(factory):
        workflow = ExportWorkflow.from_session_factory(factory)
        return await workflow.run(
            workflow_id,
            project_unit_id,
            book_ids=list(book_ids) or None,
            requested_by=requested_by,
        )

    try:
        result = _run(ctx.obj["database_url"], work)
    except ExportError as exc:
        click.echo(f"✗ Export {workflow_id} failed: {exc}", err=True)
        raise SystemExit(1)
    click.echo(json.dumps(result.to_dict(), indent=2))


@main.command()
@click.argument("workflow_id")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Target file (default: the job's filename in the current directory).",
)
@click.pass_context
def download(ctx, workflow_id, output):
    """Save a completed job's archive to disk."""

    async def work(factory):
        return await ExportJobStore(factory).find(workflow_id)

    job = _run(ctx.obj["database_url"], work)
    if job is None:
        click.echo(f"✗ Export job {workflow_id} not found", err=True)
        raise SystemExit(1)
    if job.status != ExportJobStatus.COMPLETED.value or not job.file_data:
        click.echo(f"✗ Export is not ready (status: {job.status})", err=True)
        raise SystemExit(1)

    target = output or Path(job.filename)
    target.write_bytes(bytes(job.file_data))
    click.echo(f"✓ Wrote {job.file_size} bytes to {target}")


if __name__ == "__main__":
    main()
