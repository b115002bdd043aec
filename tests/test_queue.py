import re
from unittest.mock import MagicMock

import pytest

from tests.conftest import GOSPEL_UNIT
from usfm_export.pipeline.errors import QueueNotStartedError
from usfm_export.tasks.queue import RUN_EXPORT_TASK, ExportQueue, new_workflow_id


@pytest.fixture
def celery_app():
    return MagicMock()


@pytest.fixture
def queue(celery_app, store):
    export_queue = ExportQueue(celery_app, store, queue="exports")
    export_queue.start()
    yield export_queue
    export_queue.stop()


def test_new_workflow_id_format():
    assert re.fullmatch(r"export-10-\d{13}-[0-9a-f]{6}", new_workflow_id(10))


async def test_start_checks_broker_connection(celery_app, store):
    export_queue = ExportQueue(celery_app, store)
    export_queue.start()

    celery_app.connection_for_write.assert_called_once()
    conn = celery_app.connection_for_write.return_value.__enter__.return_value
    conn.ensure_connection.assert_called_once_with(max_retries=3)
    assert export_queue.started is True


async def test_submit_requires_started_queue(celery_app, store):
    export_queue = ExportQueue(celery_app, store)

    with pytest.raises(QueueNotStartedError):
        await export_queue.submit(GOSPEL_UNIT)

    export_queue.start(verify_connection=False)
    export_queue.stop()
    with pytest.raises(QueueNotStartedError):
        await export_queue.submit(GOSPEL_UNIT)
    celery_app.send_task.assert_not_called()


async def test_submit_registers_job_and_publishes(queue, celery_app, store):
    workflow_id = await queue.submit(GOSPEL_UNIT, [41, 40], requested_by="ops")

    job = await store.get(workflow_id)
    assert job.status == "pending"
    assert job.book_ids == [40, 41]
    assert job.requested_by == "ops"

    celery_app.send_task.assert_called_once_with(
        RUN_EXPORT_TASK,
        kwargs={
            "workflow_id": workflow_id,
            "project_unit_id": GOSPEL_UNIT,
            "book_ids": [40, 41],
            "requested_by": "ops",
        },
        task_id=workflow_id,
        queue="exports",
    )


async def test_submit_reuses_active_job_for_same_selection(queue, celery_app):
    first = await queue.submit(GOSPEL_UNIT, [40, 41])
    second = await queue.submit(GOSPEL_UNIT, [41, 40])
    other = await queue.submit(GOSPEL_UNIT, [40])

    assert first == second
    assert other != first
    assert celery_app.send_task.call_count == 2


async def test_submit_after_completion_starts_new_job(queue, store):
    first = await queue.submit(GOSPEL_UNIT)
    await store.mark_completed(first, filename="a.zip", file_data=b"x", file_size=1)

    assert await queue.submit(GOSPEL_UNIT) != first


async def test_caller_supplied_workflow_id_is_republished(queue, celery_app, store):
    assert await queue.submit(GOSPEL_UNIT, workflow_id="export-fixed") == "export-fixed"
    assert await queue.submit(GOSPEL_UNIT, workflow_id="export-fixed") == "export-fixed"

    assert celery_app.send_task.call_count == 2
    assert (await store.get("export-fixed")).status == "pending"
