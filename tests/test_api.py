import io
from unittest.mock import MagicMock

import pytest
import pyzipper
from httpx import ASGITransport, AsyncClient

from tests.conftest import EMPTY_UNIT, GOSPEL_UNIT, UNKNOWN_UNIT
from usfm_export.main import app
from usfm_export.pipeline.errors import ProjectNotFoundError
from usfm_export.tasks.queue import ExportQueue


@pytest.fixture
def celery_app():
    return MagicMock()


@pytest.fixture
async def async_client(store, catalog, producer, celery_app):
    queue = ExportQueue(celery_app, store)
    queue.start(verify_connection=False)

    app.state.store = store
    app.state.catalog = catalog
    app.state.producer = producer
    app.state.queue = queue
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    queue.stop()
    for name in ("store", "catalog", "producer", "queue"):
        delattr(app.state, name)


async def test_health(async_client):
    response = await async_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_list_exportable_books(async_client):
    response = await async_client.get(f"/api/v1/project-units/{GOSPEL_UNIT}/usfm/books")

    assert response.status_code == 200
    body = response.json()
    assert body["projectUnitId"] == GOSPEL_UNIT
    assert [book["bookCode"] for book in body["books"]] == ["MAT", "MRK"]
    assert body["books"][0]["translatedCount"] == 2


async def test_list_books_unknown_project(async_client):
    response = await async_client.get(f"/api/v1/project-units/{UNKNOWN_UNIT}/usfm/books")
    assert response.status_code == 404


async def test_background_export_accepted(async_client, celery_app):
    response = await async_client.post(
        f"/api/v1/project-units/{GOSPEL_UNIT}/usfm/background-export",
        json={"bookIds": [41, 40]},
    )

    assert response.status_code == 202
    body = response.json()
    workflow_id = body["workflowId"]
    assert workflow_id.startswith(f"export-{GOSPEL_UNIT}-")
    assert body["statusUrl"] == f"/api/v1/usfm/jobs/{workflow_id}"
    assert celery_app.send_task.call_args.kwargs["task_id"] == workflow_id

    status = await async_client.get(body["statusUrl"])
    assert status.status_code == 200
    assert status.json()["status"] == "pending"
    assert status.json()["bookIds"] == [40, 41]
    assert status.json()["downloadUrl"] is None


async def test_background_export_without_body_exports_all_books(async_client, store):
    response = await async_client.post(f"/api/v1/project-units/{GOSPEL_UNIT}/usfm/background-export")

    assert response.status_code == 202
    job = await store.get(response.json()["workflowId"])
    assert job.book_ids is None


async def test_background_export_rejects_foreign_books(async_client, celery_app):
    response = await async_client.post(
        f"/api/v1/project-units/{GOSPEL_UNIT}/usfm/background-export",
        json={"bookIds": [42]},
    )

    assert response.status_code == 400
    celery_app.send_task.assert_not_called()


async def test_background_export_unknown_project(async_client):
    response = await async_client.post(f"/api/v1/project-units/{UNKNOWN_UNIT}/usfm/background-export", json={})
    assert response.status_code == 404


async def test_background_export_when_queue_stopped(async_client):
    app.state.queue.stop()
    response = await async_client.post(f"/api/v1/project-units/{EMPTY_UNIT}/usfm/background-export", json={})
    assert response.status_code == 503


async def test_job_status_unknown(async_client):
    response = await async_client.get("/api/v1/usfm/jobs/export-nope")
    assert response.status_code == 404


async def test_download_before_completion_is_rejected(async_client, store):
    await store.create_if_absent("wf-pending", GOSPEL_UNIT)

    response = await async_client.get("/api/v1/usfm/jobs/wf-pending/download")
    assert response.status_code == 400

    missing = await async_client.get("/api/v1/usfm/jobs/wf-nope/download")
    assert missing.status_code == 404


async def test_completed_job_status_and_download(async_client, workflow):
    await workflow.run("wf-done", GOSPEL_UNIT)

    status = await async_client.get("/api/v1/usfm/jobs/wf-done")
    body = status.json()
    assert body["status"] == "completed"
    assert body["progress"] == 100
    assert body["projectName"] == "Gospel Set"
    assert body["filename"] == "Gospel_Set.zip"
    assert body["downloadUrl"] == "/api/v1/usfm/jobs/wf-done/download"

    download = await async_client.get(body["downloadUrl"])
    assert download.status_code == 200
    assert download.headers["content-type"] == "application/zip"
    assert 'filename="Gospel_Set.zip"' in download.headers["content-disposition"]
    assert len(download.content) == body["fileSize"]
    with pyzipper.ZipFile(io.BytesIO(download.content)) as archive:
        assert archive.namelist() == ["MAT.usfm", "MRK.usfm"]


async def test_failed_job_reports_error(async_client, workflow):
    with pytest.raises(ProjectNotFoundError):
        await workflow.run("wf-failed", UNKNOWN_UNIT)

    body = (await async_client.get("/api/v1/usfm/jobs/wf-failed")).json()
    assert body["status"] == "failed"
    assert "not found" in body["error"]
    assert body["downloadUrl"] is None


async def test_download_with_non_latin_filename(async_client, store):
    await store.create_if_absent("wf-el", GOSPEL_UNIT)
    await store.mark_completed("wf-el", filename="Ευαγγέλιο.zip", file_data=b"PK\x05\x06", file_size=4)

    download = await async_client.get("/api/v1/usfm/jobs/wf-el/download")

    assert download.status_code == 200
    disposition = download.headers["content-disposition"]
    assert 'filename="export.zip"' in disposition
    assert "filename*=UTF-8''%CE%95%CF%85%CE%B1%CE%B3%CE%B3%CE%AD%CE%BB%CE%B9%CE%BF.zip" in disposition
    assert download.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    assert download.content == b"PK\x05\x06"


async def test_direct_export_streams_archive(async_client, store):
    response = await async_client.post(f"/api/v1/project-units/{GOSPEL_UNIT}/usfm", json={"bookIds": [41]})

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/zip"
    assert 'filename="Gospel_Set.zip"' in response.headers["content-disposition"]
    assert response.headers["pragma"] == "no-cache"
    with pyzipper.ZipFile(io.BytesIO(response.content)) as archive:
        assert archive.namelist() == ["MRK.usfm"]


async def test_direct_export_without_body_exports_all_books(async_client):
    response = await async_client.post(f"/api/v1/project-units/{GOSPEL_UNIT}/usfm")

    assert response.status_code == 200
    with pyzipper.ZipFile(io.BytesIO(response.content)) as archive:
        assert sorted(archive.namelist()) == ["MAT.usfm", "MRK.usfm"]


@pytest.mark.parametrize(
    ("project_unit_id", "payload", "expected"),
    [
        (UNKNOWN_UNIT, None, 404),
        (EMPTY_UNIT, None, 400),
        (GOSPEL_UNIT, {"bookIds": [40, 99]}, 400),
    ],
)
async def test_direct_export_rejections(async_client, project_unit_id, payload, expected):
    response = await async_client.post(f"/api/v1/project-units/{project_unit_id}/usfm", json=payload)
    assert response.status_code == expected
