import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from usfm_export.db.retry import is_retryable_error, translate_storage_errors, with_db_retry
from usfm_export.pipeline.errors import ProjectNotFoundError, StorageUnavailableError


@pytest.mark.parametrize(
    "exc",
    [
        OperationalError("SELECT 1", {}, Exception("server closed the connection unexpectedly")),
        ConnectionRefusedError("refused"),
        RuntimeError("connect ECONNREFUSED 127.0.0.1:5432"),
        RuntimeError("Connection terminated unexpectedly"),
        StorageUnavailableError("down"),
    ],
)
def test_transient_errors_are_retryable(exc):
    assert is_retryable_error(exc) is True


@pytest.mark.parametrize(
    "exc",
    [
        None,
        ValueError("bad input"),
        ProjectNotFoundError("Project not found"),
        IntegrityError("INSERT", {}, Exception("duplicate key")),
    ],
)
def test_other_errors_are_not_retryable(exc):
    assert is_retryable_error(exc) is False


async def test_with_db_retry_recovers_from_transient_failures():
    attempts = []

    async def operation():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionResetError("ECONNRESET")
        return "ok"

    assert await with_db_retry(operation, max_retries=3, base_delay=0, max_delay=0) == "ok"
    assert len(attempts) == 3


async def test_with_db_retry_gives_up_after_max_retries():
    attempts = []

    async def operation():
        attempts.append(1)
        raise ConnectionRefusedError("ECONNREFUSED")

    with pytest.raises(ConnectionRefusedError):
        await with_db_retry(operation, max_retries=2, base_delay=0, max_delay=0)
    assert len(attempts) == 2


async def test_with_db_retry_does_not_retry_permanent_errors():
    attempts = []

    async def operation():
        attempts.append(1)
        raise ValueError("bad")

    with pytest.raises(ValueError):
        await with_db_retry(operation, max_retries=5, base_delay=0)
    assert len(attempts) == 1


def test_translate_storage_errors_wraps_connection_failures():
    with pytest.raises(StorageUnavailableError, match="during advance") as info:
        with translate_storage_errors("advance", "wf-1"):
            raise OperationalError("UPDATE", {}, Exception("connection refused"))

    assert info.value.workflow_id == "wf-1"
    assert info.value.retryable is True


def test_translate_storage_errors_passes_other_errors_through():
    with pytest.raises(ValueError):
        with translate_storage_errors("advance"):
            raise ValueError("not storage")
