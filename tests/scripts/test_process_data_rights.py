"""Tests for the data rights batch job."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.data_rights.service import DataRightsService
from src.models.data_rights_request import RequestStatus, RequestType
from src.scripts import process_data_rights as job
from tests.conftest import build_request

MODULE = "src.scripts.process_data_rights"


@pytest.fixture
def sessions():
    """Patch session_scope; each opened session is recorded."""
    opened = []

    @asynccontextmanager
    async def _scope():
        session = MagicMock(name=f"session-{len(opened)}")
        opened.append(session)
        yield session

    with patch(f"{MODULE}.session_scope", _scope):
        yield opened


@pytest.fixture
def service():
    """One AsyncMock service shared by every session."""
    instance = AsyncMock(spec=DataRightsService)
    instance.list_pending_requests.return_value = []
    instance.list_overdue_requests.return_value = []
    with patch(f"{MODULE}.DataRightsService", return_value=instance):
        yield instance


def _pending(test_user_id):
    return [
        build_request(user_id=test_user_id, request_id="ACCESS-A-000001"),
        build_request(
            user_id=test_user_id,
            request_id="ERASURE-B-000002",
            request_type=RequestType.ERASURE,
            status=RequestStatus.PROCESSING,
        ),
    ]


async def test_processes_by_type(fake_settings, sessions, service, test_user_id):
    service.list_pending_requests.return_value = _pending(test_user_id)

    report = await job.process_batch(fake_settings)

    assert report.processed == ["ACCESS-A-000001", "ERASURE-B-000002"]
    assert report.failed == []
    service.process_access_request.assert_awaited_once_with("ACCESS-A-000001")
    service.process_erasure_request.assert_awaited_once_with("ERASURE-B-000002")
    service.list_pending_requests.assert_awaited_once_with(job.PROCESSABLE_TYPES, limit=None)
    # listing, one per request, overdue report
    assert len(sessions) == 4


async def test_failure_does_not_stop_batch(fake_settings, sessions, service, test_user_id):
    service.list_pending_requests.return_value = _pending(test_user_id)
    service.process_access_request.side_effect = RuntimeError("collector exploded")

    report = await job.process_batch(fake_settings)

    assert report.failed == ["ACCESS-A-000001"]
    assert report.processed == ["ERASURE-B-000002"]


async def test_dry_run_changes_nothing(fake_settings, sessions, service, test_user_id):
    service.list_pending_requests.return_value = _pending(test_user_id)

    report = await job.process_batch(fake_settings, limit=5, dry_run=True)

    assert report.processed == []
    service.process_access_request.assert_not_awaited()
    service.process_erasure_request.assert_not_awaited()
    service.list_pending_requests.assert_awaited_once_with(job.PROCESSABLE_TYPES, limit=5)


async def test_reports_overdue(fake_settings, sessions, service, test_user_id):
    service.list_overdue_requests.return_value = [
        build_request(
            user_id=test_user_id,
            request_id="ACCESS-OLD-000003",
            submitted_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
    ]

    report = await job.process_batch(fake_settings)

    assert report.overdue == ["ACCESS-OLD-000003"]


class TestMain:
    @pytest.fixture
    def lifecycle(self, fake_settings):
        with patch(f"{MODULE}.get_settings", return_value=fake_settings), patch(
            f"{MODULE}.configure_logging"
        ), patch(f"{MODULE}.init_db") as init_db, patch(
            f"{MODULE}.close_db", new_callable=AsyncMock
        ) as close_db:
            yield init_db, close_db

    async def test_exit_code_zero(self, lifecycle, fake_settings):
        init_db, close_db = lifecycle
        with patch(f"{MODULE}.process_batch", new_callable=AsyncMock) as process_batch:
            process_batch.return_value = job.BatchReport(processed=["ACCESS-A-000001"])
            assert await job.main(["--limit", "10"]) == 0

        init_db.assert_called_once_with(fake_settings, one_shot=True)
        process_batch.assert_awaited_once_with(fake_settings, limit=10, dry_run=False)
        close_db.assert_awaited_once()

    async def test_exit_code_on_failure(self, lifecycle):
        with patch(f"{MODULE}.process_batch", new_callable=AsyncMock) as process_batch:
            process_batch.return_value = job.BatchReport(failed=["ACCESS-A-000001"])
            assert await job.main(["--dry-run"]) == 1

    async def test_db_closed_when_batch_raises(self, lifecycle):
        _, close_db = lifecycle
        with patch(f"{MODULE}.process_batch", new_callable=AsyncMock) as process_batch:
            process_batch.side_effect = ConnectionError("db down")
            with pytest.raises(ConnectionError):
                await job.main([])

        close_db.assert_awaited_once()

    def test_limit_must_be_positive(self):
        with pytest.raises(SystemExit):
            job._parse_args(["--limit", "0"])
