from unittest.mock import MagicMock

import httpx
import pytest

import salesync.services.sync as sync_package
from salesync.services.jobs import tasks
from salesync.services.sync import SyncResult
from salesync.services.sync.errors import LightspeedAPIError

from factories import USER_ID


@pytest.fixture
def supabase():
    return MagicMock()


@pytest.fixture
def http_client():
    return httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})))


@pytest.fixture(autouse=True)
def worker_clients(monkeypatch, supabase, http_client):
    monkeypatch.setattr(tasks, "get_sync_dependencies", lambda: (http_client, supabase))


def _updates(supabase):
    return [call.args[0] for call in supabase.table.return_value.update.call_args_list]


def test_create_sync_job_inserts_queued_row(supabase):
    job_id = tasks.create_sync_job(supabase, USER_ID)

    supabase.table.assert_called_with(tasks.SYNC_JOBS_TABLE)
    row = supabase.table.return_value.insert.call_args.args[0]
    assert row["id"] == job_id
    assert row["user_id"] == USER_ID
    assert row["status"] == "queued"


def test_get_sync_job_missing(supabase):
    query = supabase.table.return_value.select.return_value.eq.return_value.eq.return_value.limit.return_value
    query.execute.return_value.data = []

    assert tasks.get_sync_job(supabase, USER_ID, "job-1") is None


def test_successful_job_records_progress_and_result(monkeypatch, supabase, http_client):
    async def fake_sync_sales(user_id, http_client, connections, sold_items, on_progress=None, stop_event=None):
        on_progress("Fetched 3 items...")
        return SyncResult(synced=3, total=3, mode="fresh", run_id="abcd1234")

    monkeypatch.setattr(sync_package, "sync_sales", fake_sync_sales)

    result = tasks.sync_sales_task.fn(USER_ID, "job-1")

    assert result == {"synced": 3, "total": 3}
    updates = _updates(supabase)
    assert updates[0]["status"] == "running"
    assert updates[1] == {"progress_message": "Fetched 3 items..."}
    assert updates[-1]["status"] == "completed"
    assert updates[-1]["run_id"] == "abcd1234"
    assert updates[-1]["result"] == {"synced": 3, "total": 3, "mode": "fresh"}
    assert http_client.is_closed


def test_failed_job_is_marked_failed_and_reraised(monkeypatch, supabase, http_client):
    async def failing_sync_sales(*args, **kwargs):
        raise LightspeedAPIError(503, "Service Unavailable")

    monkeypatch.setattr(sync_package, "sync_sales", failing_sync_sales)

    with pytest.raises(LightspeedAPIError):
        tasks.sync_sales_task.fn(USER_ID, "job-1")

    final = _updates(supabase)[-1]
    assert final["status"] == "failed"
    assert "503" in final["error_message"]
    assert http_client.is_closed
