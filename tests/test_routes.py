from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from main import app
from salesync.api.v1.routes import sync as sync_routes
from salesync.core.dependencies import (
    get_connection_store,
    get_http_client,
    get_sold_item_store,
    get_supabase,
)
from salesync.core.security import get_current_user_id
from salesync.middleware.rate_limit import limiter
from salesync.services.sync.oauth import create_oauth_state, verify_oauth_state

from factories import USER_ID, make_line, make_sale


class FakeLightspeedAPI:
    def __init__(self):
        self.sale_pages = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json={"access_token": "a", "refresh_token": "r", "expires_in": 3600})
        if request.url.path.endswith("/Account.json"):
            return httpx.Response(200, json={"Account": {"accountID": "42", "name": "Bike Shop"}})
        return httpx.Response(200, json=self.sale_pages.pop(0))


@pytest.fixture
def lightspeed_api():
    return FakeLightspeedAPI()


@pytest.fixture
def client(connections, sold_items, lightspeed_api):
    async def http_client_override():
        async with httpx.AsyncClient(transport=httpx.MockTransport(lightspeed_api.handler)) as http_client:
            yield http_client

    app.dependency_overrides[get_current_user_id] = lambda: USER_ID
    app.dependency_overrides[get_connection_store] = lambda: connections
    app.dependency_overrides[get_sold_item_store] = lambda: sold_items
    app.dependency_overrides[get_http_client] = http_client_override
    app.dependency_overrides[get_supabase] = lambda: MagicMock()
    limiter.reset()

    yield TestClient(app)

    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# ============================================================================
# CONNECT FLOW
# ============================================================================

def test_connect_start_returns_consent_url(client):
    response = client.get("/connect/lightspeed/start")

    assert response.status_code == 200
    body = response.json()
    assert "client_id=client-id" in body["auth_url"]
    verify_oauth_state(USER_ID, body["state"])


def test_connect_start_requires_credentials(client, lightspeed_settings, monkeypatch):
    monkeypatch.setattr(lightspeed_settings, "lightspeed_client_id", None)

    assert client.get("/connect/lightspeed/start").status_code == 400


def test_callback_rejects_forged_state(client, connections):
    response = client.post("/connect/lightspeed/callback", json={
        "code": "code",
        "state": create_oauth_state("attacker"),
    })

    assert response.status_code == 400
    assert response.json()["error_type"] == "OAuthStateError"
    assert connections.rows == {}


def test_callback_saves_connection(client, connections):
    response = client.post("/connect/lightspeed/callback", json={
        "code": "code",
        "state": create_oauth_state(USER_ID),
    })

    assert response.status_code == 200
    body = response.json()
    assert body["account_id"] == "42"
    assert body["account_name"] == "Bike Shop"
    assert body["resumable"] is False
    assert "access_token" not in body
    assert connections.rows[USER_ID]["access_token"] == "a"


def test_connection_not_found(client):
    response = client.get("/connections/lightspeed")

    assert response.status_code == 404
    assert response.json()["error_type"] == "NotConnectedError"


def test_connection_summary_shows_resumable_run(client, connected):
    connected.rows[USER_ID]["sync_cursor"] = "2024-01-01T00:00:00+00:00"

    body = client.get("/connections/lightspeed").json()

    assert body["resumable"] is True
    assert body["account_name"] == "Bike Shop"
    assert "refresh_token" not in body


def test_disconnect(client, connected):
    response = client.delete("/connections/lightspeed")

    assert response.status_code == 200
    assert USER_ID not in connected.rows


# ============================================================================
# SYNC
# ============================================================================

def test_inline_sync(client, connected, sold_items, lightspeed_api, lightspeed_settings, monkeypatch):
    monkeypatch.setattr(lightspeed_settings, "sales_page_delay_seconds", 0)
    lightspeed_api.sale_pages.append({"Sale": [
        make_sale("1", "2024-05-31T10:00:00+00:00", [make_line("11"), make_line("12")]),
        make_sale("2", "2024-05-30T10:00:00+00:00"),
    ]})

    response = client.post("/sync/sales")

    assert response.status_code == 200
    body = response.json()
    assert body["synced"] == 2
    assert body["total"] == 2
    assert body["mode"] == "fresh"
    assert body["messages"][-1] == "Sync complete! 2 items updated."
    assert len(sold_items.rows) == 2


def test_inline_sync_while_running(client, connected):
    connected.rows[USER_ID]["sync_in_progress"] = True
    connected.rows[USER_ID]["sync_lock_expires_at"] = datetime(2999, 1, 1, tzinfo=timezone.utc)

    response = client.post("/sync/sales")

    assert response.status_code == 409
    assert response.json()["error_type"] == "SyncInProgressError"


def test_inline_sync_not_connected(client):
    assert client.post("/sync/sales").status_code == 404


def test_enqueue_background_sync(client, connected, monkeypatch):
    sent = []
    monkeypatch.setattr(sync_routes, "create_sync_job", lambda supabase, user_id: "job-1")
    monkeypatch.setattr(sync_routes, "sync_sales_task", SimpleNamespace(send=lambda *args: sent.append(args)))

    response = client.post("/sync/sales/jobs")

    assert response.status_code == 200
    assert response.json() == {"job_id": "job-1", "status": "queued"}
    assert sent == [(USER_ID, "job-1")]


def test_enqueue_requires_connection(client, monkeypatch):
    sent = []
    monkeypatch.setattr(sync_routes, "sync_sales_task", SimpleNamespace(send=lambda *args: sent.append(args)))

    assert client.post("/sync/sales/jobs").status_code == 404
    assert sent == []


def test_job_status(client, monkeypatch):
    monkeypatch.setattr(sync_routes, "get_sync_job", lambda supabase, user_id, job_id: {
        "id": job_id,
        "status": "running",
        "progress_message": "Saved 400 items...",
    })

    body = client.get("/sync/jobs/job-1").json()

    assert body["job_id"] == "job-1"
    assert body["status"] == "running"
    assert body["progress_message"] == "Saved 400 items..."
    assert body["result"] is None


def test_unknown_job(client, monkeypatch):
    monkeypatch.setattr(sync_routes, "get_sync_job", lambda supabase, user_id, job_id: None)

    assert client.get("/sync/jobs/missing").status_code == 404


def test_list_sold_items_newest_first(client, sold_items):
    sold_items.rows[(USER_ID, "1")] = {"sale_line_id": "1", "sale_complete_time": "2024-05-01T10:00:00+00:00"}
    sold_items.rows[(USER_ID, "2")] = {"sale_line_id": "2", "sale_complete_time": "2024-05-03T10:00:00+00:00"}
    sold_items.rows[("someone-else", "3")] = {"sale_line_id": "3", "sale_complete_time": "2024-05-04T10:00:00+00:00"}

    body = client.get("/sales/items", params={"limit": 1}).json()

    assert body["count"] == 1
    assert body["limit"] == 1
    assert [item["sale_line_id"] for item in body["items"]] == ["2"]
