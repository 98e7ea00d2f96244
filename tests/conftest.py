"""
Shared fixtures: in-memory stores and Lightspeed settings.
"""
from datetime import datetime, timedelta, timezone

import pytest

from salesync.core.config import settings

from factories import ACCOUNT_ID, USER_ID
from fakes import InMemoryConnectionStore, InMemorySoldItemStore


@pytest.fixture(autouse=True)
def lightspeed_settings(monkeypatch):
    monkeypatch.setattr(settings, "lightspeed_client_id", "client-id")
    monkeypatch.setattr(settings, "lightspeed_client_secret", "client-secret")
    monkeypatch.setattr(settings, "oauth_state_secret", "state-secret")
    monkeypatch.setattr(settings, "lightspeed_redirect_uri", None)
    monkeypatch.setattr(settings, "lightspeed_api_base", "https://api.lightspeedapp.com/API/V3")
    monkeypatch.setattr(settings, "lightspeed_token_url", "https://cloud.lightspeedapp.com/oauth/access_token.php")
    return settings


@pytest.fixture
def connections():
    return InMemoryConnectionStore()


@pytest.fixture
def sold_items():
    return InMemorySoldItemStore()


@pytest.fixture
def connected(connections):
    """A freshly connected user with a token valid for an hour."""
    connections.rows[USER_ID] = {
        "user_id": USER_ID,
        "account_id": ACCOUNT_ID,
        "account_name": "Bike Shop",
        "access_token": "access-1",
        "refresh_token": "refresh-1",
        "expires_at": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    return connections
