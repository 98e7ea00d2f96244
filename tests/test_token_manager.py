import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from salesync.services.sync.errors import NotConnectedError, TokenRefreshError
from salesync.services.sync.tokens import TokenManager

from factories import ACCOUNT_ID, USER_ID


def _token_client(requests, status_code=200, body=None):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(json.loads(request.content))
        return httpx.Response(status_code, json=body if body is not None else {
            "access_token": "access-2",
            "refresh_token": "refresh-2",
            "expires_in": 3600,
        })

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_valid_token_is_returned_without_refresh(connected):
    requests = []
    async with _token_client(requests) as client:
        grant = await TokenManager(connected, client).ensure_valid_token(USER_ID)

    assert grant.access_token == "access-1"
    assert grant.account_id == ACCOUNT_ID
    assert requests == []


async def test_token_inside_buffer_is_refreshed_and_persisted(connected):
    connected.rows[USER_ID]["expires_at"] = datetime.now(timezone.utc) + timedelta(minutes=4)
    requests = []

    async with _token_client(requests) as client:
        grant = await TokenManager(connected, client).ensure_valid_token(USER_ID)

    assert grant.access_token == "access-2"
    assert requests[0]["grant_type"] == "refresh_token"
    assert requests[0]["refresh_token"] == "refresh-1"
    assert requests[0]["client_id"] == "client-id"

    stored = await connected.get_connection(USER_ID)
    assert stored.access_token == "access-2"
    assert stored.refresh_token == "refresh-2"
    assert stored.expires_at > datetime.now(timezone.utc) + timedelta(minutes=50)


async def test_naive_expiry_is_treated_as_utc(connected):
    connected.rows[USER_ID]["expires_at"] = datetime.utcnow() + timedelta(hours=2)
    requests = []

    async with _token_client(requests) as client:
        grant = await TokenManager(connected, client).ensure_valid_token(USER_ID)

    assert grant.access_token == "access-1"
    assert requests == []


async def test_force_refresh_ignores_expiry(connected):
    requests = []
    async with _token_client(requests) as client:
        grant = await TokenManager(connected, client).ensure_valid_token(USER_ID, force_refresh=True)

    assert grant.access_token == "access-2"
    assert len(requests) == 1


async def test_refresh_failure_propagates_and_keeps_stored_tokens(connected):
    connected.rows[USER_ID]["expires_at"] = datetime.now(timezone.utc) - timedelta(minutes=1)
    requests = []

    async with _token_client(requests, status_code=400, body={"error": "invalid_grant"}) as client:
        with pytest.raises(TokenRefreshError, match="invalid_grant"):
            await TokenManager(connected, client).ensure_valid_token(USER_ID)

    assert connected.token_updates == []
    assert (await connected.get_connection(USER_ID)).access_token == "access-1"


async def test_missing_connection(connections):
    async with httpx.AsyncClient() as client:
        with pytest.raises(NotConnectedError):
            await TokenManager(connections, client).ensure_valid_token(USER_ID)
