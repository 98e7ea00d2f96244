"""
OAuth Routes
Connects a user's Lightspeed Retail account

SECURITY:
- Rate limited to prevent OAuth abuse
- User authentication required
- State is HMAC-bound to the user (CSRF)
"""
import logging
import httpx
from fastapi import APIRouter, Depends, HTTPException, Request

from salesync.core.config import settings
from salesync.core.security import get_current_user_id
from salesync.core.dependencies import get_connection_store, get_http_client
from salesync.models.schemas import ConnectionSummary, ConnectStartResponse, LightspeedOAuthCallback
from salesync.services.sync.database import ConnectionStore
from salesync.services.sync.errors import NotConnectedError
from salesync.services.sync.oauth import (
    build_authorize_url,
    create_oauth_state,
    exchange_code_for_tokens,
    fetch_lightspeed_account,
    verify_oauth_state,
)
from salesync.middleware.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["oauth"])


@router.get("/connect/lightspeed/start", response_model=ConnectStartResponse)
@limiter.limit("20/hour")
async def connect_start(
    request: Request,  # Required for rate limiting
    user_id: str = Depends(get_current_user_id)
):
    """
    Build the Lightspeed consent URL.

    Flow:
    1. User clicks "Connect Lightspeed"
    2. Frontend calls this endpoint and redirects to auth_url
    3. Lightspeed redirects back to the UI with ?code=&state=
    4. UI posts both to /connect/lightspeed/callback
    """
    if not settings.lightspeed_client_id or not settings.lightspeed_client_secret:
        raise HTTPException(status_code=400, detail="Lightspeed provider not configured")

    state = create_oauth_state(user_id)
    auth_url = build_authorize_url(state)

    logger.info(f"[OAUTH_START] Lightspeed consent URL issued for user {user_id}")
    return ConnectStartResponse(auth_url=auth_url, state=state)


@router.post("/connect/lightspeed/callback", response_model=ConnectionSummary)
@limiter.limit("20/hour")
async def connect_callback(
    request: Request,
    payload: LightspeedOAuthCallback,
    user_id: str = Depends(get_current_user_id),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    connections: ConnectionStore = Depends(get_connection_store)
):
    """
    Finish the OAuth flow: verify state, exchange the code, look up the
    account and store the connection.

    Reconnecting replaces the tokens but keeps sync bookkeeping.
    """
    verify_oauth_state(user_id, payload.state)

    tokens = await exchange_code_for_tokens(http_client, payload.code)
    account_id, account_name = await fetch_lightspeed_account(http_client, tokens.access_token)

    await connections.save_connection(
        user_id,
        account_id=account_id,
        account_name=account_name,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
    )

    logger.info(f"✅ Lightspeed account {account_id} ({account_name}) connected for user {user_id}")

    return await _connection_summary(connections, user_id)


@router.get("/connections/lightspeed", response_model=ConnectionSummary)
async def get_lightspeed_connection(
    user_id: str = Depends(get_current_user_id),
    connections: ConnectionStore = Depends(get_connection_store)
):
    """Connection status for the UI (no tokens)."""
    return await _connection_summary(connections, user_id)


@router.delete("/connections/lightspeed")
async def disconnect_lightspeed(
    user_id: str = Depends(get_current_user_id),
    connections: ConnectionStore = Depends(get_connection_store)
):
    """Forget the stored tokens. Synced sold items are kept."""
    await connections.disconnect(user_id)
    logger.info(f"🔌 Lightspeed disconnected for user {user_id}")
    return {"status": "disconnected"}


async def _connection_summary(connections: ConnectionStore, user_id: str) -> ConnectionSummary:
    connection = await connections.get_connection(user_id)
    if connection is None:
        raise NotConnectedError(user_id)

    return ConnectionSummary(
        account_id=connection.account_id,
        account_name=connection.account_name,
        connected_at=connection.connected_at,
        last_sales_sync=connection.last_sales_sync,
        sync_in_progress=bool(connection.sync_in_progress),
        resumable=connection.sync_cursor is not None,
    )
