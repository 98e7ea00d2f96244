"""
Lightspeed API client
Handles OAuth (authorize URL, code exchange, refresh), signed state values
and authenticated GETs against the Retail API
"""
import hashlib
import hmac
import json
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

import httpx

from salesync.core.config import settings
from salesync.services.sync.errors import (
    LightspeedAPIError,
    OAuthError,
    OAuthStateError,
    TokenExchangeError,
    TokenRefreshError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int


# ============================================================================
# OAUTH STATE (CSRF)
# ============================================================================

def _state_signature(user_id: str, nonce: str) -> str:
    if not settings.oauth_state_secret:
        raise OAuthStateError("OAUTH_STATE_SECRET is not configured")
    message = f"{user_id}:{nonce}".encode()
    return hmac.new(settings.oauth_state_secret.encode(), message, hashlib.sha256).hexdigest()


def create_oauth_state(user_id: str) -> str:
    """Create a state value bound to the user: '<nonce>.<hmac>'."""
    nonce = secrets.token_urlsafe(16)
    return f"{nonce}.{_state_signature(user_id, nonce)}"


def verify_oauth_state(user_id: str, state: Optional[str]) -> None:
    """
    Check a callback state value.

    Raises:
        OAuthStateError: If the state is missing, malformed or was issued to another user
    """
    if not state or "." not in state:
        raise OAuthStateError("Missing or malformed OAuth state")

    nonce, signature = state.rsplit(".", 1)
    expected = _state_signature(user_id, nonce)
    if not hmac.compare_digest(signature, expected):
        logger.warning(f"OAuth state mismatch for user {user_id[:8]}...")
        raise OAuthStateError("OAuth state does not match this user")


def build_authorize_url(state: str) -> str:
    """Lightspeed consent screen URL for the connect flow."""
    params = {
        "response_type": "code",
        "client_id": settings.lightspeed_client_id or "",
        "scope": settings.lightspeed_scope,
        "state": state,
    }
    if settings.lightspeed_redirect_uri:
        params["redirect_uri"] = settings.lightspeed_redirect_uri
    return f"{settings.lightspeed_authorize_url}?{urlencode(params)}"


# ============================================================================
# TOKEN ENDPOINT
# ============================================================================

async def _post_token_request(
    http_client: httpx.AsyncClient,
    payload: Dict[str, str],
    error_cls: type
) -> TokenPair:
    if not settings.lightspeed_client_id or not settings.lightspeed_client_secret:
        raise error_cls("Lightspeed credentials not configured")

    body = {
        "client_id": settings.lightspeed_client_id,
        "client_secret": settings.lightspeed_client_secret,
        **payload,
    }

    try:
        response = await http_client.post(settings.lightspeed_token_url, json=body)
    except httpx.HTTPError as e:
        logger.error(f"Lightspeed token endpoint unreachable: {e}")
        raise error_cls(f"Token endpoint unreachable: {e}") from e

    if response.status_code >= 400:
        try:
            data = response.json()
        except json.JSONDecodeError:
            data = {}
        detail = data.get("error") or data.get("hint") or data.get("message") or response.text[:200]
        logger.error(f"Lightspeed token error ({payload.get('grant_type')}): {response.status_code} - {detail}")
        raise error_cls(f"Token request failed: {response.status_code} - {detail}")

    data = response.json()
    try:
        return TokenPair(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or payload.get("refresh_token", ""),
            expires_in=int(data.get("expires_in") or 0),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise error_cls(f"Unexpected token response: {e}") from e


async def exchange_code_for_tokens(http_client: httpx.AsyncClient, code: str) -> TokenPair:
    """
    Exchange an authorization code for an access/refresh token pair.

    Raises:
        TokenExchangeError: If Lightspeed rejects the code
    """
    logger.info("Exchanging Lightspeed authorization code for tokens")
    payload = {"code": code, "grant_type": "authorization_code"}
    if settings.lightspeed_redirect_uri:
        payload["redirect_uri"] = settings.lightspeed_redirect_uri
    return await _post_token_request(
        http_client,
        payload,
        TokenExchangeError,
    )


async def refresh_access_token(http_client: httpx.AsyncClient, refresh_token: str) -> TokenPair:
    """
    Obtain a new token pair from a refresh token.

    Raises:
        TokenRefreshError: If the refresh is rejected or the endpoint is down
    """
    logger.info("🔄 Refreshing Lightspeed access token...")
    return await _post_token_request(
        http_client,
        {"refresh_token": refresh_token, "grant_type": "refresh_token"},
        TokenRefreshError,
    )


# ============================================================================
# RETAIL API
# ============================================================================

async def lightspeed_get(
    http_client: httpx.AsyncClient,
    url: str,
    access_token: str
) -> Dict[str, Any]:
    """
    GET a Lightspeed API URL with bearer auth.

    Raises:
        UnauthorizedError: On HTTP 401 (token expired or revoked)
        LightspeedAPIError: On any other non-2xx response
    """
    headers = {
        "Authorization": f"Bearer {access_token}",
        "Accept": "application/json",
    }

    response = await http_client.get(url, headers=headers)

    bucket_level = response.headers.get("X-LS-API-Bucket-Level")
    if bucket_level:
        logger.debug(f"Lightspeed rate limit bucket: {bucket_level}")

    if response.status_code == 401:
        raise UnauthorizedError("Lightspeed rejected the access token")

    if response.status_code >= 400:
        try:
            data = response.json()
            message = data.get("message") or data.get("error") or data.get("httpMessage") or response.reason_phrase
        except json.JSONDecodeError:
            message = response.text[:200] or response.reason_phrase
        logger.error(f"❌ Lightspeed API error: {response.status_code} - {message}")
        raise LightspeedAPIError(
            response.status_code,
            str(message),
            retry_after=response.headers.get("Retry-After"),
        )

    return response.json()


async def fetch_lightspeed_account(
    http_client: httpx.AsyncClient,
    access_token: str
) -> Tuple[str, str]:
    """
    Look up the account the token belongs to.

    Returns:
        (account_id, account_name)
    """
    data = await lightspeed_get(http_client, f"{settings.lightspeed_api_base}/Account.json", access_token)

    account = data.get("Account")
    if isinstance(account, list):
        account = account[0] if account else None
    if not isinstance(account, dict) or not account.get("accountID"):
        raise OAuthError("Lightspeed returned no account for this token")

    return str(account["accountID"]), str(account.get("name") or "Lightspeed Account")
