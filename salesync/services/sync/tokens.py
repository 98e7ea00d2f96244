"""
Access token management
Guarantees a usable Lightspeed access token before every API call
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import httpx

from salesync.core.config import settings
from salesync.services.sync.errors import NotConnectedError
from salesync.services.sync.oauth import refresh_access_token
from salesync.services.sync.ports import ConnectionStorePort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessGrant:
    access_token: str
    account_id: str


class TokenManager:
    """
    Hands out valid access tokens for a user's Lightspeed account.

    Tokens within the safety buffer of their expiry are refreshed and the new
    pair is persisted before being returned. Refresh failures propagate: a
    stale token is never returned in place of a fresh one.
    """

    def __init__(
        self,
        store: ConnectionStorePort,
        http_client: httpx.AsyncClient,
        refresh_buffer: Optional[timedelta] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._store = store
        self._http_client = http_client
        self._buffer = refresh_buffer if refresh_buffer is not None else timedelta(
            seconds=settings.token_refresh_buffer_seconds
        )
        self._clock = clock

    async def ensure_valid_token(self, user_id: str, force_refresh: bool = False) -> AccessGrant:
        """
        Return a valid access token for the user.

        Args:
            user_id: Owner of the connection
            force_refresh: Refresh even if the stored token looks valid
                (used after the API answered 401)

        Raises:
            NotConnectedError: If the user has no connection
            TokenRefreshError: If the refresh is rejected
        """
        connection = await self._store.get_connection(user_id)
        if connection is None:
            raise NotConnectedError(user_id)

        expires_at = connection.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        if not force_refresh and expires_at - self._buffer > self._clock():
            return AccessGrant(connection.access_token, connection.account_id)

        refreshed = await refresh_access_token(self._http_client, connection.refresh_token)
        await self._store.update_tokens(
            user_id,
            refreshed.access_token,
            refreshed.refresh_token,
            refreshed.expires_in,
        )
        logger.info(f"✅ Refreshed Lightspeed token for user {user_id}")

        return AccessGrant(refreshed.access_token, connection.account_id)
