"""Storage ports consumed by the sales sync engine."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from salesync.models.schemas.sales import SoldItem
from salesync.services.sync.checkpoint import Connection


class ConnectionStorePort(Protocol):
    """Per-user Lightspeed connection + sync checkpoint."""

    async def get_connection(self, user_id: str) -> Optional[Connection]:
        """Return the stored connection, or None when the user never connected."""

    async def save_connection(
        self,
        user_id: str,
        account_id: str,
        account_name: str,
        access_token: str,
        refresh_token: str,
        expires_in: int,
    ) -> None:
        """Create or update the connection after an OAuth handshake."""

    async def update_tokens(
        self,
        user_id: str,
        access_token: str,
        refresh_token: str,
        expires_in: int,
    ) -> None:
        """Persist a refreshed token pair and its expiry."""

    async def update_sync_cursor(
        self,
        user_id: str,
        cursor: str,
        sync_started_at: Optional[datetime] = None,
    ) -> None:
        """Checkpoint the oldest updatetime reached by a historical run."""

    async def complete_sync_run(self, user_id: str, sync_started_at: datetime) -> None:
        """Clear the cursor and stamp last_sales_sync with the run start."""

    async def disconnect(self, user_id: str) -> None:
        """Delete the connection."""

    async def acquire_sync_lock(self, user_id: str, ttl_seconds: int) -> bool:
        """Take the run-in-progress lease; False when another run holds it."""

    async def release_sync_lock(self, user_id: str) -> None:
        """Drop the run-in-progress lease."""


class SoldItemStorePort(Protocol):
    """Sold-item rows keyed by (user_id, sale_line_id)."""

    async def commit_batch(self, user_id: str, rows: List[Dict[str, Any]]) -> None:
        """Upsert all rows as one atomic write."""

    async def load_sold_items(self, user_id: str, limit: int = 500, offset: int = 0) -> List[SoldItem]:
        """Stored rows, newest completed sale first."""


__all__ = ["ConnectionStorePort", "SoldItemStorePort"]
