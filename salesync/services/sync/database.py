"""
Database helpers for the Lightspeed sales sync
Handles the per-user connection row (tokens + checkpoint + run lease)
and sold-item upserts, all through the Supabase client
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from supabase import Client

from salesync.models.schemas.sales import SoldItem
from salesync.services.sync.checkpoint import Connection

logger = logging.getLogger(__name__)

CONNECTIONS_TABLE = "lightspeed_connections"
SOLD_ITEMS_TABLE = "lightspeed_sold_items"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _expiry(expires_in: int) -> str:
    return (_utcnow() + timedelta(seconds=expires_in)).isoformat()


# ============================================================================
# CONNECTION MANAGEMENT
# ============================================================================

class ConnectionStore:
    """
    Lightspeed connection row, one per user.

    save_connection upserts the full row. Every later write is an UPDATE of
    only the columns being changed, so token refreshes never clobber the
    checkpoint and checkpoints never clobber tokens.
    """

    def __init__(self, supabase: Client):
        self._supabase = supabase

    def _update(self, user_id: str, fields: Dict[str, Any]) -> None:
        """Change only the given columns of the existing row."""
        payload = {**fields, "updated_at": _utcnow().isoformat()}
        self._supabase.table(CONNECTIONS_TABLE)\
            .update(payload)\
            .eq("user_id", user_id)\
            .execute()

    async def get_connection(self, user_id: str) -> Optional[Connection]:
        """
        Get the Lightspeed connection for a user.

        Returns:
            Connection if the user has completed the OAuth flow, None otherwise
        """
        result = self._supabase.table(CONNECTIONS_TABLE)\
            .select("*")\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()

        if not result.data:
            return None
        return Connection(**result.data[0])

    async def save_connection(
        self,
        user_id: str,
        account_id: str,
        account_name: str,
        access_token: str,
        refresh_token: str,
        expires_in: int
    ) -> None:
        """
        Save or update the connection after the OAuth callback.

        The upsert carries every NOT NULL column so it can create the row.
        Switching to a different Lightspeed account drops the old account's
        checkpoint so the new one starts with a full historical sync.
        """
        logger.info(f"[SAVE_CONNECTION] user_id={user_id}, account_id={account_id}")
        now = _utcnow().isoformat()
        payload: Dict[str, Any] = {
            "user_id": user_id,
            "account_id": account_id,
            "account_name": account_name,
            "access_token": access_token,
            "refresh_token": refresh_token,
            "expires_at": _expiry(expires_in),
            "connected_at": now,
            "updated_at": now,
        }

        existing = await self.get_connection(user_id)
        if existing is not None and existing.account_id != account_id:
            logger.info(f"Lightspeed account changed ({existing.account_id} -> {account_id}), clearing sync checkpoint")
            payload.update({
                "last_sales_sync": None,
                "sync_cursor": None,
                "sync_started_at": None,
            })

        self._supabase.table(CONNECTIONS_TABLE).upsert(payload, on_conflict="user_id").execute()
        logger.info(f"✅ [SAVE_CONNECTION] Saved Lightspeed connection for user {user_id}")

    async def update_tokens(
        self,
        user_id: str,
        access_token: str,
        refresh_token: str,
        expires_in: int
    ) -> None:
        """Persist a refreshed token pair."""
        self._update(user_id, {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "expires_at": _expiry(expires_in),
        })
        logger.info(f"Saved refreshed Lightspeed tokens for user {user_id}")

    async def update_sync_cursor(
        self,
        user_id: str,
        cursor: str,
        sync_started_at: Optional[datetime] = None
    ) -> None:
        """Checkpoint a historical run at its oldest updatetime."""
        fields: Dict[str, Any] = {"sync_cursor": cursor}
        if sync_started_at is not None:
            fields["sync_started_at"] = sync_started_at.isoformat()
        self._update(user_id, fields)
        logger.info(f"Saved sales cursor {cursor} for user {user_id}")

    async def complete_sync_run(self, user_id: str, sync_started_at: datetime) -> None:
        """Mark the run finished: last_sales_sync = run start, cursor cleared."""
        self._update(user_id, {
            "last_sales_sync": sync_started_at.isoformat(),
            "sync_cursor": None,
            "sync_started_at": None,
        })
        logger.info(f"Marked sales sync complete for user {user_id} (since {sync_started_at.isoformat()})")

    async def disconnect(self, user_id: str) -> None:
        """Delete the connection row. Stored sold items are kept."""
        self._supabase.table(CONNECTIONS_TABLE).delete().eq("user_id", user_id).execute()
        logger.info(f"Disconnected Lightspeed for user {user_id}")

    # ------------------------------------------------------------------------
    # RUN LEASE
    # ------------------------------------------------------------------------

    async def acquire_sync_lock(self, user_id: str, ttl_seconds: int) -> bool:
        """
        Atomically take the run-in-progress lease.

        The conditional UPDATE only matches when no run holds the lease or
        the holder's lease expired, so two callers cannot both win.
        """
        now = _utcnow()
        result = self._supabase.table(CONNECTIONS_TABLE)\
            .update({
                "sync_in_progress": True,
                "sync_lock_expires_at": (now + timedelta(seconds=ttl_seconds)).isoformat(),
            })\
            .eq("user_id", user_id)\
            .or_(
                "sync_in_progress.is.null,"
                "sync_in_progress.is.false,"
                f'sync_lock_expires_at.lt."{now.isoformat()}"'
            )\
            .execute()

        acquired = bool(result.data)
        if not acquired:
            logger.warning(f"Sales sync lease busy for user {user_id}")
        return acquired

    async def release_sync_lock(self, user_id: str) -> None:
        self._supabase.table(CONNECTIONS_TABLE)\
            .update({"sync_in_progress": False, "sync_lock_expires_at": None})\
            .eq("user_id", user_id)\
            .execute()


# ============================================================================
# SOLD ITEMS
# ============================================================================

class SoldItemStore:
    """Sold-item rows keyed by (user_id, sale_line_id)."""

    def __init__(self, supabase: Client):
        self._supabase = supabase

    async def commit_batch(self, user_id: str, rows: List[Dict[str, Any]]) -> None:
        """
        Upsert one batch in a single request.

        PostgREST turns the list into one INSERT ... ON CONFLICT statement,
        so the batch lands completely or not at all. Postgres refuses a
        statement that hits the same key twice, so repeated sale_line_ids
        collapse to their last occurrence first. synced_at is replaced by
        the table trigger with the database clock.
        """
        stamped_at = _utcnow().isoformat()
        latest = {row["sale_line_id"]: row for row in rows}
        payload = [
            {**row, "user_id": user_id, "synced_at": stamped_at}
            for row in latest.values()
        ]
        self._supabase.table(SOLD_ITEMS_TABLE)\
            .upsert(payload, on_conflict="user_id,sale_line_id")\
            .execute()

    async def load_sold_items(self, user_id: str, limit: int = 500, offset: int = 0) -> List[SoldItem]:
        """Stored rows for the sales table, newest completed sale first."""
        result = self._supabase.table(SOLD_ITEMS_TABLE)\
            .select("*")\
            .eq("user_id", user_id)\
            .order("sale_complete_time", desc=True)\
            .range(offset, offset + limit - 1)\
            .execute()

        return [SoldItem(**row) for row in result.data or []]
