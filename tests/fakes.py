"""
In-memory stores with the same merge, upsert and lease semantics as the
Supabase adapters.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from salesync.models.schemas.sales import SoldItem
from salesync.services.sync.checkpoint import Connection


class InMemoryConnectionStore:
    """Connection store with the same merge and lease semantics as the Supabase adapter."""

    def __init__(self, clock=lambda: datetime.now(timezone.utc)):
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.cursor_updates: List[Dict[str, Any]] = []
        self.token_updates: List[Dict[str, Any]] = []
        self.completed: List[datetime] = []
        self._clock = clock

    def _merge(self, user_id: str, fields: Dict[str, Any]) -> None:
        row = self.rows.setdefault(user_id, {"user_id": user_id})
        row.update(fields)

    async def get_connection(self, user_id: str) -> Optional[Connection]:
        row = self.rows.get(user_id)
        return Connection(**row) if row else None

    async def save_connection(self, user_id, account_id, account_name, access_token, refresh_token, expires_in):
        existing = self.rows.get(user_id)
        if existing is not None and existing.get("account_id") != account_id:
            self._merge(user_id, {"last_sales_sync": None, "sync_cursor": None, "sync_started_at": None})
        self._merge(user_id, {
            "account_id": account_id,
            "account_name": account_name,
            "access_token": access_token,
            "refresh_token": refresh_token,
            "expires_at": self._clock() + timedelta(seconds=expires_in),
            "connected_at": self._clock(),
        })

    async def update_tokens(self, user_id, access_token, refresh_token, expires_in):
        self.token_updates.append({"access_token": access_token, "refresh_token": refresh_token})
        self._merge(user_id, {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "expires_at": self._clock() + timedelta(seconds=expires_in),
        })

    async def update_sync_cursor(self, user_id, cursor, sync_started_at=None):
        self.cursor_updates.append({"cursor": cursor, "sync_started_at": sync_started_at})
        fields: Dict[str, Any] = {"sync_cursor": cursor}
        if sync_started_at is not None:
            fields["sync_started_at"] = sync_started_at
        self._merge(user_id, fields)

    async def complete_sync_run(self, user_id, sync_started_at):
        self.completed.append(sync_started_at)
        self._merge(user_id, {
            "last_sales_sync": sync_started_at,
            "sync_cursor": None,
            "sync_started_at": None,
        })

    async def disconnect(self, user_id):
        self.rows.pop(user_id, None)

    async def acquire_sync_lock(self, user_id, ttl_seconds):
        row = self.rows.get(user_id)
        if row is None:
            return False
        now = datetime.now(timezone.utc)
        expires = row.get("sync_lock_expires_at")
        if row.get("sync_in_progress") and expires and expires > now:
            return False
        row["sync_in_progress"] = True
        row["sync_lock_expires_at"] = now + timedelta(seconds=ttl_seconds)
        return True

    async def release_sync_lock(self, user_id):
        row = self.rows.get(user_id)
        if row is not None:
            row["sync_in_progress"] = False
            row["sync_lock_expires_at"] = None


class InMemorySoldItemStore:
    """Sold items keyed by (user_id, sale_line_id); every commit is one upsert."""

    def __init__(self, fail_on_commit: Optional[int] = None):
        self.rows: Dict[tuple, Dict[str, Any]] = {}
        self.commits: List[List[Dict[str, Any]]] = []
        self._fail_on_commit = fail_on_commit

    async def commit_batch(self, user_id, rows):
        if self._fail_on_commit is not None and len(self.commits) + 1 == self._fail_on_commit:
            raise RuntimeError("write quota exceeded")
        keys = [row["sale_line_id"] for row in rows]
        if len(set(keys)) != len(keys):
            raise RuntimeError("ON CONFLICT DO UPDATE command cannot affect row a second time")
        self.commits.append(rows)
        for row in rows:
            self.rows[(user_id, row["sale_line_id"])] = {**row, "user_id": user_id}

    async def load_sold_items(self, user_id, limit=500, offset=0):
        rows = sorted(
            (row for (owner, _), row in self.rows.items() if owner == user_id),
            key=lambda row: row.get("sale_complete_time", ""),
            reverse=True,
        )
        return [SoldItem(**row) for row in rows[offset:offset + limit]]
