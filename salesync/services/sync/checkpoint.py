"""
Connection state and sync mode selection

A Connection row carries the OAuth token pair plus the sync checkpoint. The
checkpoint fields are turned into exactly one SyncMode at run entry:

    FreshSync        nothing stored          → fetch everything, newest first
    IncrementalSync  last_sales_sync only    → updatetime > last_sales_sync
    ResumeSync       sync_cursor stored      → updatetime < sync_cursor
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel


class Connection(BaseModel):
    """Persisted OAuth + checkpoint state for one user's Lightspeed account."""

    user_id: str
    account_id: str
    account_name: str = ""
    access_token: str
    refresh_token: str
    expires_at: datetime
    last_sales_sync: Optional[datetime] = None
    sync_cursor: Optional[str] = None
    sync_started_at: Optional[datetime] = None
    connected_at: Optional[datetime] = None
    sync_in_progress: bool = False
    sync_lock_expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class FreshSync:
    started_at: datetime

    name = "fresh"
    checkpoints = True

    def update_time_filter(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class IncrementalSync:
    since: datetime
    started_at: datetime

    name = "incremental"
    checkpoints = False

    def update_time_filter(self) -> Optional[str]:
        return f">,{format_timestamp(self.since)}"


@dataclass(frozen=True)
class ResumeSync:
    cursor: str
    started_at: datetime

    name = "resume"
    checkpoints = True

    def update_time_filter(self) -> Optional[str]:
        return f"<,{self.cursor}"


SyncMode = Union[FreshSync, IncrementalSync, ResumeSync]


def select_sync_mode(connection: Connection, now: Optional[datetime] = None) -> SyncMode:
    """
    Pick the run mode from the stored checkpoint.

    A stored cursor always wins: an interrupted historical run is finished
    before incremental syncing starts again. When resuming, the original
    run's start time is reused so the eventual last_sales_sync still covers
    everything changed since that run began.
    """
    now = now or datetime.now(timezone.utc)

    if connection.sync_cursor:
        return ResumeSync(
            cursor=connection.sync_cursor,
            started_at=connection.sync_started_at or now,
        )
    if connection.last_sales_sync:
        return IncrementalSync(since=connection.last_sales_sync, started_at=now)
    return FreshSync(started_at=now)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 with an explicit +00:00 offset, as the Lightspeed filters expect."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a Lightspeed timestamp; returns None for blank or malformed values."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
