"""
Dramatiq Background Tasks
Runs Lightspeed sales syncs outside the request cycle and records progress
in the sync_jobs table
"""
import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import dramatiq
import httpx
from supabase import Client, create_client

from salesync.services.jobs.broker import broker  # noqa: F401  (registers the broker)

logger = logging.getLogger(__name__)

SYNC_JOBS_TABLE = "sync_jobs"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ============================================================================
# JOB ROWS
# ============================================================================

def create_sync_job(supabase: Client, user_id: str) -> str:
    """Insert a queued job row and return its id."""
    job_id = str(uuid.uuid4())
    supabase.table(SYNC_JOBS_TABLE).insert({
        "id": job_id,
        "user_id": user_id,
        "job_type": "lightspeed_sales",
        "status": "queued",
        "created_at": _now(),
    }).execute()
    return job_id


def get_sync_job(supabase: Client, user_id: str, job_id: str) -> Optional[Dict[str, Any]]:
    """Job row owned by the user, or None."""
    result = supabase.table(SYNC_JOBS_TABLE)\
        .select("*")\
        .eq("id", job_id)\
        .eq("user_id", user_id)\
        .limit(1)\
        .execute()
    return result.data[0] if result.data else None


def update_sync_job(supabase: Client, job_id: str, **fields: Any) -> None:
    supabase.table(SYNC_JOBS_TABLE).update(fields).eq("id", job_id).execute()


# ============================================================================
# WORKER
# ============================================================================

def get_sync_dependencies():
    """
    Create fresh clients for a background task.
    Dramatiq workers run in separate processes, so we can't share global clients.
    """
    from salesync.core.config import settings

    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(60.0),  # Longer timeout for background jobs
        limits=httpx.Limits(max_keepalive_connections=5, max_connections=10)
    )
    supabase = create_client(settings.supabase_url, settings.supabase_service_key)

    return http_client, supabase


async def _run_sales_sync_with_cleanup(http_client: httpx.AsyncClient, supabase: Client, user_id: str, job_id: str):
    """
    Async wrapper that runs the sales sync and closes the HTTP client in the same event loop.
    """
    from salesync.services.sync import ConnectionStore, SoldItemStore, sync_sales

    def on_progress(message: str) -> None:
        update_sync_job(supabase, job_id, progress_message=message)

    try:
        return await sync_sales(
            user_id,
            http_client=http_client,
            connections=ConnectionStore(supabase),
            sold_items=SoldItemStore(supabase),
            on_progress=on_progress,
        )
    finally:
        await http_client.aclose()


@dramatiq.actor(max_retries=0)
def sync_sales_task(user_id: str, job_id: str):
    """
    Background job for a Lightspeed sales sync.

    Not retried by dramatiq: a failed run keeps its cursor and the next
    request resumes from it.

    Args:
        user_id: Owner of the Lightspeed connection
        job_id: sync_jobs row for status tracking
    """
    logger.info(f"🚀 Starting sales sync job {job_id} for user {user_id}")

    http_client, supabase = get_sync_dependencies()

    try:
        update_sync_job(supabase, job_id, status="running", started_at=_now())

        result = asyncio.run(_run_sales_sync_with_cleanup(http_client, supabase, user_id, job_id))

        update_sync_job(
            supabase,
            job_id,
            status="completed",
            completed_at=_now(),
            run_id=result.run_id,
            result={**result.to_dict(), "mode": result.mode},
        )

        logger.info(f"✅ Sales sync job {job_id} complete: {result.synced} items")
        return result.to_dict()

    except Exception as e:
        logger.error(f"❌ Sales sync job {job_id} failed: {e}")

        update_sync_job(
            supabase,
            job_id,
            status="failed",
            completed_at=_now(),
            error_message=str(e),
        )
        raise
