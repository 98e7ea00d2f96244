"""
Sync Routes
Inline and background Lightspeed sales syncs, job status and synced items
"""
import logging
from typing import List

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from supabase import Client

from salesync.core.security import get_current_user_id
from salesync.core.dependencies import get_connection_store, get_http_client, get_sold_item_store, get_supabase
from salesync.models.schemas import SoldItemsResponse, SyncJobResponse, SyncJobStatus, SyncResponse
from salesync.services.jobs.tasks import create_sync_job, get_sync_job, sync_sales_task
from salesync.services.sync import sync_sales
from salesync.services.sync.database import ConnectionStore, SoldItemStore
from salesync.services.sync.errors import NotConnectedError
from salesync.middleware.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sync"])


@router.post("/sync/sales", response_model=SyncResponse)
@limiter.limit("20/hour")
async def sync_sales_inline(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    connections: ConnectionStore = Depends(get_connection_store),
    sold_items: SoldItemStore = Depends(get_sold_item_store)
):
    """
    Run a sales sync inside the request and return the summary.

    Fine for incremental syncs; use /sync/sales/jobs for a first historical sync.
    """
    messages: List[str] = []

    result = await sync_sales(
        user_id,
        http_client=http_client,
        connections=connections,
        sold_items=sold_items,
        on_progress=messages.append,
    )

    return SyncResponse(
        synced=result.synced,
        total=result.total,
        mode=result.mode,
        run_id=result.run_id,
        messages=messages,
    )


@router.post("/sync/sales/jobs", response_model=SyncJobResponse)
@limiter.limit("20/hour")
async def enqueue_sales_sync(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    connections: ConnectionStore = Depends(get_connection_store),
    supabase: Client = Depends(get_supabase)
):
    """
    Start a sales sync as a background job.

    Returns immediately with job_id for status tracking.
    """
    if await connections.get_connection(user_id) is None:
        raise NotConnectedError(user_id)

    job_id = create_sync_job(supabase, user_id)
    sync_sales_task.send(user_id, job_id)

    logger.info(f"✅ Sales sync job {job_id} queued for user {user_id}")
    return SyncJobResponse(job_id=job_id, status="queued")


@router.get("/sync/jobs/{job_id}", response_model=SyncJobStatus)
async def get_job_status(
    job_id: str,
    user_id: str = Depends(get_current_user_id),
    supabase: Client = Depends(get_supabase)
):
    """Status of a background sync job owned by the caller."""
    job = get_sync_job(supabase, user_id, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    return SyncJobStatus(
        job_id=str(job["id"]),
        status=job["status"],
        progress_message=job.get("progress_message"),
        result=job.get("result"),
        error_message=job.get("error_message"),
    )


@router.get("/sales/items", response_model=SoldItemsResponse)
async def list_sold_items(
    user_id: str = Depends(get_current_user_id),
    sold_items: SoldItemStore = Depends(get_sold_item_store),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0)
):
    """Synced sold items, most recently completed sale first."""
    items = await sold_items.load_sold_items(user_id, limit=limit, offset=offset)
    return SoldItemsResponse(items=items, count=len(items), limit=limit, offset=offset)
