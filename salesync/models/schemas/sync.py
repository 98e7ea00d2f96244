"""
Sync Schemas
Models for inline and background sales syncs
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel


class SyncResponse(BaseModel):
    """
    Response for the inline sales sync endpoint.
    synced and total are both the number of rows persisted.
    """
    synced: int
    total: int
    mode: str
    run_id: str
    messages: List[str] = []


class SyncJobResponse(BaseModel):
    """Background job handle returned when a sync is queued."""
    job_id: str
    status: str


class SyncJobStatus(BaseModel):
    """Background job row as stored in sync_jobs."""
    job_id: str
    status: str  # "queued", "running", "completed", "failed"
    progress_message: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
