"""
Health Check Routes
System status and API info
"""
import logging
from fastapi import APIRouter

from salesync.models.schemas import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

API_VERSION = "1.0.0"


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=API_VERSION)


@router.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Lightspeed Sales Sync API",
        "version": API_VERSION,
        "description": "Mirrors Lightspeed Retail sales into a per-user sold-item table",
        "endpoints": {
            "health": "/health",
            "oauth": "/connect/lightspeed/start",
            "connection": "/connections/lightspeed",
            "sync": {
                "inline": "/sync/sales",
                "background": "/sync/sales/jobs"
            },
            "items": "/sales/items"
        }
    }
