"""
Pydantic Schemas
All request/response models for API endpoints
"""

# Connector schemas (OAuth, connection lifecycle)
from .connector import ConnectStartResponse, LightspeedOAuthCallback, ConnectionSummary

# Health check schemas
from .health import HealthResponse

# Sales schemas
from .sales import SoldItem, SoldItemsResponse

# Sync schemas
from .sync import SyncResponse, SyncJobResponse, SyncJobStatus

__all__ = [
    # Connector
    "ConnectStartResponse",
    "LightspeedOAuthCallback",
    "ConnectionSummary",
    # Health
    "HealthResponse",
    # Sales
    "SoldItem",
    "SoldItemsResponse",
    # Sync
    "SyncResponse",
    "SyncJobResponse",
    "SyncJobStatus",
]
