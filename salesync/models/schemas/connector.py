"""
Connector Schemas
Models for the Lightspeed OAuth connect flow and connection lifecycle
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class ConnectStartResponse(BaseModel):
    """Consent URL for the browser to redirect to, plus the signed state."""
    auth_url: str
    state: str


class LightspeedOAuthCallback(BaseModel):
    """
    Payload the UI posts after Lightspeed redirects back with ?code=&state=.
    """
    code: str
    state: str


class ConnectionSummary(BaseModel):
    """
    Connection as shown to the UI.
    Tokens never leave the backend.
    """
    account_id: str
    account_name: str
    connected_at: Optional[datetime] = None
    last_sales_sync: Optional[datetime] = None
    sync_in_progress: bool = False
    resumable: bool = False  # An interrupted historical sync will resume
