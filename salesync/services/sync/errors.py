"""
Sales sync error taxonomy
Raised by the token, API and orchestration layers; mapped to HTTP responses
by salesync.middleware.error_handler
"""
from typing import Optional


class SalesSyncError(Exception):
    """Base class for every failure raised by the sales sync engine."""


class NotConnectedError(SalesSyncError):
    """No Lightspeed connection exists for the user."""

    def __init__(self, user_id: str):
        super().__init__(f"Lightspeed not connected for user {user_id}")
        self.user_id = user_id


class UnauthorizedError(SalesSyncError):
    """Lightspeed rejected the access token (HTTP 401)."""


class LightspeedAPIError(SalesSyncError):
    """Any other non-2xx response from the Lightspeed API."""

    def __init__(self, status_code: int, message: str, retry_after: Optional[str] = None):
        super().__init__(f"Lightspeed API request failed: {status_code} - {message}")
        self.status_code = status_code
        self.message = message
        self.retry_after = retry_after


class OAuthError(SalesSyncError):
    """Token endpoint failure."""


class TokenExchangeError(OAuthError):
    """Authorization code could not be exchanged for tokens."""


class TokenRefreshError(OAuthError):
    """Refresh token was rejected; the run cannot continue."""


class OAuthStateError(SalesSyncError):
    """OAuth callback state is missing, malformed or signed for another user."""


class SyncInProgressError(SalesSyncError):
    """Another sales sync already holds the run lease for this user."""

    def __init__(self, user_id: str):
        super().__init__(f"A sales sync is already running for user {user_id}")
        self.user_id = user_id


class SyncCancelledError(SalesSyncError):
    """The caller asked the run to stop; checkpoints are left in place."""
