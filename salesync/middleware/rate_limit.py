"""
Rate Limiting Middleware
Keeps clients from hammering the sync endpoints using slowapi

RATE LIMITS:
- Global: 100 requests/minute per key (default)
- Inline sales sync: 20/hour per user
- OAuth starts: 20/hour per user
"""
import logging
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

logger = logging.getLogger(__name__)


def rate_limit_key_func(request: Request) -> str:
    """
    Prefer the bearer token's identity, fall back to the client IP.

    The JWT itself is not validated here (the route dependency does that);
    the key only has to be stable per caller.
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer ") and len(auth_header) > 7:
        # Tail of the token: stable per session, never logged in full
        return f"token:{auth_header[-16:]}"

    ip = get_remote_address(request)
    logger.debug(f"Rate limit key: ip={ip}")
    return f"ip:{ip}"


limiter = Limiter(
    key_func=rate_limit_key_func,
    default_limits=["100/minute"],
    storage_uri="memory://",  # In-memory storage (single instance)
)
