"""
Security and Authentication
Handles Supabase JWT validation for the browser UI

SECURITY FEATURES:
- JWT validation via Supabase Auth
- user_id from the JWT sub claim scopes every connection and sales row
"""
import logging
from typing import Dict
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import Client

from salesync.core.dependencies import get_supabase

logger = logging.getLogger(__name__)

# Security scheme
bearer_scheme = HTTPBearer()


# ============================================================================
# JWT AUTHENTICATION (Supabase)
# ============================================================================

async def get_current_user_context(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    supabase: Client = Depends(get_supabase)
) -> Dict[str, str]:
    """
    Validate the bearer JWT with Supabase Auth.

    Returns:
        dict with:
        - user_id: User ID from JWT (owner of the Lightspeed connection)
        - email: User email
    """
    if not credentials:
        logger.warning("No authorization credentials provided")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required"
        )

    token = credentials.credentials

    try:
        response = supabase.auth.get_user(token)

        if not response or not response.user:
            logger.warning("JWT validation failed: no user returned")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication token"
            )

        user = response.user
        logger.debug(f"User authenticated: {user.id[:8]}...")

        return {
            "user_id": user.id,
            "email": user.email or "",
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"JWT validation error: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed"
        )


async def get_current_user_id(
    user_context: Dict[str, str] = Depends(get_current_user_context)
) -> str:
    """
    Extract just the user_id from the user context.

    Returns:
        User ID string
    """
    return user_context["user_id"]
