"""
Dependency Injection
Provides reusable dependencies for FastAPI routes

DEPENDENCIES:
- Supabase client (database + auth)
- HTTP client (Lightspeed API)
- Connection / sold-item stores built on the Supabase client
"""
import logging
from typing import AsyncGenerator

import httpx
from supabase import create_client, Client

from salesync.core.config import settings
from salesync.services.sync.database import ConnectionStore, SoldItemStore

logger = logging.getLogger(__name__)

# ============================================================================
# GLOBAL CLIENTS (initialized once, reused across requests)
# ============================================================================

# Supabase client (singleton)
_supabase_client: Client = None


# ============================================================================
# INITIALIZATION (called on app startup)
# ============================================================================

async def initialize_clients():
    """
    Initialize global clients on app startup.

    Called from main.py lifespan event.
    """
    global _supabase_client

    logger.info("Initializing global clients...")

    try:
        _supabase_client = create_client(
            settings.supabase_url,
            settings.supabase_service_key  # Backend uses service role
        )
        logger.info("✅ Supabase client initialized")
    except Exception as e:
        logger.error(f"❌ Failed to initialize Supabase: {e}")
        raise


async def shutdown_clients():
    """
    Shutdown global clients on app shutdown.

    Called from main.py lifespan event.
    """
    global _supabase_client

    # Supabase doesn't need explicit cleanup
    _supabase_client = None

    logger.info("✅ All clients shutdown complete")


# ============================================================================
# DEPENDENCY FUNCTIONS (injected into routes)
# ============================================================================

def get_supabase() -> Client:
    """
    Get Supabase client for dependency injection.

    Returns:
        Supabase client (service role)
    """
    if _supabase_client is None:
        logger.error("Supabase client not initialized")
        raise RuntimeError("Supabase client not initialized. Call initialize_clients() first.")

    return _supabase_client


async def get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Get HTTP client for Lightspeed API calls.

    Yields:
        httpx.AsyncClient (closed after the request)
    """
    client = httpx.AsyncClient(timeout=30.0)
    try:
        yield client
    finally:
        await client.aclose()


def get_connection_store() -> ConnectionStore:
    return ConnectionStore(get_supabase())


def get_sold_item_store() -> SoldItemStore:
    return SoldItemStore(get_supabase())
