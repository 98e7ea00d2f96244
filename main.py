"""
Lightspeed Sales Sync
=====================
Version: 1.0.0

FastAPI application entry point.

Architecture:
- salesync/core/: Configuration, dependencies, security
- salesync/middleware/: Error handling, logging, CORS, rate limiting
- salesync/models/: Pydantic schemas
- salesync/services/sync/: Lightspeed OAuth, token refresh, sale flattening, sync engine
- salesync/services/jobs/: Dramatiq background syncs
- salesync/api/v1/routes/: API endpoints
"""
import sys
import logging
import traceback
from contextlib import asynccontextmanager
from fastapi import FastAPI

# Startup error handling
try:
    # Import core components
    from salesync.core.config import settings
    from salesync.core.dependencies import initialize_clients, shutdown_clients

    # Import middleware
    from salesync.middleware.error_handler import ErrorHandlerMiddleware, register_exception_handlers
    from salesync.middleware.logging import RequestLoggingMiddleware
    from salesync.middleware.cors import get_cors_middleware

    # Import routes
    from salesync.api.v1.routes.health import router as health_router
    from salesync.api.v1.routes.oauth import router as oauth_router
    from salesync.api.v1.routes.sync import router as sync_router

except Exception as e:
    print(f"🚨 FATAL STARTUP ERROR: {e}", file=sys.stderr)
    print(f"Traceback:\n{traceback.format_exc()}", file=sys.stderr)
    sys.exit(1)

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.environment == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# ============================================================================
# SENTRY ERROR TRACKING
# ============================================================================

if settings.sentry_dsn:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1,
        integrations=[
            FastApiIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)
        ]
    )
    logger.info("✅ Sentry error tracking initialized")
else:
    logger.info("ℹ️  Sentry not configured (SENTRY_DSN not set)")

# ============================================================================
# LIFECYCLE MANAGEMENT
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown."""
    logger.info("=" * 80)
    logger.info("Starting Lightspeed Sales Sync")
    logger.info("=" * 80)
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Port: {settings.port}")
    logger.info(f"Lightspeed API: {settings.lightspeed_api_base}")

    await initialize_clients()

    logger.info("✅ Sales sync API started")

    yield

    logger.info("Shutting down...")
    await shutdown_clients()
    logger.info("✅ Shutdown complete")


# ============================================================================
# APP INITIALIZATION
# ============================================================================

app = FastAPI(
    title="Lightspeed Sales Sync API",
    description="Per-user mirror of Lightspeed Retail sales as flat sold-item rows",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# ============================================================================
# RATE LIMITING
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from salesync.middleware.rate_limit import limiter

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Sales sync errors -> HTTP status codes
register_exception_handlers(app)

# ============================================================================
# MIDDLEWARE
# ============================================================================

cors_middleware, cors_config = get_cors_middleware()
app.add_middleware(cors_middleware, **cors_config)

app.add_middleware(RequestLoggingMiddleware)

# Global error handler (must be last)
app.add_middleware(ErrorHandlerMiddleware)

# ============================================================================
# ROUTES
# ============================================================================

app.include_router(health_router)
app.include_router(oauth_router)
app.include_router(sync_router)

logger.info("✅ All routes registered")

# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
        log_level="info"
    )
