"""
Unified Configuration
All environment variables and settings in one place

ARCHITECTURE:
- Supabase holds auth, the per-user Lightspeed connection and the sold-item rows
- Lightspeed Retail (R-Series) API V3 is the only external data source
- Redis backs the dramatiq queue for background sales syncs

SECURITY:
- All secrets loaded from environment variables
- No hardcoded credentials
"""
from typing import Optional
import logging
from pydantic_settings import BaseSettings
from pydantic import Field, model_validator

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings.
    Validates all environment variables at startup.
    """

    # ============================================================================
    # SERVER
    # ============================================================================

    environment: str = Field(default="production", description="Environment: development/staging/production")
    port: int = Field(default=8080, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")

    # ============================================================================
    # DATABASE (Supabase)
    # ============================================================================

    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_anon_key: str = Field(default="", description="Supabase anonymous key")
    supabase_service_key: str = Field(default="", description="Supabase service key (backend uses this)")

    # ============================================================================
    # LIGHTSPEED OAUTH
    # ============================================================================

    lightspeed_client_id: Optional[str] = Field(default=None, description="Lightspeed OAuth client ID")
    lightspeed_client_secret: Optional[str] = Field(default=None, description="Lightspeed OAuth client secret")
    lightspeed_redirect_uri: Optional[str] = Field(default=None, description="OAuth callback URL registered with Lightspeed")
    lightspeed_scope: str = Field(default="employee:all", description="OAuth scope requested at connect time")
    lightspeed_authorize_url: str = Field(
        default="https://cloud.lightspeedapp.com/auth/oauth/authorize",
        description="Lightspeed OAuth authorize endpoint"
    )
    lightspeed_token_url: str = Field(
        default="https://cloud.lightspeedapp.com/auth/oauth/token",
        description="Lightspeed OAuth token endpoint (code exchange + refresh)"
    )
    lightspeed_api_base: str = Field(
        default="https://api.lightspeedapp.com/API/V3",
        description="Lightspeed Retail API root"
    )
    oauth_state_secret: Optional[str] = Field(default=None, description="HMAC key used to sign OAuth state values")

    # ============================================================================
    # SALES SYNC ENGINE
    # ============================================================================

    sales_page_size: int = Field(default=100, description="Sales requested per API page")
    sales_flush_threshold: int = Field(default=1000, description="Buffered sold-item rows before a flush")
    sales_write_batch_size: int = Field(default=400, description="Rows per atomic batch commit")
    sales_page_delay_seconds: float = Field(default=0.5, description="Pause between page fetches (rate limit safety)")
    token_refresh_buffer_seconds: int = Field(default=300, description="Refresh access tokens this long before expiry")
    sync_lock_ttl_seconds: int = Field(default=3600, description="Lifetime of a run-in-progress lease")

    # ============================================================================
    # PRODUCTION INFRASTRUCTURE
    # ============================================================================

    # Redis (job queue)
    redis_url: Optional[str] = Field(default=None, description="Redis connection URL for dramatiq")

    # Error tracking (Sentry)
    sentry_dsn: Optional[str] = Field(default=None, description="Sentry DSN for error tracking")

    # ============================================================================
    # CORS
    # ============================================================================

    cors_allowed_origins: str = Field(default="http://localhost:3000", description="Comma-separated list of allowed CORS origins")

    @model_validator(mode='after')
    def validate_settings(self):
        """
        Validate critical settings at startup.

        SECURITY CHECKS:
        - Warn if debug mode enabled in production
        - Warn if OAuth credentials or the state secret are missing
        """
        if self.environment == "production":
            if self.debug:
                logger.warning("⚠️  DEBUG MODE ENABLED IN PRODUCTION! This is insecure.")

            if not self.sentry_dsn:
                logger.warning("⚠️  Sentry not configured in production. Error tracking disabled.")

        if not self.lightspeed_client_id or not self.lightspeed_client_secret:
            logger.warning("⚠️  LIGHTSPEED_CLIENT_ID/SECRET not set. OAuth connections will fail.")

        if not self.oauth_state_secret:
            logger.warning("⚠️  OAUTH_STATE_SECRET not set. Connect flow cannot sign state values.")

        logger.info("=" * 80)
        logger.info("Sales Sync Configuration Loaded")
        logger.info("=" * 80)
        logger.info(f"Environment: {self.environment}")
        logger.info(f"Debug: {self.debug}")
        logger.info(f"Supabase URL: {self.supabase_url or '❌ Not configured'}")
        logger.info(f"Lightspeed API: {self.lightspeed_api_base}")
        logger.info(f"Page size: {self.sales_page_size}, flush threshold: {self.sales_flush_threshold}, batch size: {self.sales_write_batch_size}")
        logger.info(f"Redis: {'✅ Configured' if self.redis_url else '❌ Not configured'}")
        logger.info(f"Sentry: {'✅ Configured' if self.sentry_dsn else '❌ Not configured'}")
        logger.info("=" * 80)

        return self

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
