"""
Dramatiq Background Worker
Processes long-running Lightspeed sales syncs

Usage:
    dramatiq worker -p 2 -t 2
"""
import logging

from salesync.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

if settings.sentry_dsn:
    import sentry_sdk
    from sentry_sdk.integrations.logging import LoggingIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1,
        integrations=[
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)
        ]
    )
    logger.info("✅ Sentry initialized in worker")

# Import tasks (this registers them with Dramatiq)
from salesync.services.jobs.broker import broker  # noqa: E402,F401
from salesync.services.jobs.tasks import sync_sales_task  # noqa: E402,F401

logger.info("✅ Sales sync worker initialized")
logger.info("📋 Registered tasks: sync_sales_task")
