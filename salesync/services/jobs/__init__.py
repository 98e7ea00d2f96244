"""
Background Job Queue
Dramatiq-based async task processing
"""
from salesync.services.jobs.broker import broker
from salesync.services.jobs.tasks import sync_sales_task

__all__ = ["broker", "sync_sales_task"]
