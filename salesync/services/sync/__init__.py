"""
Lightspeed Sales Sync
Token management, sale flattening, batched persistence and the sync engine
"""
from salesync.services.sync.database import ConnectionStore, SoldItemStore
from salesync.services.sync.orchestration.sales_sync import SalesSyncOrchestrator, SyncResult, sync_sales
from salesync.services.sync.persistence import flush_sold_items
from salesync.services.sync.providers.lightspeed import parse_sale_to_items
from salesync.services.sync.tokens import TokenManager

__all__ = [
    "ConnectionStore",
    "SoldItemStore",
    "SalesSyncOrchestrator",
    "SyncResult",
    "sync_sales",
    "flush_sold_items",
    "parse_sale_to_items",
    "TokenManager",
]
