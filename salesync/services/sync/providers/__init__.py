"""
Data Source Providers
Normalization layer for external POS payloads
"""
from salesync.services.sync.providers.lightspeed import as_list, parse_sale_to_items, summarize_payments

__all__ = [
    "as_list",
    "parse_sale_to_items",
    "summarize_payments",
]
