"""
Sold-item persistence
Writes transformed rows in bounded, sequential batch commits
"""
import logging
from typing import Callable, Dict, List, Optional, Sequence

from salesync.core.config import settings
from salesync.models.schemas.sales import SoldItem
from salesync.services.sync.ports import SoldItemStorePort

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


def chunked(rows: Sequence[SoldItem], size: int) -> List[Sequence[SoldItem]]:
    if size < 1:
        raise ValueError("batch size must be positive")
    return [rows[i:i + size] for i in range(0, len(rows), size)]


def latest_by_line(rows: Sequence[SoldItem]) -> List[SoldItem]:
    """One row per sale_line_id; a later occurrence replaces an earlier one."""
    latest: Dict[str, SoldItem] = {}
    for item in rows:
        latest[item.sale_line_id] = item
    return list(latest.values())


async def flush_sold_items(
    store: SoldItemStorePort,
    user_id: str,
    rows: Sequence[SoldItem],
    on_progress: Optional[ProgressCallback] = None,
    offset_count: int = 0,
    batch_size: Optional[int] = None
) -> int:
    """
    Upsert rows by sale_line_id in atomic batches.

    A sale seen twice in one buffer (it changed while paging) keeps only
    its latest rows. Batches are committed one after another. A failing
    batch aborts the flush; earlier batches stay committed, which is safe
    because every write is an upsert on the natural key.

    Args:
        store: Sold-item store
        user_id: Owner of the rows
        rows: Transformed rows to write
        on_progress: Called after each committed batch with a running total
        offset_count: Rows already persisted earlier in this run
        batch_size: Rows per commit (defaults to settings.sales_write_batch_size)

    Returns:
        Number of distinct rows written
    """
    rows = latest_by_line(rows)
    if not rows:
        return 0

    size = batch_size or settings.sales_write_batch_size
    written = 0

    for batch in chunked(rows, size):
        await store.commit_batch(
            user_id,
            [item.model_dump(mode="json", exclude={"synced_at"}) for item in batch]
        )
        written += len(batch)
        logger.debug(f"Committed {len(batch)} sold items for user {user_id}")
        if on_progress:
            on_progress(f"Saved {offset_count + written} items...")

    return written
