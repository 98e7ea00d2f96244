"""
Lightspeed sales sync engine
Pulls sales history into the user's sold-item table

Flow:
1. Load the connection and take the run lease
2. Pick the mode from the checkpoint (fresh / incremental / resume)
3. Walk Sale.json pages newest → oldest following @attributes.next
4. Flatten every sale into sold-item rows and buffer them
5. Flush the buffer in batch commits; historical runs checkpoint the
   oldest updatetime after each flush so a crash resumes where it stopped
6. Mark the run complete (last_sales_sync = run start, cursor cleared)
"""
import asyncio
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlencode

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)

from salesync.core.config import settings
from salesync.models.schemas.sales import SoldItem
from salesync.services.sync.checkpoint import (
    SyncMode,
    format_timestamp,
    parse_timestamp,
    select_sync_mode,
)
from salesync.services.sync.errors import (
    NotConnectedError,
    SyncCancelledError,
    SyncInProgressError,
    UnauthorizedError,
)
from salesync.services.sync.oauth import lightspeed_get
from salesync.services.sync.persistence import ProgressCallback, flush_sold_items
from salesync.services.sync.ports import ConnectionStorePort, SoldItemStorePort
from salesync.services.sync.providers.lightspeed import (
    as_list,
    parse_sale_to_items,
    sale_update_time,
)
from salesync.services.sync.tokens import AccessGrant, TokenManager

logger = logging.getLogger(__name__)

SALE_RELATIONS = [
    "SaleLines",
    "SaleLines.Item",
    "SalePayments",
    "SalePayments.PaymentType",
    "Customer",
]


@dataclass(frozen=True)
class SyncResult:
    synced: int
    total: int
    mode: str
    run_id: str

    def to_dict(self) -> Dict[str, int]:
        return {"synced": self.synced, "total": self.total}


def build_sales_url(account_id: str, mode: SyncMode, page_size: int) -> str:
    """First Sale.json page for the mode, newest updatetime first."""
    params: Dict[str, Any] = {
        "load_relations": json.dumps(SALE_RELATIONS, separators=(",", ":")),
        "limit": page_size,
        "sort": "-updatetime",
    }
    update_time_filter = mode.update_time_filter()
    if update_time_filter:
        params["updatetime"] = update_time_filter
    return f"{settings.lightspeed_api_base}/Account/{account_id}/Sale.json?{urlencode(params)}"


def next_page_url(data: Dict[str, Any]) -> Optional[str]:
    attributes = data.get("@attributes")
    if not isinstance(attributes, dict):
        return None
    return attributes.get("next") or None


class SalesSyncOrchestrator:
    """
    Runs one sales sync for one user at a time.

    Pages are fetched strictly in sequence (each depends on the previous
    page's next link) with a blocking pause between them. A run that raises
    before completion leaves the cursor in place for the next RESUME.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        connections: ConnectionStorePort,
        sold_items: SoldItemStorePort,
        token_manager: Optional[TokenManager] = None,
        page_size: Optional[int] = None,
        flush_threshold: Optional[int] = None,
        batch_size: Optional[int] = None,
        page_delay: Optional[float] = None,
        lock_ttl_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._http_client = http_client
        self._connections = connections
        self._sold_items = sold_items
        self._tokens = token_manager or TokenManager(connections, http_client, clock=clock)
        self._page_size = page_size or settings.sales_page_size
        self._flush_threshold = flush_threshold or settings.sales_flush_threshold
        self._batch_size = batch_size or settings.sales_write_batch_size
        self._page_delay = settings.sales_page_delay_seconds if page_delay is None else page_delay
        self._lock_ttl = lock_ttl_seconds or settings.sync_lock_ttl_seconds
        self._clock = clock

    async def run(
        self,
        user_id: str,
        on_progress: Optional[ProgressCallback] = None,
        stop_event: Optional[asyncio.Event] = None
    ) -> SyncResult:
        """
        Sync the user's Lightspeed sales into the sold-item table.

        Raises:
            NotConnectedError: No connection for the user
            SyncInProgressError: Another run holds the lease
            SyncCancelledError: stop_event was set mid-run
            UnauthorizedError: Token rejected twice in a row
            LightspeedAPIError: Any other API failure
            TokenRefreshError: Refresh rejected
        """
        run_id = uuid.uuid4().hex[:8]
        progress = on_progress or (lambda message: None)

        connection = await self._connections.get_connection(user_id)
        if connection is None:
            raise NotConnectedError(user_id)

        if not await self._connections.acquire_sync_lock(user_id, self._lock_ttl):
            raise SyncInProgressError(user_id)

        try:
            # Another run may have finished between the first read and the lease
            connection = await self._connections.get_connection(user_id)
            if connection is None:
                raise NotConnectedError(user_id)

            grant = await self._tokens.ensure_valid_token(user_id)
            mode = select_sync_mode(connection, now=self._clock())

            logger.info(f"🚀 [run {run_id}] Starting {mode.name} sales sync for user {user_id}")
            if mode.update_time_filter():
                logger.info(f"   [run {run_id}] updatetime filter: {mode.update_time_filter()}")

            total = await self._sync_pages(run_id, user_id, grant, mode, progress, stop_event)

            await self._connections.complete_sync_run(user_id, mode.started_at)
            progress(f"Sync complete! {total} items updated.")

            logger.info("=" * 80)
            logger.info(f"✅ [run {run_id}] Sales sync complete for user {user_id}")
            logger.info(f"Mode: {mode.name}")
            logger.info(f"Sold items saved: {total}")
            logger.info("=" * 80)

            return SyncResult(synced=total, total=total, mode=mode.name, run_id=run_id)

        except Exception as e:
            logger.error(f"❌ [run {run_id}] Sales sync failed for user {user_id}: {e}")
            raise
        finally:
            await self._connections.release_sync_lock(user_id)

    async def _sync_pages(
        self,
        run_id: str,
        user_id: str,
        grant: AccessGrant,
        mode: SyncMode,
        progress: ProgressCallback,
        stop_event: Optional[asyncio.Event]
    ) -> int:
        url: Optional[str] = build_sales_url(grant.account_id, mode, self._page_size)
        buffer: List[SoldItem] = []
        oldest: Optional[datetime] = None
        fetched = 0
        total = 0

        progress("Fetching sales from Lightspeed...")

        while url:
            self._check_stop(stop_event)

            data, grant = await self._fetch_page(user_id, url, grant)
            raw_sales = [sale for sale in as_list(data.get("Sale")) if isinstance(sale, dict)]
            if not raw_sales:
                break

            for raw_sale in raw_sales:
                items = parse_sale_to_items(raw_sale)
                buffer.extend(items)
                fetched += len(items)

                updated = parse_timestamp(sale_update_time(raw_sale))
                if updated and (oldest is None or updated < oldest):
                    oldest = updated

            progress(f"Fetched {fetched} items...")
            logger.info(f"   [run {run_id}] Page: {len(raw_sales)} sales, {fetched} items so far")

            if len(buffer) >= self._flush_threshold:
                total += await self._flush(user_id, buffer, progress, total)
                buffer = []
                await self._checkpoint(run_id, user_id, mode, oldest)

            url = next_page_url(data)
            if url:
                await self._pause(stop_event)

        if buffer:
            total += await self._flush(user_id, buffer, progress, total)
            await self._checkpoint(run_id, user_id, mode, oldest)

        return total

    async def _fetch_page(
        self,
        user_id: str,
        url: str,
        grant: AccessGrant
    ) -> Tuple[Dict[str, Any], AccessGrant]:
        """GET one page; on 401 force a token refresh and retry the same page once."""
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(UnauthorizedError),
            stop=stop_after_attempt(2),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    grant = await self._tokens.ensure_valid_token(user_id, force_refresh=True)
                data = await lightspeed_get(self._http_client, url, grant.access_token)
        return data, grant

    async def _flush(
        self,
        user_id: str,
        buffer: List[SoldItem],
        progress: ProgressCallback,
        offset_count: int
    ) -> int:
        return await flush_sold_items(
            self._sold_items,
            user_id,
            buffer,
            on_progress=progress,
            offset_count=offset_count,
            batch_size=self._batch_size,
        )

    async def _checkpoint(
        self,
        run_id: str,
        user_id: str,
        mode: SyncMode,
        oldest: Optional[datetime]
    ) -> None:
        if not mode.checkpoints or oldest is None:
            return
        cursor = format_timestamp(oldest)
        await self._connections.update_sync_cursor(user_id, cursor, mode.started_at)
        logger.info(f"   [run {run_id}] Checkpoint: cursor={cursor}")

    def _check_stop(self, stop_event: Optional[asyncio.Event]) -> None:
        if stop_event is not None and stop_event.is_set():
            raise SyncCancelledError("Sales sync cancelled")

    async def _pause(self, stop_event: Optional[asyncio.Event]) -> None:
        """Inter-page throttle; returns early (and cancels) if stop_event is set."""
        if stop_event is None:
            if self._page_delay > 0:
                await asyncio.sleep(self._page_delay)
            return

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=self._page_delay)
        except asyncio.TimeoutError:
            return
        raise SyncCancelledError("Sales sync cancelled")


async def sync_sales(
    user_id: str,
    http_client: httpx.AsyncClient,
    connections: ConnectionStorePort,
    sold_items: SoldItemStorePort,
    on_progress: Optional[ProgressCallback] = None,
    stop_event: Optional[asyncio.Event] = None
) -> SyncResult:
    """
    Run a Lightspeed sales sync for a user with the configured settings.

    Args:
        user_id: Owner of the connection
        http_client: Async HTTP client
        connections: Connection store
        sold_items: Sold-item store
        on_progress: Receives human-readable status messages
        stop_event: Set it to stop the run between pages

    Returns:
        SyncResult with synced == total == rows persisted
    """
    orchestrator = SalesSyncOrchestrator(http_client, connections, sold_items)
    return await orchestrator.run(user_id, on_progress=on_progress, stop_event=stop_event)
