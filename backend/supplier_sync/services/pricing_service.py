"""
Pricing service — application-facing entry points for pricing sync.

Everything here returns plain result objects. Store outages and engine
errors are logged and turned into failure results or empty reads so
callers such as the routes and the admin UI never see an exception.
Version: 1.0.0
"""

import logging
from typing import List, Optional, Sequence, Union

from supplier_sync.clients.supplier_client import SupplierClient
from supplier_sync.core.constants.sync import RECENT_LOGS_LIMIT
from supplier_sync.core.exceptions import StoreError, SupplierSyncException
from supplier_sync.db.pricing_cache_store import PricingCacheStore
from supplier_sync.db.sync_log_store import SyncLogStore
from supplier_sync.db.update_request_store import UpdateRequestStore
from supplier_sync.schemas.pricing import (
    PricingCacheEntry,
    PricingSyncStatus,
    Priority,
    SchedulerConfig,
    SchedulerConfigUpdate,
    SchedulerStatus,
    SinglePartResult,
    SyncLogRecord,
    TriggerResult,
    UpdateRequestAck,
)
from supplier_sync.schemas.supplier import SupplierResult
from supplier_sync.services.pricing_sync_engine import PricingSyncEngine
from supplier_sync.services.sync_scheduler import SyncScheduler

logger = logging.getLogger("pricing_service")


class PricingService:
    def __init__(
        self,
        engine: PricingSyncEngine,
        scheduler: SyncScheduler,
        cache_store: PricingCacheStore,
        log_store: SyncLogStore,
        request_store: UpdateRequestStore,
        client: SupplierClient,
    ):
        self._engine = engine
        self._scheduler = scheduler
        self._cache = cache_store
        self._logs = log_store
        self._requests = request_store
        self._client = client

    # -- Manual triggers ------------------------------------------------

    async def trigger_full_sync(self, wait: bool = True) -> TriggerResult:
        return await self._scheduler.trigger_full_sync(wait=wait)

    async def trigger_incremental_sync(self, wait: bool = True) -> TriggerResult:
        return await self._scheduler.trigger_incremental_sync(wait=wait)

    async def trigger_request_processing(self, wait: bool = True) -> TriggerResult:
        return await self._scheduler.trigger_request_processing(wait=wait)

    async def update_part_now(self, part_id: str) -> SinglePartResult:
        """Refresh one part immediately, bypassing the queue."""
        try:
            return await self._engine.single_part_update(part_id)
        except SupplierSyncException as e:
            logger.error(f"Immediate pricing update for {part_id} failed: {e}")
            return SinglePartResult(success=False, part_id=part_id, message=f"Pricing update failed: {e}")

    # -- Update requests ------------------------------------------------

    async def request_pricing_update(
        self, part_id: str, priority: Priority = "medium", requested_by: Optional[str] = None
    ) -> UpdateRequestAck:
        """Queue a refresh and acknowledge immediately; the fetch happens on the next drain."""
        part_id = (part_id or "").strip()
        if not part_id:
            return UpdateRequestAck(success=False, message="Part id is required")
        try:
            request, created = await self._requests.enqueue(part_id, priority, requested_by)
        except StoreError as e:
            logger.error(f"Could not queue pricing update for {part_id}: {e}")
            return UpdateRequestAck(success=False, message=f"Failed to request pricing update: {e}")

        if created:
            message = f"Pricing update requested for {part_id}"
        else:
            message = f"Pricing update already pending for {part_id}"
        return UpdateRequestAck(success=True, message=message, request_id=request.id)

    # -- Reads ----------------------------------------------------------

    async def get_pricing_from_cache(
        self,
        part_ids: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        include_stale: bool = True,
    ) -> List[PricingCacheEntry]:
        try:
            return await self._cache.get_entries(
                part_ids=part_ids, limit=limit, offset=offset, include_stale=include_stale
            )
        except StoreError as e:
            logger.error(f"Pricing cache read failed: {e}")
            return []

    async def get_sync_logs(self, limit: int = 50) -> List[SyncLogRecord]:
        try:
            return await self._logs.list_recent(limit)
        except StoreError as e:
            logger.error(f"Sync log read failed: {e}")
            return []

    async def get_scheduler_status(self) -> Optional[SchedulerStatus]:
        try:
            return await self._scheduler.get_status()
        except StoreError as e:
            logger.error(f"Scheduler status unavailable: {e}")
            return None

    async def get_pricing_sync_status(self) -> PricingSyncStatus:
        """Cache coverage, queue depth and run statistics for dashboards."""
        status = PricingSyncStatus(is_running=self._scheduler.is_running())
        next_runs = [
            run for run in (self._scheduler.next_run("full_sync"), self._scheduler.next_run("incremental_sync"))
            if run is not None
        ]
        status.next_scheduled_sync = min(next_runs) if next_runs else None
        try:
            last_full = await self._logs.latest("full", statuses=["completed", "partial"])
            last_incremental = await self._logs.latest("incremental", statuses=["completed", "partial"])
            status.last_full_sync = last_full.completed_at if last_full else None
            status.last_incremental_sync = last_incremental.completed_at if last_incremental else None
            status.total_parts = await self._cache.count_entries()
            status.stale_parts = await self._cache.count_stale()
            status.synced_parts = status.total_parts - status.stale_parts
            status.pending_updates = await self._requests.count_pending()
            status.recent_logs = await self._logs.list_recent(RECENT_LOGS_LIMIT)
        except StoreError as e:
            logger.error(f"Pricing sync status incomplete: {e}")
            return status

        finished = [log for log in status.recent_logs if log.status != "running"]
        if finished:
            failed = sum(1 for log in finished if log.status == "failed")
            status.error_rate = round(failed / len(finished), 4)
            durations = [log.duration_seconds for log in finished if log.duration_seconds is not None]
            if durations:
                status.average_sync_time = round(sum(durations) / len(durations), 2)
        return status

    # -- Config ---------------------------------------------------------

    def get_config(self) -> SchedulerConfig:
        return self._scheduler.get_config()

    async def update_config(self, update: Union[SchedulerConfig, SchedulerConfigUpdate]) -> SchedulerConfig:
        """Raises InvalidScheduleConfigError or StoreError; routes map them to HTTP errors."""
        return await self._scheduler.update_config(update)

    # -- Supplier -------------------------------------------------------

    async def test_supplier_connection(self) -> SupplierResult:
        result = await self._client.test_connection()
        if result.success:
            logger.info(f"Supplier connection ok in {result.response_time_ms}ms")
        return result
