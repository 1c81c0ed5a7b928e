"""
Pricing sync engine — full, incremental and single-part pricing refresh.

Pricing sync engine.

Runs the sync state machine against the supplier:
- full_sync: fetch the catalog, then refresh every part in batches
- incremental_sync: refresh only stale cache entries
- single_part_update: refresh one part on demand
- process_pending_requests: drain the update request queue

Supplier failures become per-entry last_error values and run counts. Only
persistence failures abort a run; the run's log is closed as failed and
the error propagates to the caller.
Version: 1.0.0
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from supplier_sync.clients.supplier_client import SupplierClient
from supplier_sync.core.constants.supplier import PRICING_ENDPOINT
from supplier_sync.core.constants.sync import (
    DEFAULT_BASE_DELAY_MS,
    DEFAULT_MAX_RETRIES,
    MAX_REQUEST_ATTEMPTS,
    PRICING_BATCH_SIZE,
    REQUEST_DRAIN_LIMIT,
    STALE_THRESHOLD_HOURS,
)
from supplier_sync.core.exceptions import SyncInProgressError
from supplier_sync.db.pricing_cache_store import PricingCacheStore
from supplier_sync.db.sync_log_store import SyncLogStore
from supplier_sync.db.update_request_store import UpdateRequestStore
from supplier_sync.schemas.pricing import (
    RequestProcessingSummary,
    SinglePartResult,
    SyncLogRecord,
    SyncStatus,
    SyncType,
)
from supplier_sync.utils.batch_grouping import calculate_batch_groups, dedupe_part_ids
from supplier_sync.utils.pricing_extract import extract_catalog_part_ids, extract_pricing_rows
from supplier_sync.utils.retry_policy import RetryPolicy
from supplier_sync.utils.schedule_helpers import rate_limit_message

logger = logging.getLogger("pricing_sync_engine")

NOT_RETURNED_ERROR = "Part not returned by supplier"


@dataclass
class RunTally:
    """Counts accumulated over one batched run."""
    total: int = 0
    success: int = 0
    failure: int = 0
    rate_limited: bool = False
    retry_after_seconds: Optional[int] = None
    errors: List[str] = field(default_factory=list)

    @property
    def status(self) -> SyncStatus:
        if self.failure == 0:
            return "completed"
        if self.success > 0:
            return "partial"
        return "failed"

    def error_summary(self) -> Optional[str]:
        if not self.errors:
            return None
        unique = list(dict.fromkeys(self.errors))
        summary = "; ".join(unique[:3])
        if len(unique) > 3:
            summary += f" (+{len(unique) - 3} more)"
        return f"{self.failure} of {self.total} parts failed: {summary}"


class PricingSyncEngine:
    """Orchestrates supplier pricing refreshes into the pricing cache."""

    def __init__(
        self,
        client: SupplierClient,
        retry_policy: RetryPolicy,
        cache_store: PricingCacheStore,
        log_store: SyncLogStore,
        request_store: UpdateRequestStore,
        batch_size: int = PRICING_BATCH_SIZE,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
        max_request_attempts: int = MAX_REQUEST_ATTEMPTS,
        stale_threshold_hours: int = STALE_THRESHOLD_HOURS,
    ):
        self._client = client
        self._retry = retry_policy
        self._cache = cache_store
        self._logs = log_store
        self._requests = request_store
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_request_attempts = max_request_attempts
        self.stale_threshold_hours = stale_threshold_hours
        self._running: set = set()

    # ------------------------------------------------------------------
    # Run bookkeeping
    # ------------------------------------------------------------------

    def is_running(self, sync_type: SyncType) -> bool:
        return sync_type in self._running

    @property
    def running_types(self) -> List[str]:
        return sorted(self._running)

    @property
    def stale_threshold_hours(self) -> int:
        return self._stale_threshold_hours

    @stale_threshold_hours.setter
    def stale_threshold_hours(self, hours: int) -> None:
        # The cache store recomputes is_stale on every read with the same threshold
        self._stale_threshold_hours = hours
        self._cache.stale_threshold_hours = hours

    @asynccontextmanager
    async def _exclusive(self, sync_type: SyncType):
        if sync_type in self._running:
            raise SyncInProgressError(sync_type)
        self._running.add(sync_type)
        try:
            yield
        finally:
            self._running.discard(sync_type)

    async def _abort(self, log: SyncLogRecord, error: BaseException) -> None:
        """Close a run's log as failed after a fatal error, best effort."""
        logger.error(f"{log.sync_type} sync {log.id} aborted: {error}")
        try:
            await self._logs.close(log, "failed", error_message=f"Run aborted: {error}")
        except Exception as close_error:
            logger.error(f"Could not close sync log {log.id}: {close_error}")

    async def _close(self, log: SyncLogRecord, tally: RunTally) -> SyncLogRecord:
        return await self._logs.close(
            log,
            tally.status,
            total_parts=tally.total,
            success_count=tally.success,
            failure_count=tally.failure,
            rate_limited=tally.rate_limited,
            retry_after_seconds=tally.retry_after_seconds,
            error_message=tally.error_summary(),
        )

    # ------------------------------------------------------------------
    # Supplier access
    # ------------------------------------------------------------------

    async def _with_retry(self, operation):
        return await self._retry.execute(
            operation, max_retries=self.max_retries, base_delay_ms=self.base_delay_ms
        )

    async def _sync_parts(self, part_ids: Sequence[str]) -> RunTally:
        """Refresh part_ids in batches, writing successes and failures to the cache."""
        part_ids = dedupe_part_ids(part_ids)
        tally = RunTally(total=len(part_ids))
        batches = calculate_batch_groups(part_ids, self.batch_size)

        for index, batch in enumerate(batches, start=1):
            if tally.rate_limited:
                # Supplier is refusing pricing traffic; remaining batches are not attempted
                tally.failure += len(batch)
                continue

            result = await self._with_retry(lambda batch=batch: self._client.get_bulk_pricing(batch))
            if not result.success:
                logger.warning(
                    f"Batch {index}/{len(batches)} failed after retries "
                    f"({len(batch)} parts): {result.error}"
                )
                tally.failure += len(batch)
                tally.errors.append(result.error or "unknown error")
                await self._cache.record_failures(batch, result.error or "unknown error")
                if result.rate_limited:
                    tally.rate_limited = True
                    tally.retry_after_seconds = result.retry_after_seconds
                continue

            pricing = extract_pricing_rows(result.data)
            found = {}
            missing = []
            for part_id in batch:
                row = pricing.get(part_id.upper())
                if row is None:
                    missing.append(part_id)
                else:
                    found[part_id] = row

            await self._cache.upsert_batch(found)
            tally.success += len(found)
            if missing:
                tally.failure += len(missing)
                tally.errors.append(NOT_RETURNED_ERROR)
                await self._cache.record_failures(missing, NOT_RETURNED_ERROR)

            logger.info(
                f"Batch {index}/{len(batches)}: {len(found)} updated, {len(missing)} missing"
            )

        return tally

    async def _refresh_part(self, part_id: str) -> SinglePartResult:
        result = await self._with_retry(lambda: self._client.get_bulk_pricing([part_id]))
        if not result.success:
            error = result.error or "unknown error"
            await self._cache.record_failures([part_id], error)
            if result.rate_limited:
                return SinglePartResult(
                    success=False,
                    part_id=part_id,
                    message=rate_limit_message(result.retry_after_seconds or 0),
                    rate_limited=True,
                    retry_after_seconds=result.retry_after_seconds,
                )
            return SinglePartResult(
                success=False,
                part_id=part_id,
                message=f"Pricing update failed for {part_id}: {error}",
            )

        row = extract_pricing_rows(result.data).get(part_id.upper())
        if row is None:
            await self._cache.record_failures([part_id], NOT_RETURNED_ERROR)
            return SinglePartResult(
                success=False,
                part_id=part_id,
                message=f"Pricing update failed for {part_id}: {NOT_RETURNED_ERROR}",
            )

        entries = await self._cache.upsert_batch({part_id: row})
        return SinglePartResult(
            success=True,
            part_id=part_id,
            message=f"Pricing updated successfully for {part_id}",
            entry=entries[0],
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def full_sync(self) -> SyncLogRecord:
        """
        Refresh pricing for the supplier's complete catalog.

        The run is failed when the catalog itself cannot be fetched,
        partial when some parts failed, completed otherwise.

        Raises:
            SyncInProgressError: a full sync is already running
            StoreError: the database could not be reached
        """
        async with self._exclusive("full"):
            log = await self._logs.start("full")
            try:
                catalog = await self._with_retry(self._client.get_full_inventory)
                if not catalog.success:
                    logger.error(f"Full sync {log.id}: catalog fetch failed: {catalog.error}")
                    return await self._logs.close(
                        log,
                        "failed",
                        total_parts=0,
                        success_count=0,
                        failure_count=0,
                        rate_limited=catalog.rate_limited,
                        retry_after_seconds=catalog.retry_after_seconds,
                        error_message=f"Catalog fetch failed: {catalog.error}",
                    )

                part_ids = extract_catalog_part_ids(catalog.data)
                logger.info(f"Full sync {log.id}: {len(part_ids)} parts in catalog")
                tally = await self._sync_parts(part_ids)
                return await self._close(log, tally)
            except Exception as e:
                await self._abort(log, e)
                raise

    async def incremental_sync(self, stale_threshold_hours: Optional[int] = None) -> SyncLogRecord:
        """
        Refresh only cache entries that are stale or older than the threshold.

        With nothing stale the run closes as completed with total_parts=0 and
        no supplier call is made.
        """
        threshold = self.stale_threshold_hours if stale_threshold_hours is None else stale_threshold_hours
        async with self._exclusive("incremental"):
            log = await self._logs.start("incremental")
            try:
                await self._cache.mark_stale(threshold)
                part_ids = await self._cache.get_stale_part_ids(threshold)
                logger.info(f"Incremental sync {log.id}: {len(part_ids)} stale parts")
                tally = await self._sync_parts(part_ids)
                return await self._close(log, tally)
            except Exception as e:
                await self._abort(log, e)
                raise

    async def single_part_update(self, part_id: str) -> SinglePartResult:
        """
        Refresh one part now.

        Returns immediately with the remaining wait when the pricing endpoint
        is rate limited; nothing is queued on the caller's behalf.
        """
        part_id = (part_id or "").strip()
        if not part_id:
            return SinglePartResult(success=False, part_id="", message="Part id is required")

        tracker = self._client.rate_limits
        if tracker.is_limited(PRICING_ENDPOINT):
            remaining = tracker.remaining_seconds(PRICING_ENDPOINT)
            return SinglePartResult(
                success=False,
                part_id=part_id,
                message=rate_limit_message(remaining),
                rate_limited=True,
                retry_after_seconds=remaining,
            )

        log = await self._logs.start("single_part")
        try:
            outcome = await self._refresh_part(part_id)
            await self._logs.close(
                log,
                "completed" if outcome.success else "failed",
                total_parts=1,
                success_count=1 if outcome.success else 0,
                failure_count=0 if outcome.success else 1,
                rate_limited=outcome.rate_limited,
                retry_after_seconds=outcome.retry_after_seconds,
                error_message=None if outcome.success else outcome.message,
            )
            return outcome
        except Exception as e:
            await self._abort(log, e)
            raise

    async def process_pending_requests(self, limit: int = REQUEST_DRAIN_LIMIT) -> RequestProcessingSummary:
        """
        Drain pending update requests, highest priority first.

        A failed request goes back to pending until it has failed
        max_request_attempts times, then stays failed. A rate-limited refresh
        releases its request without using an attempt and ends the drain.
        """
        async with self._exclusive("process_requests"):
            log = await self._logs.start("process_requests")
            try:
                summary = await self._drain(limit)
                failures = summary.processed - summary.completed
                if failures == 0:
                    status = "completed"
                elif summary.completed > 0:
                    status = "partial"
                else:
                    status = "failed"
                summary.log = await self._logs.close(
                    log,
                    status,
                    total_parts=summary.processed,
                    success_count=summary.completed,
                    failure_count=failures,
                    rate_limited=summary.rate_limited,
                    retry_after_seconds=self._client.rate_limits.remaining_seconds(PRICING_ENDPOINT) or None,
                    error_message=(
                        f"{summary.failed} failed permanently, {summary.requeued} requeued"
                        if failures else None
                    ),
                )
                return summary
            except Exception as e:
                await self._abort(log, e)
                raise

    async def _release_after_abort(self, request, error: BaseException) -> None:
        """Put an in-flight request back to pending so the next drain picks it up."""
        try:
            await self._requests.release(request, f"Run aborted: {error}")
        except Exception as release_error:
            logger.error(f"Request {request.id} left in processing: {release_error}")

    async def _drain(self, limit: int) -> RequestProcessingSummary:
        summary = RequestProcessingSummary()
        tracker = self._client.rate_limits
        pending = await self._requests.list_pending(limit)
        logger.info(f"Processing {len(pending)} pending pricing update requests")

        for request in pending:
            if tracker.is_limited(PRICING_ENDPOINT):
                summary.rate_limited = True
                logger.info("Pricing endpoint rate limited; leaving remaining requests pending")
                break

            await self._requests.mark_processing(request)
            try:
                outcome = await self._refresh_part(request.part_id)
            except Exception as e:
                await self._release_after_abort(request, e)
                raise
            summary.processed += 1

            if outcome.success:
                await self._requests.mark_completed(request)
                summary.completed += 1
                continue

            if outcome.rate_limited:
                await self._requests.release(request, outcome.message)
                summary.requeued += 1
                summary.rate_limited = True
                logger.info(f"Request {request.id} released: {outcome.message}")
                break

            requeue = request.attempts + 1 < self.max_request_attempts
            attempts = await self._requests.mark_failed(request, outcome.message, requeue=requeue)
            if requeue:
                summary.requeued += 1
            else:
                summary.failed += 1
                logger.warning(
                    f"Request {request.id} for {request.part_id} failed permanently "
                    f"after {attempts} attempts: {outcome.message}"
                )

        return summary
