"""
Sync scheduler — timers that drive the pricing sync engine.

One timer per schedule type (full_sync, incremental_sync, process_requests),
each holding a single pending fire. Every fire re-arms its own timer, so a
slow or failed run never stops the schedule. Runs of the same type never
overlap: a fire or manual trigger is skipped while one is in flight.

Lifecycle: initialize() loads persisted config and descriptors, start()
arms timers, stop() cancels them and lets in-flight runs finish.
Version: 1.0.0
"""

import asyncio
import logging
from collections import deque
from datetime import datetime, timedelta
from functools import partial
from typing import Deque, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from supplier_sync.core.constants.supplier import PRICING_ENDPOINT
from supplier_sync.core.constants.sync import (
    MAX_RECENT_ERRORS,
    MISSED_FULL_SYNC_HOURS,
    RECENT_LOGS_LIMIT,
    SCHEDULE_TYPES,
)
from supplier_sync.core.exceptions import InvalidScheduleConfigError, StoreError, SyncInProgressError
from supplier_sync.db.schedule_store import ScheduleStore
from supplier_sync.db.sync_log_store import SyncLogStore
from supplier_sync.schemas.pricing import (
    RecentError,
    SchedulerConfig,
    SchedulerConfigUpdate,
    SchedulerStatus,
    ScheduleStatus,
    ScheduleType,
    SyncLogRecord,
    TriggerResult,
)
from supplier_sync.services.pricing_sync_engine import PricingSyncEngine
from supplier_sync.utils.clock import Clock, TimerHandle
from supplier_sync.utils.rate_limiter import RateLimitTracker
from supplier_sync.utils.schedule_helpers import compute_next_run, rate_limit_message, seconds_until

logger = logging.getLogger("sync_scheduler")

SYNC_TYPE_FOR_SCHEDULE = {
    "full_sync": "full",
    "incremental_sync": "incremental",
    "process_requests": "process_requests",
}

LABELS = {
    "full_sync": "Full sync",
    "incremental_sync": "Incremental sync",
    "process_requests": "Request processing",
}

SYNC_IN_PROGRESS_MESSAGE = "Sync already in progress"


class SyncScheduler:
    """Owns the pricing schedules and the manual "sync now" entry points."""

    def __init__(
        self,
        engine: PricingSyncEngine,
        schedule_store: ScheduleStore,
        log_store: SyncLogStore,
        rate_limits: RateLimitTracker,
        clock: Clock,
        config: Optional[SchedulerConfig] = None,
        timezone: str = "UTC",
    ):
        self._engine = engine
        self._store = schedule_store
        self._logs = log_store
        self._rate_limits = rate_limits
        self._clock = clock
        self._config = config or SchedulerConfig()
        self._timezone = timezone
        self._timers: Dict[str, TimerHandle] = {}
        self._next_runs: Dict[str, datetime] = {}
        self._active: set = set()
        self._tasks: set = set()
        self._recent_errors: Deque[RecentError] = deque(maxlen=MAX_RECENT_ERRORS)
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_started(self) -> bool:
        return self._started

    async def initialize(self) -> None:
        """Load persisted config (saving defaults on first run) and ensure descriptors exist."""
        stored = await self._store.load_config()
        if stored is None:
            await self._store.save_config(self._config)
            logger.info("No stored scheduler config; saved defaults")
        else:
            self._config = stored
        self._apply_to_engine()
        await self._store.ensure_descriptors(self._enabled_flags())
        logger.info(f"Scheduler initialized: {self._config.model_dump()}")

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        for schedule_type in SCHEDULE_TYPES:
            if self._config.schedule_enabled(schedule_type):
                await self._arm(schedule_type)
        logger.info(f"Scheduler started; armed {sorted(self._timers)}")

    async def stop(self, wait: bool = False) -> None:
        """Cancel all timers. In-flight runs finish; wait=True awaits them."""
        self._started = False
        for schedule_type in list(self._timers):
            self._disarm(schedule_type)
        logger.info("Scheduler stopped")
        if wait:
            await self.join()

    async def join(self) -> None:
        """Wait for every background run launched so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def next_run(self, schedule_type: ScheduleType) -> Optional[datetime]:
        return self._next_runs.get(schedule_type)

    async def _arm(self, schedule_type: ScheduleType) -> None:
        self._disarm(schedule_type)
        now = self._clock.now()
        next_run = compute_next_run(schedule_type, now, self._config, self._timezone)
        self._next_runs[schedule_type] = next_run
        self._timers[schedule_type] = self._clock.call_later(
            seconds_until(next_run, now), partial(self._on_timer, schedule_type)
        )
        logger.info(f"{LABELS[schedule_type]} scheduled for {next_run.isoformat()}")
        try:
            await self._store.set_next_run(schedule_type, next_run)
        except StoreError as e:
            # The timer is armed either way; only the displayed next_run is out of date
            logger.warning(f"Could not persist next_run for {schedule_type}: {e}")

    def _disarm(self, schedule_type: ScheduleType) -> None:
        handle = self._timers.pop(schedule_type, None)
        if handle is not None:
            handle.cancel()
        self._next_runs.pop(schedule_type, None)

    def _on_timer(self, schedule_type: ScheduleType) -> None:
        self._timers.pop(schedule_type, None)
        self._spawn(self._fire(schedule_type))

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _is_busy(self, schedule_type: ScheduleType) -> bool:
        return (
            schedule_type in self._active
            or self._engine.is_running(SYNC_TYPE_FOR_SCHEDULE[schedule_type])
        )

    def _pricing_limited(self, schedule_type: ScheduleType) -> bool:
        return schedule_type != "process_requests" and self._rate_limits.is_limited(PRICING_ENDPOINT)

    async def _fire(self, schedule_type: ScheduleType) -> None:
        try:
            if self._pricing_limited(schedule_type):
                remaining = self._rate_limits.remaining_seconds(PRICING_ENDPOINT)
                logger.info(
                    f"Skipping scheduled {LABELS[schedule_type].lower()}: "
                    f"pricing endpoint rate limited for {remaining}s"
                )
            elif self._is_busy(schedule_type):
                logger.info(f"Skipping scheduled {LABELS[schedule_type].lower()}: previous run still active")
            else:
                self._active.add(schedule_type)
                await self._run_marked(schedule_type)
        finally:
            if (
                self._started
                and self._config.schedule_enabled(schedule_type)
                and schedule_type not in self._timers
            ):
                await self._arm(schedule_type)

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def _run_marked(self, schedule_type: ScheduleType) -> TriggerResult:
        try:
            return await self._run(schedule_type)
        finally:
            self._active.discard(schedule_type)

    async def _run(self, schedule_type: ScheduleType) -> TriggerResult:
        """Run one schedule type with descriptor bookkeeping. Never raises."""
        label = LABELS[schedule_type]
        try:
            await self._store.record_run_start(schedule_type, self._clock.now())
            if schedule_type == "full_sync":
                log = await self._engine.full_sync()
                result = self._sync_outcome(label, log)
            elif schedule_type == "incremental_sync":
                log = await self._engine.incremental_sync(self._config.stale_threshold_hours)
                result = self._sync_outcome(label, log)
            else:
                summary = await self._engine.process_pending_requests()
                result = TriggerResult(
                    success=summary.log is None or summary.log.status != "failed",
                    message=(
                        f"{label} completed: {summary.processed} processed, "
                        f"{summary.completed} completed, {summary.requeued} requeued, "
                        f"{summary.failed} failed"
                    ),
                    log=summary.log,
                )
        except SyncInProgressError:
            return TriggerResult(success=False, message=SYNC_IN_PROGRESS_MESSAGE)
        except Exception as e:
            logger.error(f"{label} run failed: {e}")
            self._remember_error(schedule_type, str(e))
            try:
                await self._store.record_run_finish(schedule_type, False, str(e))
            except StoreError as store_error:
                logger.error(f"Could not record {schedule_type} failure: {store_error}")
            return TriggerResult(success=False, message=f"{label} failed: {e}")

        error = None
        if result.log is not None and result.log.status != "completed":
            error = result.log.error_message or result.message
        if error:
            self._remember_error(schedule_type, error)
        try:
            await self._store.record_run_finish(schedule_type, result.success, error)
        except StoreError as e:
            logger.error(f"Could not record {schedule_type} completion: {e}")
        return result

    @staticmethod
    def _sync_outcome(label: str, log: SyncLogRecord) -> TriggerResult:
        if log.status == "completed":
            message = f"{label} completed successfully: {log.success_count or 0} parts updated"
        elif log.status == "partial":
            message = (
                f"{label} completed with errors: {log.success_count or 0} updated, "
                f"{log.failure_count or 0} failed"
            )
        else:
            message = f"{label} failed: {log.error_message or 'unknown error'}"
        return TriggerResult(success=log.status != "failed", message=message, log=log)

    def _remember_error(self, schedule_type: str, message: str) -> None:
        self._recent_errors.append(
            RecentError(timestamp=self._clock.now(), schedule_type=schedule_type, message=message)
        )

    # ------------------------------------------------------------------
    # Manual triggers
    # ------------------------------------------------------------------

    async def _trigger(self, schedule_type: ScheduleType, wait: bool) -> TriggerResult:
        if self._is_busy(schedule_type):
            return TriggerResult(success=False, message=SYNC_IN_PROGRESS_MESSAGE)
        if self._pricing_limited(schedule_type):
            remaining = self._rate_limits.remaining_seconds(PRICING_ENDPOINT)
            return TriggerResult(success=False, message=rate_limit_message(remaining))

        self._active.add(schedule_type)
        if not wait:
            self._spawn(self._run_marked(schedule_type))
            return TriggerResult(success=True, message=f"{LABELS[schedule_type]} started")
        return await self._run_marked(schedule_type)

    async def trigger_full_sync(self, wait: bool = True) -> TriggerResult:
        return await self._trigger("full_sync", wait)

    async def trigger_incremental_sync(self, wait: bool = True) -> TriggerResult:
        return await self._trigger("incremental_sync", wait)

    async def trigger_request_processing(self, wait: bool = True) -> TriggerResult:
        return await self._trigger("process_requests", wait)

    async def run_missed_syncs(self) -> Optional[TriggerResult]:
        """Start a background full sync when the last one is missing or too old."""
        if not self._config.enable_auto_sync:
            return None
        last = await self._logs.latest("full", statuses=["completed", "partial"])
        now = self._clock.now()
        if last is not None:
            finished = last.completed_at or last.started_at
            if now - finished <= timedelta(hours=MISSED_FULL_SYNC_HOURS):
                return None
            logger.info(f"Last full sync finished {finished.isoformat()}; running catch-up sync")
        else:
            logger.info("No previous full sync found; running initial sync")
        return await self._trigger("full_sync", wait=False)

    # ------------------------------------------------------------------
    # Status & config
    # ------------------------------------------------------------------

    def is_running(self, schedule_type: Optional[ScheduleType] = None) -> bool:
        if schedule_type is not None:
            return self._is_busy(schedule_type)
        return any(self._is_busy(t) for t in SCHEDULE_TYPES)

    @property
    def recent_errors(self) -> List[RecentError]:
        return list(self._recent_errors)

    def get_config(self) -> SchedulerConfig:
        return self._config.model_copy()

    async def get_status(self) -> SchedulerStatus:
        descriptors = {d.schedule_type: d for d in await self._store.list_descriptors()}
        schedules = []
        for schedule_type in SCHEDULE_TYPES:
            descriptor = descriptors.get(schedule_type)
            data = descriptor.model_dump() if descriptor else {"schedule_type": schedule_type}
            if schedule_type in self._next_runs:
                data["next_run"] = self._next_runs[schedule_type]
            data["enabled"] = self._config.schedule_enabled(schedule_type)
            schedules.append(ScheduleStatus(**data, is_running=self._is_busy(schedule_type)))
        return SchedulerStatus(
            is_started=self._started,
            config=self.get_config(),
            schedules=schedules,
            rate_limits=self._rate_limits.all_active(),
            recent_logs=await self._logs.list_recent(RECENT_LOGS_LIMIT),
            recent_errors=self.recent_errors,
        )

    async def update_config(
        self, update: Union[SchedulerConfig, SchedulerConfigUpdate]
    ) -> SchedulerConfig:
        """
        Validate, persist and apply a config change.

        A running scheduler re-arms the timers whose timing changed and
        arms or disarms the ones whose enabled flag flipped.

        Raises:
            InvalidScheduleConfigError: merged config fails validation
        """
        try:
            merged = SchedulerConfig.model_validate(
                {**self._config.model_dump(), **update.model_dump(exclude_none=True)}
            )
        except PydanticValidationError as e:
            raise InvalidScheduleConfigError(str(e)) from e

        await self._store.save_config(merged)
        previous = self._config
        self._config = merged
        self._apply_to_engine()
        await self._store.ensure_descriptors(self._enabled_flags())

        if self._started:
            timing_changed = {
                "full_sync": previous.full_sync_time != merged.full_sync_time,
                "incremental_sync": (
                    previous.incremental_sync_interval_hours != merged.incremental_sync_interval_hours
                ),
                "process_requests": (
                    previous.request_processing_interval_minutes
                    != merged.request_processing_interval_minutes
                ),
            }
            for schedule_type in SCHEDULE_TYPES:
                if not merged.schedule_enabled(schedule_type):
                    if schedule_type in self._timers:
                        self._disarm(schedule_type)
                        await self._store.set_next_run(schedule_type, None)
                elif timing_changed[schedule_type] or schedule_type not in self._timers:
                    await self._arm(schedule_type)

        logger.info(f"Scheduler config updated: {merged.model_dump()}")
        return merged

    def _apply_to_engine(self) -> None:
        self._engine.max_retries = self._config.max_retries
        self._engine.stale_threshold_hours = self._config.stale_threshold_hours

    def _enabled_flags(self) -> Dict[str, bool]:
        return {t: self._config.schedule_enabled(t) for t in SCHEDULE_TYPES}
