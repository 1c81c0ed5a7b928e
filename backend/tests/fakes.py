"""
In-memory test doubles for the pricing sync stack.

FakeClock drives time by hand. The in-memory stores implement the same
async interface as the Supabase stores. FakeSupplierClient answers pricing
and catalog calls from a dict and honours the rate-limit pre-check like
the real client.

Version: 1.0.0
"""
import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from supplier_sync.core.constants.supplier import INVENTORY_FULL_ENDPOINT, PRICING_ENDPOINT
from supplier_sync.core.constants.sync import MAX_ERROR_MESSAGE_LENGTH, SCHEDULE_TYPES
from supplier_sync.core.exceptions import StoreError
from supplier_sync.db.update_request_store import drain_order
from supplier_sync.schemas.pricing import (
    PricingCacheEntry,
    ScheduleDescriptor,
    SchedulerConfig,
    SyncLogRecord,
    UpdateRequest,
)
from supplier_sync.schemas.supplier import SupplierErrorType, SupplierResult
from supplier_sync.utils.rate_limiter import RateLimitTracker

PRIORITY_RANK = {"high": 0, "medium": 1, "low": 2}


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

class FakeTimer:
    def __init__(self, deadline: datetime, callback: Callable):
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeClock:
    """Manually advanced clock; sleep() moves time forward instantly."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 15, 3, 0, tzinfo=timezone.utc)
        self.sleeps: List[float] = []
        self.timers: List[FakeTimer] = []

    def now(self) -> datetime:
        return self._now

    def set(self, when: datetime) -> None:
        self._now = when

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self._now += timedelta(seconds=seconds)
        await asyncio.sleep(0)

    def call_later(self, delay: float, callback: Callable) -> FakeTimer:
        timer = FakeTimer(self._now + timedelta(seconds=delay), callback)
        self.timers.append(timer)
        return timer

    @property
    def pending_timers(self) -> List[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> int:
        """Move time forward, firing due timers in deadline order. Returns timers fired."""
        target = self._now + timedelta(seconds=seconds)
        fired = 0
        while True:
            due = [t for t in self.pending_timers if t.deadline <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.deadline)
            self._now = max(self._now, timer.deadline)
            timer.fired = True
            timer.callback()
            fired += 1
        self._now = target
        return fired

    @property
    def total_slept(self) -> float:
        return sum(self.sleeps)


# ---------------------------------------------------------------------------
# Supplier
# ---------------------------------------------------------------------------

def failure(error_type: SupplierErrorType, error: str = "boom", retry_after: int = None,
            endpoint: str = PRICING_ENDPOINT) -> SupplierResult:
    return SupplierResult.failure(endpoint, error_type, error, retry_after_seconds=retry_after)


class FakeSupplierClient:
    """
    Scripted supplier.

    pricing_hook(part_ids, call_number) may return a failure SupplierResult
    to answer that call with; returning None answers from self.prices.
    """

    def __init__(self, clock: FakeClock, prices: Optional[Dict[str, dict]] = None):
        self.rate_limits = RateLimitTracker(clock)
        self.prices: Dict[str, dict] = prices or {}
        self.catalog: Optional[List[str]] = None
        self.catalog_failure: Optional[SupplierResult] = None
        self.pricing_hook: Optional[Callable[[List[str], int], Optional[SupplierResult]]] = None
        self.pricing_calls: List[List[str]] = []
        self.catalog_calls = 0

    def _limited(self, endpoint: str) -> Optional[SupplierResult]:
        if self.rate_limits.is_limited(endpoint):
            return failure(
                SupplierErrorType.RATE_LIMIT,
                "Rate limited",
                retry_after=self.rate_limits.remaining_seconds(endpoint),
                endpoint=endpoint,
            )
        return None

    async def get_bulk_pricing(self, part_ids) -> SupplierResult:
        limited = self._limited(PRICING_ENDPOINT)
        if limited is not None:
            return limited
        self.pricing_calls.append(list(part_ids))
        if self.pricing_hook is not None:
            scripted = self.pricing_hook(list(part_ids), len(self.pricing_calls))
            if scripted is not None:
                if scripted.rate_limited:
                    self.rate_limits.record_limit(PRICING_ENDPOINT, scripted.retry_after_seconds or 60)
                return scripted
        rows = [
            {"partId": part_id, **self.prices[part_id]}
            for part_id in part_ids
            if part_id in self.prices
        ]
        return SupplierResult.ok(PRICING_ENDPOINT, {"prices": rows})

    async def get_full_inventory(self) -> SupplierResult:
        self.catalog_calls += 1
        if self.catalog_failure is not None:
            return self.catalog_failure
        catalog = self.catalog if self.catalog is not None else list(self.prices)
        return SupplierResult.ok(
            INVENTORY_FULL_ENDPOINT, {"items": [{"partId": p, "quantity": 1} for p in catalog]}
        )

    async def test_connection(self) -> SupplierResult:
        return SupplierResult.ok("/utility/report-my-ip", {"ip": "127.0.0.1"}, response_time_ms=12)


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class _Unreachable:
    """Mixin: every awaited store call raises StoreError once `down` is set."""
    table = "memory"
    down = False

    def _check(self, operation: str = "select") -> None:
        if self.down:
            raise StoreError(self.table, operation, "connection refused")


class InMemoryPricingCacheStore(_Unreachable):
    table = "pricing_cache"

    def __init__(self, clock: FakeClock, stale_threshold_hours: int = 24):
        self._clock = clock
        self.stale_threshold_hours = stale_threshold_hours
        self.entries: Dict[str, PricingCacheEntry] = {}

    def _fresh(self, entry: PricingCacheEntry) -> PricingCacheEntry:
        cutoff = self._clock.now() - timedelta(hours=self.stale_threshold_hours)
        return entry.model_copy(update={
            "is_stale": entry.last_supplier_sync is None or entry.last_supplier_sync < cutoff
        })

    def seed(self, part_id: str, synced_at: datetime, price: float = 10.0, **extra) -> PricingCacheEntry:
        entry = PricingCacheEntry(
            part_id=part_id, price=price, cost=price * 0.6,
            last_updated=synced_at, last_supplier_sync=synced_at, **extra,
        )
        self.entries[part_id] = entry
        return entry

    async def get_entry(self, part_id):
        self._check()
        entry = self.entries.get(part_id)
        return self._fresh(entry) if entry else None

    async def get_entries(self, part_ids=None, limit=None, offset=0, include_stale=True):
        self._check()
        if part_ids is not None and not part_ids:
            return []
        entries = [self._fresh(e) for e in self.entries.values()]
        if part_ids:
            entries = [e for e in entries if e.part_id in part_ids]
        if not include_stale:
            entries = [e for e in entries if not e.is_stale]
        entries.sort(key=lambda e: e.last_supplier_sync, reverse=True)
        if limit is not None:
            entries = entries[offset:offset + limit]
        return entries

    async def get_stale_part_ids(self, threshold_hours):
        self._check()
        cutoff = self._clock.now() - timedelta(hours=threshold_hours)
        return [
            e.part_id for e in sorted(self.entries.values(), key=lambda e: e.last_supplier_sync)
            if e.is_stale or e.last_supplier_sync < cutoff
        ]

    async def count_entries(self):
        self._check()
        return len(self.entries)

    async def count_stale(self):
        self._check()
        return sum(1 for e in self.entries.values() if self._fresh(e).is_stale)

    async def upsert_batch(self, pricing_by_part):
        self._check("upsert")
        now = self._clock.now()
        written = []
        for part_id, pricing in pricing_by_part.items():
            entry = PricingCacheEntry(
                part_id=part_id,
                price=pricing.get("price"),
                cost=pricing.get("cost"),
                list_price=pricing.get("list_price"),
                core_charge=pricing.get("core_charge"),
                currency=pricing.get("currency") or "USD",
                last_updated=now,
                last_supplier_sync=now,
                is_stale=False,
                sync_attempts=0,
                last_error=None,
            )
            self.entries[part_id] = entry
            written.append(entry)
        return written

    async def record_failures(self, part_ids, error):
        self._check("upsert")
        updated = []
        for part_id in part_ids:
            entry = self.entries.get(part_id)
            if entry is None:
                continue
            entry = entry.model_copy(update={
                "sync_attempts": entry.sync_attempts + 1,
                "last_error": (error or "")[:MAX_ERROR_MESSAGE_LENGTH],
            })
            self.entries[part_id] = entry
            updated.append(entry)
        return updated

    async def mark_stale(self, threshold_hours=None):
        self._check("update")
        hours = self.stale_threshold_hours if threshold_hours is None else threshold_hours
        cutoff = self._clock.now() - timedelta(hours=hours)
        touched = 0
        for part_id, entry in self.entries.items():
            if not entry.is_stale and entry.last_supplier_sync < cutoff:
                self.entries[part_id] = entry.model_copy(update={"is_stale": True})
                touched += 1
        return touched


class InMemorySyncLogStore(_Unreachable):
    table = "pricing_sync_logs"

    def __init__(self, clock: FakeClock):
        self._clock = clock
        self.records: Dict[str, SyncLogRecord] = {}
        self.close_calls = 0

    async def start(self, sync_type):
        self._check("insert")
        record = SyncLogRecord(id=str(uuid.uuid4()), sync_type=sync_type, started_at=self._clock.now())
        self.records[record.id] = record
        return record

    async def close(self, record, status, total_parts=None, success_count=None, failure_count=None,
                    rate_limited=False, retry_after_seconds=None, error_message=None):
        self._check("update")
        self.close_calls += 1
        closed = record.model_copy(update={
            "status": status,
            "completed_at": self._clock.now(),
            "total_parts": total_parts,
            "success_count": success_count,
            "failure_count": failure_count,
            "rate_limited": rate_limited,
            "retry_after_seconds": retry_after_seconds,
            "error_message": error_message,
        })
        if self.records[record.id].status == "running":
            self.records[record.id] = closed
        return closed

    async def get(self, log_id):
        self._check()
        return self.records.get(log_id)

    async def list_recent(self, limit=10, sync_type=None):
        self._check()
        records = [r for r in self.records.values() if sync_type is None or r.sync_type == sync_type]
        records.sort(key=lambda r: r.started_at, reverse=True)
        return records[:limit]

    async def latest(self, sync_type, statuses=None):
        self._check()
        records = [
            r for r in self.records.values()
            if r.sync_type == sync_type and (not statuses or r.status in statuses)
        ]
        return max(records, key=lambda r: r.started_at) if records else None

    def of_type(self, sync_type) -> List[SyncLogRecord]:
        return [r for r in self.records.values() if r.sync_type == sync_type]


class InMemoryUpdateRequestStore(_Unreachable):
    table = "pricing_update_requests"

    def __init__(self, clock: FakeClock):
        self._clock = clock
        self.requests: Dict[str, UpdateRequest] = {}

    async def enqueue(self, part_id, priority="medium", requested_by=None):
        self._check("insert")
        for request in self.requests.values():
            if request.part_id == part_id and request.status == "pending":
                if PRIORITY_RANK[priority] < PRIORITY_RANK[request.priority]:
                    request.priority = priority
                return request, False
        request = UpdateRequest(
            id=str(uuid.uuid4()), part_id=part_id, priority=priority,
            requested_at=self._clock.now(), requested_by=requested_by,
        )
        self.requests[request.id] = request
        return request, True

    async def get(self, request_id):
        self._check()
        return self.requests.get(request_id)

    async def list_pending(self, limit=50):
        self._check()
        pending = [r.model_copy() for r in self.requests.values() if r.status == "pending"]
        return sorted(pending, key=drain_order)[:limit]

    async def count_pending(self):
        self._check()
        return sum(1 for r in self.requests.values() if r.status == "pending")

    async def mark_processing(self, request):
        self._check("update")
        stored = self.requests[request.id]
        stored.status = "processing"
        stored.last_attempt = self._clock.now()

    async def mark_completed(self, request):
        self._check("update")
        stored = self.requests[request.id]
        stored.status = "completed"
        stored.attempts = request.attempts + 1
        stored.error_message = None

    async def mark_failed(self, request, error, requeue):
        self._check("update")
        stored = self.requests[request.id]
        stored.attempts = request.attempts + 1
        stored.status = "pending" if requeue else "failed"
        stored.error_message = error
        return stored.attempts

    async def release(self, request, reason):
        self._check("update")
        stored = self.requests[request.id]
        stored.status = "pending"
        stored.error_message = reason


class InMemoryScheduleStore(_Unreachable):
    table = "pricing_sync_schedules"

    def __init__(self):
        self.descriptors: Dict[str, ScheduleDescriptor] = {}
        self.config: Optional[SchedulerConfig] = None

    async def list_descriptors(self):
        self._check()
        return [self.descriptors[t].model_copy() for t in SCHEDULE_TYPES if t in self.descriptors]

    async def get_descriptor(self, schedule_type):
        self._check()
        descriptor = self.descriptors.get(schedule_type)
        return descriptor.model_copy() if descriptor else None

    async def ensure_descriptors(self, enabled):
        self._check("upsert")
        for schedule_type in SCHEDULE_TYPES:
            descriptor = self.descriptors.setdefault(
                schedule_type, ScheduleDescriptor(schedule_type=schedule_type)
            )
            descriptor.enabled = enabled.get(schedule_type, descriptor.enabled)
        return await self.list_descriptors()

    async def set_next_run(self, schedule_type, next_run):
        self._check("update")
        self.descriptors.setdefault(schedule_type, ScheduleDescriptor(schedule_type=schedule_type))
        self.descriptors[schedule_type].next_run = next_run

    async def record_run_start(self, schedule_type, started_at):
        self._check("upsert")
        descriptor = self.descriptors.setdefault(schedule_type, ScheduleDescriptor(schedule_type=schedule_type))
        descriptor.last_run = started_at
        descriptor.run_count += 1
        return descriptor.model_copy()

    async def record_run_finish(self, schedule_type, success, error=None):
        self._check("upsert")
        descriptor = self.descriptors.setdefault(schedule_type, ScheduleDescriptor(schedule_type=schedule_type))
        if success:
            descriptor.success_count += 1
        else:
            descriptor.failure_count += 1
        descriptor.last_error = error
        return descriptor.model_copy()

    async def load_config(self):
        self._check()
        return self.config.model_copy() if self.config else None

    async def save_config(self, config):
        self._check("upsert")
        self.config = config.model_copy()
