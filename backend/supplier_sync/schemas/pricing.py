"""
Pricing schemas — cache entries, sync logs, update requests and scheduler state.

Pricing sync schemas.

Defines the domain records persisted by the stores and the result objects
returned by the engine, scheduler and service facade.
Version: 1.0.0
"""
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from supplier_sync.core.constants.sync import (
    DEFAULT_CURRENCY,
    DEFAULT_FULL_SYNC_TIME,
    DEFAULT_INCREMENTAL_INTERVAL_HOURS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_REQUEST_INTERVAL_MINUTES,
    STALE_THRESHOLD_HOURS,
)

SyncType = Literal["full", "incremental", "single_part", "process_requests"]
SyncStatus = Literal["running", "completed", "failed", "partial"]
ScheduleType = Literal["full_sync", "incremental_sync", "process_requests"]
Priority = Literal["high", "medium", "low"]
RequestStatus = Literal["pending", "processing", "completed", "failed"]

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class RateLimitWindow(BaseModel):
    endpoint: str
    started_at: datetime
    retry_after_seconds: int

    @property
    def expires_at(self) -> datetime:
        return self.started_at + timedelta(seconds=self.retry_after_seconds)


class PricingCacheEntry(BaseModel):
    """Last-known supplier pricing for one part."""
    part_id: str
    price: Optional[float] = None
    cost: Optional[float] = None
    list_price: Optional[float] = None
    core_charge: Optional[float] = None
    currency: str = DEFAULT_CURRENCY
    last_updated: Optional[datetime] = None
    last_supplier_sync: Optional[datetime] = None
    is_stale: bool = False
    sync_attempts: int = 0
    last_error: Optional[str] = None


class SyncLogRecord(BaseModel):
    id: Optional[str] = None
    sync_type: SyncType
    started_at: datetime
    completed_at: Optional[datetime] = None
    status: SyncStatus = "running"
    total_parts: Optional[int] = None
    success_count: Optional[int] = None
    failure_count: Optional[int] = None
    rate_limited: bool = False
    retry_after_seconds: Optional[int] = None
    error_message: Optional[str] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()


class UpdateRequest(BaseModel):
    id: Optional[str] = None
    part_id: str
    priority: Priority = "medium"
    requested_at: datetime
    requested_by: Optional[str] = None
    status: RequestStatus = "pending"
    attempts: int = 0
    last_attempt: Optional[datetime] = None
    error_message: Optional[str] = None


class ScheduleDescriptor(BaseModel):
    schedule_type: ScheduleType
    enabled: bool = True
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    run_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    last_error: Optional[str] = None


class SchedulerConfig(BaseModel):
    """Operator-tunable scheduler settings, persisted as a singleton row."""
    full_sync_time: str = DEFAULT_FULL_SYNC_TIME
    incremental_sync_interval_hours: int = Field(default=DEFAULT_INCREMENTAL_INTERVAL_HOURS, gt=0)
    request_processing_interval_minutes: int = Field(default=DEFAULT_REQUEST_INTERVAL_MINUTES, gt=0)
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    stale_threshold_hours: int = Field(default=STALE_THRESHOLD_HOURS, gt=0)
    enable_auto_sync: bool = True
    enable_request_processing: bool = True

    @field_validator("full_sync_time")
    @classmethod
    def validate_full_sync_time(cls, value: str) -> str:
        if not _HHMM.match(value):
            raise ValueError("full_sync_time must be HH:MM between 00:00 and 23:59")
        return value

    def schedule_enabled(self, schedule_type: str) -> bool:
        if schedule_type == "process_requests":
            return self.enable_request_processing
        return self.enable_auto_sync


class SchedulerConfigUpdate(BaseModel):
    """Partial config update; unset fields keep their current value."""
    full_sync_time: Optional[str] = None
    incremental_sync_interval_hours: Optional[int] = None
    request_processing_interval_minutes: Optional[int] = None
    max_retries: Optional[int] = None
    stale_threshold_hours: Optional[int] = None
    enable_auto_sync: Optional[bool] = None
    enable_request_processing: Optional[bool] = None


# --------------------------------------------------------------------------
# Result objects
# --------------------------------------------------------------------------

class SinglePartResult(BaseModel):
    success: bool
    part_id: str
    message: str
    entry: Optional[PricingCacheEntry] = None
    rate_limited: bool = False
    retry_after_seconds: Optional[int] = None


class RequestProcessingSummary(BaseModel):
    processed: int = 0
    completed: int = 0
    failed: int = 0
    requeued: int = 0
    rate_limited: bool = False
    log: Optional[SyncLogRecord] = None


class TriggerResult(BaseModel):
    """Display-ready outcome of a manual trigger."""
    success: bool
    message: str
    log: Optional[SyncLogRecord] = None


class UpdateRequestAck(BaseModel):
    success: bool
    message: str
    request_id: Optional[str] = None


class RecentError(BaseModel):
    timestamp: datetime
    schedule_type: str
    message: str


class ScheduleStatus(ScheduleDescriptor):
    is_running: bool = False


class SchedulerStatus(BaseModel):
    is_started: bool
    config: SchedulerConfig
    schedules: List[ScheduleStatus]
    rate_limits: List[RateLimitWindow]
    recent_logs: List[SyncLogRecord]
    recent_errors: List[RecentError]


class PricingSyncStatus(BaseModel):
    last_full_sync: Optional[datetime] = None
    last_incremental_sync: Optional[datetime] = None
    total_parts: int = 0
    synced_parts: int = 0
    stale_parts: int = 0
    pending_updates: int = 0
    is_running: bool = False
    next_scheduled_sync: Optional[datetime] = None
    recent_logs: List[SyncLogRecord] = []
    error_rate: float = 0.0
    average_sync_time: float = 0.0


# --------------------------------------------------------------------------
# Route request bodies
# --------------------------------------------------------------------------

class PricingUpdateRequestBody(BaseModel):
    part_id: str = Field(min_length=1)
    priority: Priority = "medium"
    requested_by: Optional[str] = None


class CachedPricingResponse(BaseModel):
    entries: List[PricingCacheEntry]
    total: int


class ConnectionTestResponse(BaseModel):
    success: bool
    response_time_ms: Optional[int] = None
    details: Optional[Dict[str, Any]] = None
