"""
Unit tests for Pydantic schemas.

Tests valid construction and validation errors for the pricing, scheduler
and supplier schemas, and environment-driven settings.

Version: 1.0.0
"""
import pytest
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from supplier_sync.core.config import Settings
from supplier_sync.schemas.pricing import (
    PricingCacheEntry,
    PricingUpdateRequestBody,
    RateLimitWindow,
    SchedulerConfig,
    SyncLogRecord,
    UpdateRequest,
)
from supplier_sync.schemas.supplier import OrderItem

pytestmark = pytest.mark.unit

UTC = timezone.utc


# ---------------------------------------------------------------------------
# Scheduler config
# ---------------------------------------------------------------------------

class TestSchedulerConfig:

    def test_defaults(self):
        config = SchedulerConfig()
        assert config.full_sync_time == "02:00"
        assert config.incremental_sync_interval_hours == 6
        assert config.request_processing_interval_minutes == 5
        assert config.max_retries == 3
        assert config.stale_threshold_hours == 24

    @pytest.mark.parametrize("value", ["00:00", "23:59", "09:30"])
    def test_valid_times(self, value):
        assert SchedulerConfig(full_sync_time=value).full_sync_time == value

    @pytest.mark.parametrize("value", ["24:00", "2:00", "12:60", "noon", ""])
    def test_invalid_times(self, value):
        with pytest.raises(ValidationError):
            SchedulerConfig(full_sync_time=value)

    @pytest.mark.parametrize("field,value", [
        ("incremental_sync_interval_hours", 0),
        ("request_processing_interval_minutes", 0),
        ("stale_threshold_hours", 0),
        ("max_retries", -1),
    ])
    def test_bounds(self, field, value):
        with pytest.raises(ValidationError):
            SchedulerConfig(**{field: value})

    def test_zero_retries_allowed(self):
        assert SchedulerConfig(max_retries=0).max_retries == 0

    def test_schedule_enabled(self):
        config = SchedulerConfig(enable_auto_sync=False, enable_request_processing=True)
        assert config.schedule_enabled("full_sync") is False
        assert config.schedule_enabled("incremental_sync") is False
        assert config.schedule_enabled("process_requests") is True


# ---------------------------------------------------------------------------
# Pricing records
# ---------------------------------------------------------------------------

class TestPricingRecords:

    def test_cache_entry_defaults(self):
        entry = PricingCacheEntry(part_id="A")
        assert entry.currency == "USD"
        assert entry.is_stale is False
        assert entry.sync_attempts == 0

    def test_sync_log_duration(self):
        started = datetime(2024, 1, 15, 2, 0, tzinfo=UTC)
        log = SyncLogRecord(sync_type="full", started_at=started,
                            completed_at=started + timedelta(minutes=2), status="completed")
        assert log.duration_seconds == 120.0

    def test_sync_log_running_has_no_duration(self):
        log = SyncLogRecord(sync_type="full", started_at=datetime.now(UTC))
        assert log.status == "running"
        assert log.duration_seconds is None

    def test_sync_log_rejects_unknown_type(self):
        with pytest.raises(ValidationError):
            SyncLogRecord(sync_type="weekly", started_at=datetime.now(UTC))

    def test_update_request_priority(self):
        with pytest.raises(ValidationError):
            UpdateRequest(part_id="A", priority="urgent", requested_at=datetime.now(UTC))

    def test_rate_limit_window_expiry(self):
        started = datetime(2024, 1, 15, tzinfo=UTC)
        window = RateLimitWindow(endpoint="/pricing/bulk", started_at=started, retry_after_seconds=30)
        assert window.expires_at == started + timedelta(seconds=30)


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class TestRequestBodies:

    def test_update_request_body_defaults(self):
        body = PricingUpdateRequestBody(part_id="SKU-1")
        assert body.priority == "medium"

    def test_update_request_body_requires_part(self):
        with pytest.raises(ValidationError):
            PricingUpdateRequestBody(part_id="")

    def test_order_item_quantity(self):
        with pytest.raises(ValidationError):
            OrderItem(part_id="A", quantity=0)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class TestSettings:

    def test_security_token_by_environment(self):
        dev = Settings(supplier_security_token_dev="d", supplier_security_token_prod="p",
                       supplier_environment="development")
        prod = Settings(supplier_security_token_dev="d", supplier_security_token_prod="p",
                        supplier_environment="production")
        assert dev.supplier_security_token == "d"
        assert prod.supplier_security_token == "p"
