"""
Pytest configuration and shared fixtures for supplier sync tests.

Provides a manual clock, in-memory stores, a scripted supplier, the wired
engine/scheduler/service stack, mocked Supabase tables and sample data.
Version: 1.0.0
"""
import os

os.environ.setdefault("AUTO_START_SCHEDULER", "false")

import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from fakes import (
    FakeClock,
    FakeSupplierClient,
    InMemoryPricingCacheStore,
    InMemoryScheduleStore,
    InMemorySyncLogStore,
    InMemoryUpdateRequestStore,
)
from supplier_sync.schemas.pricing import SchedulerConfig
from supplier_sync.services.pricing_service import PricingService
from supplier_sync.services.pricing_sync_engine import PricingSyncEngine
from supplier_sync.services.sync_scheduler import SyncScheduler
from supplier_sync.utils.retry_policy import RetryPolicy


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_settings():
    """Settings object with test defaults (no real credentials)."""
    from supplier_sync.core.config import Settings
    return Settings(
        supabase_url="https://test.supabase.co",
        supabase_service_role_key="test-supabase-key",
        supplier_api_base_url="https://supplier.test/api",
        supplier_account_number="ACCT-001",
        supplier_security_token_dev="dev-token",
        supplier_security_token_prod="prod-token",
        supplier_environment="development",
        supplier_request_timeout_ms=30000,
    )


# ---------------------------------------------------------------------------
# Time & supplier
# ---------------------------------------------------------------------------

@pytest.fixture
def clock():
    """Manual clock starting 2024-01-15 03:00 UTC."""
    return FakeClock(datetime(2024, 1, 15, 3, 0, tzinfo=timezone.utc))


@pytest.fixture
def sample_prices():
    return {
        f"SKU-{i:03d}": {"price": 10.0 + i, "cost": 6.0 + i, "listPrice": 12.0 + i, "coreCharge": 0}
        for i in range(1, 6)
    }


@pytest.fixture
def supplier(clock, sample_prices):
    return FakeSupplierClient(clock, prices=dict(sample_prices))


@pytest.fixture
def retry_policy(clock):
    return RetryPolicy(clock)


# ---------------------------------------------------------------------------
# Stores (in-memory)
# ---------------------------------------------------------------------------

@pytest.fixture
def cache_store(clock):
    return InMemoryPricingCacheStore(clock)


@pytest.fixture
def log_store(clock):
    return InMemorySyncLogStore(clock)


@pytest.fixture
def request_store(clock):
    return InMemoryUpdateRequestStore(clock)


@pytest.fixture
def schedule_store():
    return InMemoryScheduleStore()


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@pytest.fixture
def engine(supplier, retry_policy, cache_store, log_store, request_store):
    return PricingSyncEngine(
        client=supplier,
        retry_policy=retry_policy,
        cache_store=cache_store,
        log_store=log_store,
        request_store=request_store,
        batch_size=50,
        max_retries=3,
        base_delay_ms=1000,
    )


@pytest.fixture
def scheduler_config():
    return SchedulerConfig(full_sync_time="02:00")


@pytest.fixture
def scheduler(engine, schedule_store, log_store, supplier, clock, scheduler_config):
    return SyncScheduler(
        engine=engine,
        schedule_store=schedule_store,
        log_store=log_store,
        rate_limits=supplier.rate_limits,
        clock=clock,
        config=scheduler_config,
    )


@pytest.fixture
def service(engine, scheduler, cache_store, log_store, request_store, supplier):
    return PricingService(
        engine=engine,
        scheduler=scheduler,
        cache_store=cache_store,
        log_store=log_store,
        request_store=request_store,
        client=supplier,
    )


# ---------------------------------------------------------------------------
# Supabase (mocked)
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_supabase_table():
    """Build a chained mock table builder for Supabase."""
    mock_table = MagicMock()
    for method in ("select", "insert", "upsert", "update", "delete", "eq", "in_",
                   "lt", "gte", "or_", "order", "limit", "range"):
        getattr(mock_table, method).return_value = mock_table
    mock_table.execute.return_value = MagicMock(data=[], count=0)
    return mock_table


@pytest.fixture
def mock_supabase_client(mock_supabase_table):
    """Mocked SupabaseClient whose every table() is mock_supabase_table."""
    client = MagicMock()
    client.client.table.return_value = mock_supabase_table
    return client


# ---------------------------------------------------------------------------
# FastAPI
# ---------------------------------------------------------------------------

@pytest.fixture
def app_client(service):
    """TestClient with the pricing service replaced by the in-memory stack."""
    from supplier_sync.container import get_pricing_service
    from supplier_sync.main import app

    app.dependency_overrides[get_pricing_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()
