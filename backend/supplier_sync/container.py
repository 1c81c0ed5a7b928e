"""
Lazy DI container — one instance per process of each client, store and service.

Each getter builds its component explicitly from settings and the other
getters; components themselves hold no global state. Import individual
getters to avoid circular imports.
Version: 1.0.0
"""

from functools import lru_cache

from supplier_sync.core.config import settings
from supplier_sync.clients.supabase_client import SupabaseClient
from supplier_sync.clients.supplier_client import SupplierClient
from supplier_sync.db.pricing_cache_store import PricingCacheStore
from supplier_sync.db.schedule_store import ScheduleStore
from supplier_sync.db.sync_log_store import SyncLogStore
from supplier_sync.db.update_request_store import UpdateRequestStore
from supplier_sync.schemas.pricing import SchedulerConfig
from supplier_sync.services.pricing_service import PricingService
from supplier_sync.services.pricing_sync_engine import PricingSyncEngine
from supplier_sync.services.sync_scheduler import SyncScheduler
from supplier_sync.utils.clock import SystemClock
from supplier_sync.utils.rate_limiter import RateLimitTracker
from supplier_sync.utils.retry_policy import RetryPolicy


# -- Time & limits ---------------------------------------------------------

@lru_cache(maxsize=1)
def get_clock():
    return SystemClock()


@lru_cache(maxsize=1)
def get_rate_limit_tracker():
    return RateLimitTracker(get_clock())


@lru_cache(maxsize=1)
def get_retry_policy():
    return RetryPolicy(get_clock())


# -- Clients ---------------------------------------------------------------

@lru_cache(maxsize=1)
def get_supabase_client():
    return SupabaseClient(settings)


@lru_cache(maxsize=1)
def get_supplier_client():
    return SupplierClient(settings, get_rate_limit_tracker())


# -- DB Stores -------------------------------------------------------------

@lru_cache(maxsize=1)
def get_pricing_cache_store():
    return PricingCacheStore(
        get_clock(),
        supabase_client=get_supabase_client(),
        stale_threshold_hours=settings.pricing_stale_threshold_hours,
    )


@lru_cache(maxsize=1)
def get_sync_log_store():
    return SyncLogStore(get_clock(), supabase_client=get_supabase_client())


@lru_cache(maxsize=1)
def get_update_request_store():
    return UpdateRequestStore(get_clock(), supabase_client=get_supabase_client())


@lru_cache(maxsize=1)
def get_schedule_store():
    return ScheduleStore(supabase_client=get_supabase_client())


# -- Services --------------------------------------------------------------

@lru_cache(maxsize=1)
def get_pricing_sync_engine():
    return PricingSyncEngine(
        client=get_supplier_client(),
        retry_policy=get_retry_policy(),
        cache_store=get_pricing_cache_store(),
        log_store=get_sync_log_store(),
        request_store=get_update_request_store(),
        batch_size=settings.pricing_batch_size,
        max_retries=settings.pricing_max_retries,
        base_delay_ms=settings.pricing_retry_base_delay_ms,
        max_request_attempts=settings.pricing_request_max_attempts,
        stale_threshold_hours=settings.pricing_stale_threshold_hours,
    )


def default_scheduler_config() -> SchedulerConfig:
    """Scheduler config seeded from environment settings."""
    return SchedulerConfig(
        full_sync_time=settings.pricing_full_sync_time,
        incremental_sync_interval_hours=settings.pricing_incremental_interval_hours,
        request_processing_interval_minutes=settings.pricing_request_interval_minutes,
        max_retries=settings.pricing_max_retries,
        stale_threshold_hours=settings.pricing_stale_threshold_hours,
        enable_auto_sync=settings.pricing_enable_auto_sync,
        enable_request_processing=settings.pricing_enable_request_processing,
    )


@lru_cache(maxsize=1)
def get_sync_scheduler():
    return SyncScheduler(
        engine=get_pricing_sync_engine(),
        schedule_store=get_schedule_store(),
        log_store=get_sync_log_store(),
        rate_limits=get_rate_limit_tracker(),
        clock=get_clock(),
        config=default_scheduler_config(),
        timezone=settings.scheduler_timezone,
    )


@lru_cache(maxsize=1)
def get_pricing_service():
    return PricingService(
        engine=get_pricing_sync_engine(),
        scheduler=get_sync_scheduler(),
        cache_store=get_pricing_cache_store(),
        log_store=get_sync_log_store(),
        request_store=get_update_request_store(),
        client=get_supplier_client(),
    )
