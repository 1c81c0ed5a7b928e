"""
Pricing routes — manual sync triggers, scheduler status/config, update requests, cache reads.

Pricing sync routes.

Thin HTTP layer over PricingService. Trigger endpoints return display-ready
messages; wait=false starts the run in the background and answers at once.
Version: 1.0.0
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from supplier_sync.container import get_pricing_service
from supplier_sync.core.exceptions import (
    AuthenticationError,
    ConnectionTimeoutError,
    InvalidScheduleConfigError,
    RateLimitError,
    StoreError,
    SupplierSyncException,
)
from supplier_sync.schemas.pricing import (
    CachedPricingResponse,
    ConnectionTestResponse,
    PricingSyncStatus,
    PricingUpdateRequestBody,
    SchedulerConfig,
    SchedulerConfigUpdate,
    SchedulerStatus,
    SinglePartResult,
    SyncLogRecord,
    TriggerResult,
    UpdateRequestAck,
)
from supplier_sync.services.pricing_service import PricingService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/pricing", tags=["pricing"])


# --------------------------------------------------------------------------
# Manual triggers
# --------------------------------------------------------------------------

@router.post("/sync/full", response_model=TriggerResult)
async def trigger_full_sync(
    wait: bool = Query(False, description="Wait for the run to finish"),
    service: PricingService = Depends(get_pricing_service),
):
    """Start a full catalog pricing sync."""
    return await service.trigger_full_sync(wait=wait)


@router.post("/sync/incremental", response_model=TriggerResult)
async def trigger_incremental_sync(
    wait: bool = Query(False, description="Wait for the run to finish"),
    service: PricingService = Depends(get_pricing_service),
):
    """Refresh stale cache entries now."""
    return await service.trigger_incremental_sync(wait=wait)


@router.post("/requests/process", response_model=TriggerResult)
async def trigger_request_processing(
    wait: bool = Query(False, description="Wait for the drain to finish"),
    service: PricingService = Depends(get_pricing_service),
):
    """Drain pending pricing update requests now."""
    return await service.trigger_request_processing(wait=wait)


@router.post("/parts/{part_id}/refresh", response_model=SinglePartResult)
async def refresh_part(part_id: str, service: PricingService = Depends(get_pricing_service)):
    """Fetch fresh pricing for one part immediately."""
    return await service.update_part_now(part_id)


# --------------------------------------------------------------------------
# Update requests
# --------------------------------------------------------------------------

@router.post("/requests", response_model=UpdateRequestAck)
async def request_pricing_update(
    body: PricingUpdateRequestBody, service: PricingService = Depends(get_pricing_service)
):
    """Queue a pricing refresh for a part."""
    return await service.request_pricing_update(body.part_id, body.priority, body.requested_by)


# --------------------------------------------------------------------------
# Reads
# --------------------------------------------------------------------------

@router.get("/cache", response_model=CachedPricingResponse)
async def get_cached_pricing(
    part_ids: Optional[List[str]] = Query(None, description="Restrict to these part ids"),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    include_stale: bool = Query(True),
    service: PricingService = Depends(get_pricing_service),
):
    """Cached pricing, most recently synced first."""
    entries = await service.get_pricing_from_cache(
        part_ids=part_ids, limit=limit, offset=offset, include_stale=include_stale
    )
    return CachedPricingResponse(entries=entries, total=len(entries))


@router.get("/status", response_model=PricingSyncStatus)
async def get_pricing_sync_status(service: PricingService = Depends(get_pricing_service)):
    """Cache coverage, queue depth and sync statistics."""
    return await service.get_pricing_sync_status()


@router.get("/logs", response_model=List[SyncLogRecord])
async def get_sync_logs(
    limit: int = Query(50, ge=1, le=500),
    service: PricingService = Depends(get_pricing_service),
):
    """Recent sync runs, newest first."""
    return await service.get_sync_logs(limit)


@router.get("/scheduler/status", response_model=SchedulerStatus)
async def get_scheduler_status(service: PricingService = Depends(get_pricing_service)):
    """Live scheduler state: schedules, running flags, rate limits, recent errors."""
    status = await service.get_scheduler_status()
    if status is None:
        raise HTTPException(status_code=503, detail="Scheduler status unavailable")
    return status


# --------------------------------------------------------------------------
# Scheduler config
# --------------------------------------------------------------------------

@router.get("/scheduler/config", response_model=SchedulerConfig)
async def get_scheduler_config(service: PricingService = Depends(get_pricing_service)):
    return service.get_config()


@router.put("/scheduler/config", response_model=SchedulerConfig)
async def update_scheduler_config(
    update: SchedulerConfigUpdate, service: PricingService = Depends(get_pricing_service)
):
    """Change scheduler settings; running timers are re-armed."""
    try:
        return await service.update_config(update)
    except InvalidScheduleConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StoreError as e:
        logger.error(f"Scheduler config update failed: {e}")
        raise HTTPException(status_code=503, detail=str(e))


# --------------------------------------------------------------------------
# Supplier
# --------------------------------------------------------------------------

@router.get("/supplier/connection", response_model=ConnectionTestResponse)
async def test_supplier_connection(service: PricingService = Depends(get_pricing_service)):
    """Verify supplier credentials and reachability."""
    result = await service.test_supplier_connection()
    try:
        result.raise_for_error()
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except RateLimitError as e:
        raise HTTPException(status_code=429, detail=str(e), headers={"Retry-After": str(e.retry_after)})
    except ConnectionTimeoutError as e:
        raise HTTPException(status_code=504, detail=str(e))
    except SupplierSyncException as e:
        raise HTTPException(status_code=502, detail=str(e))

    details = result.data if isinstance(result.data, dict) else {"response": result.data}
    return ConnectionTestResponse(success=True, response_time_ms=result.response_time_ms, details=details)
