"""
Update request store — durable queue of "refresh this part" requests.

Requests move pending -> processing -> completed | failed. Failed requests
below the attempt ceiling are put back to pending by the engine.
Version: 1.0.0
"""

import logging
import uuid
from typing import List, Optional

from supplier_sync.clients.supabase_client import SupabaseClient
from supplier_sync.core.constants.sync import (
    MAX_ERROR_MESSAGE_LENGTH,
    PRIORITY_ORDER,
    REQUEST_DRAIN_LIMIT,
    UPDATE_REQUESTS_TABLE,
)
from supplier_sync.db.base_store import BaseStore, to_iso
from supplier_sync.schemas.pricing import Priority, UpdateRequest
from supplier_sync.utils.clock import Clock

logger = logging.getLogger("update_request_store")

# Pending rows fetched per drain before priority ordering is applied
PENDING_SCAN_LIMIT = 1000


def drain_order(request: UpdateRequest):
    """Sort key: priority (high first), then oldest request first."""
    return (PRIORITY_ORDER.get(request.priority, len(PRIORITY_ORDER)), request.requested_at)


class UpdateRequestStore(BaseStore):
    """Database operations for the pricing_update_requests table."""

    def __init__(self, clock: Clock, supabase_client: Optional[SupabaseClient] = None):
        super().__init__(supabase_client)
        self._clock = clock

    async def enqueue(
        self, part_id: str, priority: Priority = "medium", requested_by: Optional[str] = None
    ) -> tuple[UpdateRequest, bool]:
        """
        Queue a refresh for part_id.

        Reuses an existing pending request for the same part, raising its
        priority when the new one is higher. Returns (request, created).
        """
        rows = await self._select(
            UPDATE_REQUESTS_TABLE, filters={"part_id": part_id, "status": "pending"}
        )
        if rows:
            existing = UpdateRequest.model_validate(rows[0])
            if PRIORITY_ORDER[priority] < PRIORITY_ORDER[existing.priority]:
                await self._update(UPDATE_REQUESTS_TABLE, {"id": existing.id}, {"priority": priority})
                existing.priority = priority
                logger.info(f"Raised pending request {existing.id} for {part_id} to {priority}")
            return existing, False

        request = UpdateRequest(
            id=str(uuid.uuid4()),
            part_id=part_id,
            priority=priority,
            requested_at=self._clock.now(),
            requested_by=requested_by,
        )
        await self._insert(UPDATE_REQUESTS_TABLE, [request.model_dump(mode="json")])
        logger.info(f"Queued pricing update request {request.id} for {part_id} ({priority})")
        return request, True

    async def get(self, request_id: str) -> Optional[UpdateRequest]:
        rows = await self._select(UPDATE_REQUESTS_TABLE, filters={"id": request_id})
        return UpdateRequest.model_validate(rows[0]) if rows else None

    async def list_pending(self, limit: int = REQUEST_DRAIN_LIMIT) -> List[UpdateRequest]:
        """Pending requests in drain order: high, medium, low, then requested_at ascending."""
        def build(query):
            return (
                query.select("*")
                .eq("status", "pending")
                .order("requested_at")
                .limit(PENDING_SCAN_LIMIT)
            )

        rows = await self._execute(UPDATE_REQUESTS_TABLE, "select", build)
        requests = sorted((UpdateRequest.model_validate(row) for row in rows), key=drain_order)
        return requests[:limit]

    async def count_pending(self) -> int:
        return await self._count(
            UPDATE_REQUESTS_TABLE,
            lambda q: q.select("id", count="exact").eq("status", "pending"),
        )

    async def mark_processing(self, request: UpdateRequest) -> None:
        await self._update(
            UPDATE_REQUESTS_TABLE,
            {"id": request.id},
            {"status": "processing", "last_attempt": to_iso(self._clock.now())},
        )

    async def mark_completed(self, request: UpdateRequest) -> None:
        await self._update(
            UPDATE_REQUESTS_TABLE,
            {"id": request.id},
            {"status": "completed", "attempts": request.attempts + 1, "error_message": None},
        )

    async def mark_failed(self, request: UpdateRequest, error: str, requeue: bool) -> int:
        """
        Record a failed attempt.

        The request returns to pending when requeue is set, otherwise it
        stays failed. Returns the new attempt count.
        """
        attempts = request.attempts + 1
        await self._update(
            UPDATE_REQUESTS_TABLE,
            {"id": request.id},
            {
                "status": "pending" if requeue else "failed",
                "attempts": attempts,
                "error_message": (error or "")[:MAX_ERROR_MESSAGE_LENGTH],
            },
        )
        return attempts

    async def release(self, request: UpdateRequest, reason: str) -> None:
        """Return a request to pending without consuming an attempt."""
        await self._update(
            UPDATE_REQUESTS_TABLE,
            {"id": request.id},
            {"status": "pending", "error_message": reason[:MAX_ERROR_MESSAGE_LENGTH]},
        )
