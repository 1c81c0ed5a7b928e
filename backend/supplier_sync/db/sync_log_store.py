"""
Sync log store — append-mostly history of sync runs.

Each run inserts one row with status "running" and closes it exactly once.
The close is conditional on the row still being running, so a record is
never re-opened or closed twice.
Version: 1.0.0
"""

import logging
import uuid
from typing import List, Optional

from supplier_sync.clients.supabase_client import SupabaseClient
from supplier_sync.core.constants.sync import (
    MAX_ERROR_MESSAGE_LENGTH,
    RECENT_LOGS_LIMIT,
    SYNC_LOGS_TABLE,
)
from supplier_sync.db.base_store import BaseStore, to_iso
from supplier_sync.schemas.pricing import SyncLogRecord, SyncStatus, SyncType
from supplier_sync.utils.clock import Clock

logger = logging.getLogger("sync_log_store")


class SyncLogStore(BaseStore):
    """Database operations for the pricing_sync_logs table."""

    def __init__(self, clock: Clock, supabase_client: Optional[SupabaseClient] = None):
        super().__init__(supabase_client)
        self._clock = clock

    async def start(self, sync_type: SyncType) -> SyncLogRecord:
        """Open a running log record for a new run."""
        record = SyncLogRecord(
            id=str(uuid.uuid4()),
            sync_type=sync_type,
            started_at=self._clock.now(),
            status="running",
        )
        await self._insert(SYNC_LOGS_TABLE, [record.model_dump(mode="json")])
        logger.info(f"Sync log opened id={record.id} type={sync_type}")
        return record

    async def close(
        self,
        record: SyncLogRecord,
        status: SyncStatus,
        total_parts: Optional[int] = None,
        success_count: Optional[int] = None,
        failure_count: Optional[int] = None,
        rate_limited: bool = False,
        retry_after_seconds: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> SyncLogRecord:
        """
        Apply the terminal update to a running record.

        Returns the closed record. If the row was already closed the database
        is left untouched and a warning is logged.
        """
        if status == "running":
            raise ValueError("close() needs a terminal status")
        payload = {
            "status": status,
            "completed_at": to_iso(self._clock.now()),
            "total_parts": total_parts,
            "success_count": success_count,
            "failure_count": failure_count,
            "rate_limited": rate_limited,
            "retry_after_seconds": retry_after_seconds,
            "error_message": error_message[:MAX_ERROR_MESSAGE_LENGTH] if error_message else None,
        }

        def build(query):
            return query.update(payload).eq("id", record.id).eq("status", "running")

        rows = await self._execute(SYNC_LOGS_TABLE, "update", build)
        if not rows:
            logger.warning(f"Sync log {record.id} was not running; terminal update skipped")
        logger.info(
            f"Sync log closed id={record.id} type={record.sync_type} status={status} "
            f"total={total_parts} ok={success_count} failed={failure_count}"
        )
        return SyncLogRecord.model_validate({**record.model_dump(), **payload})

    async def get(self, log_id: str) -> Optional[SyncLogRecord]:
        rows = await self._select(SYNC_LOGS_TABLE, filters={"id": log_id})
        return SyncLogRecord.model_validate(rows[0]) if rows else None

    async def list_recent(
        self, limit: int = RECENT_LOGS_LIMIT, sync_type: Optional[SyncType] = None
    ) -> List[SyncLogRecord]:
        """Most recent runs first."""
        def build(query):
            query = query.select("*")
            if sync_type:
                query = query.eq("sync_type", sync_type)
            return query.order("started_at", desc=True).limit(limit)

        rows = await self._execute(SYNC_LOGS_TABLE, "select", build)
        return [SyncLogRecord.model_validate(row) for row in rows]

    async def latest(
        self, sync_type: SyncType, statuses: Optional[List[SyncStatus]] = None
    ) -> Optional[SyncLogRecord]:
        """Newest run of sync_type, optionally restricted to some statuses."""
        def build(query):
            query = query.select("*").eq("sync_type", sync_type)
            if statuses:
                query = query.in_("status", list(statuses))
            return query.order("started_at", desc=True).limit(1)

        rows = await self._execute(SYNC_LOGS_TABLE, "select", build)
        return SyncLogRecord.model_validate(rows[0]) if rows else None
