"""
Schedule store — per-type schedule descriptors and the scheduler config row.

Descriptor counters change through record_run_start / record_run_finish.
Both read, modify and upsert the row under one asyncio lock, which makes
them atomic within the single scheduling process.
Version: 1.0.0
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional

from supplier_sync.clients.supabase_client import SupabaseClient
from supplier_sync.core.constants.sync import (
    MAX_ERROR_MESSAGE_LENGTH,
    SCHEDULE_TYPES,
    SCHEDULER_CONFIG_TABLE,
    SCHEDULES_TABLE,
)
from supplier_sync.db.base_store import BaseStore, to_iso
from supplier_sync.schemas.pricing import ScheduleDescriptor, ScheduleType, SchedulerConfig

logger = logging.getLogger("schedule_store")

CONFIG_ROW_ID = 1


class ScheduleStore(BaseStore):
    """Database operations for pricing_sync_schedules and pricing_scheduler_config."""

    def __init__(self, supabase_client: Optional[SupabaseClient] = None):
        super().__init__(supabase_client)
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Descriptors
    # ------------------------------------------------------------------

    async def list_descriptors(self) -> List[ScheduleDescriptor]:
        rows = await self._select(SCHEDULES_TABLE)
        descriptors = [ScheduleDescriptor.model_validate(row) for row in rows]
        return sorted(descriptors, key=lambda d: SCHEDULE_TYPES.index(d.schedule_type))

    async def get_descriptor(self, schedule_type: ScheduleType) -> Optional[ScheduleDescriptor]:
        rows = await self._select(SCHEDULES_TABLE, filters={"schedule_type": schedule_type})
        return ScheduleDescriptor.model_validate(rows[0]) if rows else None

    async def _save(self, descriptor: ScheduleDescriptor) -> ScheduleDescriptor:
        await self._upsert(
            SCHEDULES_TABLE, [descriptor.model_dump(mode="json")], on_conflict="schedule_type"
        )
        return descriptor

    async def ensure_descriptors(self, enabled: Dict[str, bool]) -> List[ScheduleDescriptor]:
        """Create missing descriptors and sync every descriptor's enabled flag."""
        async with self._lock:
            existing = {d.schedule_type: d for d in await self.list_descriptors()}
            result = []
            for schedule_type in SCHEDULE_TYPES:
                descriptor = existing.get(schedule_type) or ScheduleDescriptor(schedule_type=schedule_type)
                is_new = schedule_type not in existing
                flag = enabled.get(schedule_type, descriptor.enabled)
                if is_new or descriptor.enabled != flag:
                    descriptor.enabled = flag
                    await self._save(descriptor)
                    if is_new:
                        logger.info(f"Created schedule descriptor {schedule_type} enabled={flag}")
                result.append(descriptor)
            return result

    async def set_next_run(self, schedule_type: ScheduleType, next_run: Optional[datetime]) -> None:
        async with self._lock:
            await self._update(
                SCHEDULES_TABLE, {"schedule_type": schedule_type}, {"next_run": to_iso(next_run)}
            )

    async def record_run_start(self, schedule_type: ScheduleType, started_at: datetime) -> ScheduleDescriptor:
        """Stamp last_run and bump run_count."""
        async with self._lock:
            descriptor = await self.get_descriptor(schedule_type) or ScheduleDescriptor(
                schedule_type=schedule_type
            )
            descriptor.last_run = started_at
            descriptor.run_count += 1
            return await self._save(descriptor)

    async def record_run_finish(
        self, schedule_type: ScheduleType, success: bool, error: Optional[str] = None
    ) -> ScheduleDescriptor:
        """
        Bump success_count or failure_count and set last_error.

        A success with no error clears last_error; a success carrying an
        error (partial run) keeps it for operators.
        """
        async with self._lock:
            descriptor = await self.get_descriptor(schedule_type) or ScheduleDescriptor(
                schedule_type=schedule_type
            )
            if success:
                descriptor.success_count += 1
            else:
                descriptor.failure_count += 1
            descriptor.last_error = error[:MAX_ERROR_MESSAGE_LENGTH] if error else None
            return await self._save(descriptor)

    # ------------------------------------------------------------------
    # Scheduler config
    # ------------------------------------------------------------------

    async def load_config(self) -> Optional[SchedulerConfig]:
        rows = await self._select(SCHEDULER_CONFIG_TABLE, filters={"id": CONFIG_ROW_ID})
        if not rows:
            return None
        row = {k: v for k, v in rows[0].items() if k in SchedulerConfig.model_fields}
        return SchedulerConfig.model_validate(row)

    async def save_config(self, config: SchedulerConfig) -> None:
        row = {"id": CONFIG_ROW_ID, **config.model_dump()}
        await self._upsert(SCHEDULER_CONFIG_TABLE, [row], on_conflict="id")
        logger.info(f"Scheduler config saved: {config.model_dump()}")
