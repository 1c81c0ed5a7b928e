"""
Pricing cache store — last-known supplier pricing per part.

Rows in pricing_cache are keyed by part_id and upserted by every successful
fetch. Failures only touch rows that already exist. The stale flag returned
to callers is always recomputed from last_supplier_sync against the
configured threshold, so it never disagrees with the clock.
Version: 1.0.0
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from supplier_sync.clients.supabase_client import SupabaseClient
from supplier_sync.core.constants.sync import (
    DEFAULT_CURRENCY,
    MAX_ERROR_MESSAGE_LENGTH,
    PRICING_CACHE_TABLE,
    STALE_THRESHOLD_HOURS,
)
from supplier_sync.db.base_store import BaseStore, to_iso
from supplier_sync.schemas.pricing import PricingCacheEntry
from supplier_sync.utils.clock import Clock

logger = logging.getLogger("pricing_cache_store")


def _postgrest_ts(value: datetime) -> str:
    """Timestamp literal safe inside PostgREST or=() filters."""
    return value.isoformat().replace("+00:00", "Z")


class PricingCacheStore(BaseStore):
    """Database operations for the pricing_cache table."""

    def __init__(
        self,
        clock: Clock,
        supabase_client: Optional[SupabaseClient] = None,
        stale_threshold_hours: int = STALE_THRESHOLD_HOURS,
    ):
        super().__init__(supabase_client)
        self._clock = clock
        self.stale_threshold_hours = stale_threshold_hours

    def _cutoff(self, threshold_hours: Optional[int] = None) -> datetime:
        hours = self.stale_threshold_hours if threshold_hours is None else threshold_hours
        return self._clock.now() - timedelta(hours=hours)

    def _to_entry(self, row: Dict[str, Any]) -> PricingCacheEntry:
        entry = PricingCacheEntry.model_validate(row)
        cutoff = self._cutoff()
        entry.is_stale = entry.last_supplier_sync is None or entry.last_supplier_sync < cutoff
        return entry

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_entry(self, part_id: str) -> Optional[PricingCacheEntry]:
        rows = await self._select(PRICING_CACHE_TABLE, filters={"part_id": part_id})
        return self._to_entry(rows[0]) if rows else None

    async def get_entries(
        self,
        part_ids: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        include_stale: bool = True,
    ) -> List[PricingCacheEntry]:
        """
        Cached pricing, newest sync first.

        Args:
            part_ids: Restrict to these parts (None = all)
            limit: Maximum rows to return
            offset: Rows to skip (only applied with limit)
            include_stale: When False, only entries synced within the threshold
        """
        if part_ids is not None and not part_ids:
            return []

        def build(query):
            query = query.select("*")
            if part_ids:
                query = query.in_("part_id", list(part_ids))
            if not include_stale:
                query = query.gte("last_supplier_sync", to_iso(self._cutoff()))
            query = query.order("last_supplier_sync", desc=True)
            if limit is not None:
                query = query.range(offset, offset + limit - 1)
            return query

        rows = await self._execute(PRICING_CACHE_TABLE, "select", build)
        return [self._to_entry(row) for row in rows]

    async def get_stale_part_ids(self, threshold_hours: int) -> List[str]:
        """Part ids flagged stale or last synced before now - threshold_hours."""
        cutoff = _postgrest_ts(self._cutoff(threshold_hours))

        def build(query):
            return (
                query.select("part_id")
                .or_(f"is_stale.eq.true,last_supplier_sync.lt.{cutoff}")
                .order("last_supplier_sync")
            )

        rows = await self._execute(PRICING_CACHE_TABLE, "select", build)
        return [row["part_id"] for row in rows]

    async def count_entries(self) -> int:
        return await self._count(PRICING_CACHE_TABLE, lambda q: q.select("part_id", count="exact"))

    async def count_stale(self) -> int:
        cutoff = to_iso(self._cutoff())
        return await self._count(
            PRICING_CACHE_TABLE,
            lambda q: q.select("part_id", count="exact").lt("last_supplier_sync", cutoff),
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert_batch(self, pricing_by_part: Dict[str, Dict[str, Any]]) -> List[PricingCacheEntry]:
        """
        Write fresh pricing for many parts in one upsert.

        Every written row is marked fresh: is_stale false, sync_attempts 0,
        last_error cleared, last_supplier_sync = now.
        """
        if not pricing_by_part:
            return []
        now = to_iso(self._clock.now())
        rows = [
            {
                "part_id": part_id,
                "price": pricing.get("price"),
                "cost": pricing.get("cost"),
                "list_price": pricing.get("list_price"),
                "core_charge": pricing.get("core_charge"),
                "currency": pricing.get("currency") or DEFAULT_CURRENCY,
                "last_updated": now,
                "last_supplier_sync": now,
                "is_stale": False,
                "sync_attempts": 0,
                "last_error": None,
            }
            for part_id, pricing in pricing_by_part.items()
        ]
        await self._upsert(PRICING_CACHE_TABLE, rows, on_conflict="part_id")
        return [self._to_entry(row) for row in rows]

    async def record_failures(self, part_ids: Sequence[str], error: str) -> List[PricingCacheEntry]:
        """
        Count a failed fetch against existing entries.

        Parts never fetched successfully have no entry and are skipped.
        Returns the updated entries.
        """
        if not part_ids:
            return []

        def build(query):
            return query.select("*").in_("part_id", list(part_ids))

        rows = await self._execute(PRICING_CACHE_TABLE, "select", build)
        if not rows:
            return []
        message = (error or "")[:MAX_ERROR_MESSAGE_LENGTH]
        now = to_iso(self._clock.now())
        updated = [
            {
                **row,
                "sync_attempts": (row.get("sync_attempts") or 0) + 1,
                "last_error": message,
                "last_updated": now,
            }
            for row in rows
        ]
        await self._upsert(PRICING_CACHE_TABLE, updated, on_conflict="part_id")
        logger.info(f"Recorded sync failure for {len(updated)} cached parts: {message[:100]}")
        return [self._to_entry(row) for row in updated]

    async def mark_stale(self, threshold_hours: Optional[int] = None) -> int:
        """Persist is_stale=true on rows older than the threshold; returns rows touched."""
        cutoff = to_iso(self._cutoff(threshold_hours))

        def build(query):
            return (
                query.update({"is_stale": True})
                .eq("is_stale", False)
                .lt("last_supplier_sync", cutoff)
            )

        rows = await self._execute(PRICING_CACHE_TABLE, "update", build)
        if rows:
            logger.info(f"Marked {len(rows)} pricing entries stale")
        return len(rows)
