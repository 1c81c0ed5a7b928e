"""
Base store — shared Supabase client access for all stores.

All pricing stores inherit from this class to get standardised
insert / upsert / select / update primitives. Any failure to reach
PostgREST is raised as StoreError so sync runs can treat it as fatal.
Version: 1.0.0
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import httpx
from postgrest.exceptions import APIError

from supplier_sync.core.config import settings
from supplier_sync.core.exceptions import StoreError
from supplier_sync.clients.supabase_client import SupabaseClient

logger = logging.getLogger("base_store")


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class BaseStore:
    """Base class for all Supabase stores providing shared CRUD operations."""

    def __init__(self, supabase_client: SupabaseClient | None = None) -> None:
        self._supabase_client = supabase_client

    @property
    def client(self):
        """Supabase client, created lazily from settings when none was injected."""
        if self._supabase_client is None:
            self._supabase_client = SupabaseClient(settings)
        return self._supabase_client.client

    async def _run(self, table: str, operation: str, build: Callable[[Any], Any]):
        """Execute a query off the event loop; the supabase-py client is blocking."""
        try:
            return await asyncio.to_thread(lambda: build(self.client.table(table)).execute())
        except (APIError, httpx.HTTPError) as e:
            logger.error("supabase error table=%s op=%s detail=%s", table, operation, str(e))
            raise StoreError(table, operation, str(e)) from e

    async def _execute(self, table: str, operation: str, build: Callable[[Any], Any]) -> List[Dict[str, Any]]:
        """Run a query built against table and return its rows."""
        response = await self._run(table, operation, build)
        return response.data or []

    async def _insert(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Insert rows into a table."""
        if not rows:
            return []
        return await self._execute(table, "insert", lambda q: q.insert(rows))

    async def _upsert(
        self, table: str, rows: List[Dict[str, Any]], on_conflict: str | None = None
    ) -> List[Dict[str, Any]]:
        """Upsert rows into a table (insert or update on conflict)."""
        if not rows:
            return []
        if on_conflict:
            return await self._execute(table, "upsert", lambda q: q.upsert(rows, on_conflict=on_conflict))
        return await self._execute(table, "upsert", lambda q: q.upsert(rows))

    async def _select(
        self, table: str, columns: str = "*", filters: Dict[str, Any] | None = None
    ) -> List[Dict[str, Any]]:
        """Select rows from a table with optional equality filters."""
        def build(query):
            query = query.select(columns)
            for key, value in (filters or {}).items():
                query = query.eq(key, value)
            return query
        return await self._execute(table, "select", build)

    async def _update(
        self, table: str, filters: Dict[str, Any], payload: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """Update rows in a table matching the filters."""
        def build(query):
            query = query.update(payload)
            for key, value in filters.items():
                query = query.eq(key, value)
            return query
        return await self._execute(table, "update", build)

    async def _count(self, table: str, build: Callable[[Any], Any]) -> int:
        """Exact row count for a query built against table."""
        response = await self._run(table, "count", build)
        if response.count is not None:
            return response.count
        return len(response.data or [])
