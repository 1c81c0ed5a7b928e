"""
Clock — the single source of time for trackers, retries and timers.

Components never call datetime.now() or asyncio.sleep() directly; they go
through a Clock so tests can substitute a manually driven one.
Version: 1.0.0
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Clock(Protocol):
    def now(self) -> datetime:
        """Current time as an aware UTC datetime."""
        ...

    async def sleep(self, seconds: float) -> None:
        ...

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        """Run callback once after delay seconds; returns a cancellable handle."""
        ...


class SystemClock:
    """Wall-clock time backed by the running asyncio event loop."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))

    def call_later(self, delay: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay), callback)
