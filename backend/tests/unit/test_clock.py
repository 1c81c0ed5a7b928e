"""
Unit tests for SystemClock.
Version: 1.0.0
"""
import asyncio
from datetime import timedelta

import pytest

from supplier_sync.utils.clock import SystemClock


@pytest.mark.unit
class TestSystemClock:

    def test_now_is_utc(self):
        assert SystemClock().now().utcoffset() == timedelta(0)

    @pytest.mark.asyncio
    async def test_call_later_fires(self):
        fired = asyncio.Event()
        SystemClock().call_later(0.01, fired.set)
        await asyncio.wait_for(fired.wait(), timeout=1)
        assert fired.is_set()

    @pytest.mark.asyncio
    async def test_cancelled_timer_does_not_fire(self):
        fired = []
        handle = SystemClock().call_later(0.01, lambda: fired.append(True))
        handle.cancel()
        await asyncio.sleep(0.05)
        assert fired == []

    @pytest.mark.asyncio
    async def test_negative_sleep_returns(self):
        await SystemClock().sleep(-1)
