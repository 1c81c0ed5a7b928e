"""
Supplier rate-limit tracker.

Keeps one window per endpoint, installed when the supplier answers with a
rate-limit failure. While a window is active, calls to that endpoint are
refused locally without touching the network.

Windows live in process memory only. After a restart the worst case is a
single extra probe request that re-installs the window.

Usage:
    tracker = RateLimitTracker(SystemClock())
    if tracker.is_limited("/pricing/bulk"):
        wait = tracker.remaining_seconds("/pricing/bulk")
"""

import logging
import math
from typing import Dict, List, Optional

from supplier_sync.schemas.pricing import RateLimitWindow
from supplier_sync.utils.clock import Clock

logger = logging.getLogger("rate_limiter")


class RateLimitTracker:
    """
    Per-endpoint registry of active rate-limit windows.

    A window is active while now < started_at + retry_after_seconds.
    Expired windows are purged lazily whenever they are looked at.
    """

    def __init__(self, clock: Clock):
        self._clock = clock
        self._windows: Dict[str, RateLimitWindow] = {}

    def _active_window(self, endpoint: str) -> Optional[RateLimitWindow]:
        window = self._windows.get(endpoint)
        if window is None:
            return None
        if self._clock.now() >= window.expires_at:
            del self._windows[endpoint]
            logger.info(f"Rate limit window expired for {endpoint}")
            return None
        return window

    def is_limited(self, endpoint: str) -> bool:
        """True when an active window exists for endpoint."""
        return self._active_window(endpoint) is not None

    def remaining_seconds(self, endpoint: str) -> int:
        """Whole seconds until the active window expires, or 0."""
        window = self._active_window(endpoint)
        if window is None:
            return 0
        remaining = (window.expires_at - self._clock.now()).total_seconds()
        return max(0, math.ceil(remaining))

    def record_limit(self, endpoint: str, retry_after_seconds: int) -> None:
        """Install or overwrite the window for endpoint, starting now."""
        retry_after_seconds = max(0, int(retry_after_seconds))
        self._windows[endpoint] = RateLimitWindow(
            endpoint=endpoint,
            started_at=self._clock.now(),
            retry_after_seconds=retry_after_seconds,
        )
        logger.warning(f"Rate limit recorded for {endpoint}: retry after {retry_after_seconds}s")

    def all_active(self) -> List[RateLimitWindow]:
        """All active windows; expired ones are dropped as a side effect."""
        active = []
        for endpoint in list(self._windows):
            window = self._active_window(endpoint)
            if window is not None:
                active.append(window)
        return active

    def clear(self, endpoint: Optional[str] = None) -> None:
        """Drop one endpoint's window, or all of them."""
        if endpoint is None:
            self._windows.clear()
        else:
            self._windows.pop(endpoint, None)
