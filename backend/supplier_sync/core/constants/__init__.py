"""
Constants package — re-exports from domain-specific modules.

Usage:
    from supplier_sync.core.constants.sync import PRICING_BATCH_SIZE
    from supplier_sync.core.constants.supplier import PRICING_ENDPOINT
    # or import everything:
    from supplier_sync.core.constants import sync, supplier
Version: 1.0.0
"""

from supplier_sync.core.constants import sync, supplier
from supplier_sync.core.constants.sync import (
    DEFAULT_CURRENCY,
    PRICING_BATCH_SIZE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_BASE_DELAY_MS,
    STALE_THRESHOLD_HOURS,
    MAX_REQUEST_ATTEMPTS,
    PRIORITY_ORDER,
)
from supplier_sync.core.constants.supplier import (
    PRICING_ENDPOINT,
    DEFAULT_TIMEOUT_MS,
)

__all__ = [
    "sync",
    "supplier",
    "DEFAULT_CURRENCY",
    "PRICING_BATCH_SIZE",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_BASE_DELAY_MS",
    "STALE_THRESHOLD_HOURS",
    "MAX_REQUEST_ATTEMPTS",
    "PRIORITY_ORDER",
    "PRICING_ENDPOINT",
    "DEFAULT_TIMEOUT_MS",
]
