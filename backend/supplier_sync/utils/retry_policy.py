"""
Retry policy for supplier calls.

Rate-limit failures wait exactly the time the supplier asked for. Every
other retryable failure backs off exponentially from base_delay_ms.
Non-retryable failures (auth, validation) return after the first attempt.
Version: 1.0.0
"""
import logging
from typing import Awaitable, Callable

from supplier_sync.core.constants.sync import DEFAULT_BASE_DELAY_MS, DEFAULT_MAX_RETRIES
from supplier_sync.schemas.supplier import SupplierResult
from supplier_sync.utils.clock import Clock

logger = logging.getLogger("retry_policy")

SupplierOperation = Callable[[], Awaitable[SupplierResult]]


class RetryPolicy:
    def __init__(self, clock: Clock):
        self._clock = clock

    @staticmethod
    def backoff_seconds(retry_index: int, base_delay_ms: int) -> float:
        """Delay before retry number retry_index (0-based)."""
        return base_delay_ms * (2 ** retry_index) / 1000.0

    async def execute(
        self,
        operation: SupplierOperation,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
    ) -> SupplierResult:
        """
        Run operation, retrying up to max_retries times after the first attempt.

        Returns the first successful result, the first non-retryable failure,
        or the last failure once retries are exhausted. Never raises for
        supplier-side failures.
        """
        retry_index = 0
        while True:
            result = await operation()
            if result.success:
                return result

            if not result.retryable:
                logger.warning(
                    f"Non-retryable {result.error_type} failure on {result.endpoint}: {result.error}"
                )
                return result

            if retry_index >= max_retries:
                logger.warning(
                    f"Giving up on {result.endpoint} after {retry_index + 1} attempts: {result.error}"
                )
                return result

            if result.rate_limited and result.retry_after_seconds is not None:
                delay = float(result.retry_after_seconds)
            else:
                delay = self.backoff_seconds(retry_index, base_delay_ms)

            logger.info(
                f"Retrying {result.endpoint} in {delay:.1f}s "
                f"(retry {retry_index + 1}/{max_retries}, {result.error_type})"
            )
            await self._clock.sleep(delay)
            retry_index += 1
