"""
Exceptions — error hierarchy for the supplier sync backend.

Two branches:
- RetryableError: a later attempt may succeed (store outages, supplier limits)
- NonRetryableError: fail now and report (bad input, credentials, conflicting runs)

Supplier API calls do not raise; SupplierClient returns classified
SupplierResult values. The exceptions here cover persistence, input
validation, run conflicts, and the connection check surfaced over HTTP.
Version: 1.0.0
"""


class SupplierSyncException(Exception):
    """Root of every error raised by this package."""
    pass


# ============================================
# RETRYABLE ERRORS
# ============================================
class RetryableError(SupplierSyncException):
    """Transient failure; the caller may try again later."""
    pass


class ExternalAPIError(RetryableError):
    """Supplier answered with a failure that is not auth or rate related."""
    def __init__(self, service: str, message: str, status_code: int = None):
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service} API error: {message}")


class RateLimitError(RetryableError):
    """Supplier endpoint is inside a rate-limit window."""
    def __init__(self, service: str, retry_after: int = 60):
        self.service = service
        self.retry_after = retry_after
        super().__init__(f"{service} rate limited. Retry after {retry_after}s")


class ConnectionTimeoutError(RetryableError):
    """Supplier could not be reached in time."""
    pass


class DatabaseTransientError(RetryableError):
    """Pricing database temporarily unavailable."""
    pass


class StoreError(DatabaseTransientError):
    """
    A Supabase query failed or PostgREST was unreachable.

    Aborts the current sync run: the engine closes its log as failed
    and re-raises.
    """
    def __init__(self, table: str, operation: str, message: str):
        self.table = table
        self.operation = operation
        super().__init__(f"Supabase {operation} on {table} failed: {message}")


# ============================================
# NON-RETRYABLE ERRORS
# ============================================
class NonRetryableError(SupplierSyncException):
    """Permanent failure; retrying with the same input cannot help."""
    pass


class ValidationError(NonRetryableError):
    """Rejected input."""
    pass


class InvalidScheduleConfigError(ValidationError):
    """Scheduler configuration rejected."""
    pass


class AuthenticationError(NonRetryableError):
    """Supplier rejected the account number or security token."""
    pass


class SyncInProgressError(NonRetryableError):
    """A run of the same sync type is already executing."""
    def __init__(self, sync_type: str):
        self.sync_type = sync_type
        super().__init__(f"{sync_type} sync already in progress")
