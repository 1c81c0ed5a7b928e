"""
Supplier schemas — call results and typed request payloads.

Every supplier call resolves to a SupplierResult. Failures carry an
error_type from the taxonomy below and a retryable flag that drives
RetryPolicy.
Version: 1.0.0
"""
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from supplier_sync.core.constants.supplier import SUPPLIER_SERVICE_NAME
from supplier_sync.core.exceptions import (
    AuthenticationError,
    ConnectionTimeoutError,
    ExternalAPIError,
    RateLimitError,
    ValidationError,
)


class SupplierErrorType(str, Enum):
    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    AUTH = "auth"
    SERVER = "server"
    UNKNOWN = "unknown"
    VALIDATION = "validation"


NON_RETRYABLE_ERROR_TYPES = frozenset({SupplierErrorType.AUTH, SupplierErrorType.VALIDATION})


class SupplierResult(BaseModel):
    """Structured outcome of one supplier API call."""
    success: bool
    endpoint: str
    data: Optional[Any] = None
    error: Optional[str] = None
    error_type: Optional[SupplierErrorType] = None
    status_code: Optional[int] = None
    retry_after_seconds: Optional[int] = None
    rate_limited: bool = False
    retryable: bool = False
    response_time_ms: Optional[int] = None

    @classmethod
    def ok(cls, endpoint: str, data: Any, status_code: int = 200, response_time_ms: int = None) -> "SupplierResult":
        return cls(
            success=True,
            endpoint=endpoint,
            data=data,
            status_code=status_code,
            response_time_ms=response_time_ms,
        )

    @classmethod
    def failure(
        cls,
        endpoint: str,
        error_type: SupplierErrorType,
        error: str,
        status_code: int = None,
        retry_after_seconds: int = None,
        response_time_ms: int = None,
    ) -> "SupplierResult":
        return cls(
            success=False,
            endpoint=endpoint,
            error=error,
            error_type=error_type,
            status_code=status_code,
            retry_after_seconds=retry_after_seconds,
            rate_limited=error_type == SupplierErrorType.RATE_LIMIT,
            retryable=error_type not in NON_RETRYABLE_ERROR_TYPES,
            response_time_ms=response_time_ms,
        )

    def raise_for_error(self) -> None:
        """Raise the exception matching this failure; no-op on success."""
        if self.success:
            return
        message = self.error or "unknown error"
        if self.error_type == SupplierErrorType.RATE_LIMIT:
            raise RateLimitError(SUPPLIER_SERVICE_NAME, retry_after=self.retry_after_seconds or 60)
        if self.error_type == SupplierErrorType.AUTH:
            raise AuthenticationError(message)
        if self.error_type == SupplierErrorType.VALIDATION:
            raise ValidationError(message)
        if self.error_type == SupplierErrorType.NETWORK:
            raise ConnectionTimeoutError(message)
        raise ExternalAPIError(SUPPLIER_SERVICE_NAME, message, status_code=self.status_code)


class OrderItem(BaseModel):
    part_id: str
    quantity: int = Field(gt=0)
    warehouse: Optional[str] = None


class ShippingAddress(BaseModel):
    name: str
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str = "US"
    phone: Optional[str] = None


class OrderRequest(BaseModel):
    """Order placed with the supplier; dropship orders need an address."""
    po_number: str
    items: List[OrderItem]
    shipping_method: Optional[str] = None
    ship_to: Optional[ShippingAddress] = None
    notes: Optional[str] = None


class PartSearchCriteria(BaseModel):
    part_number: Optional[str] = None
    description: Optional[str] = None
    manufacturer: Optional[str] = None
    category: Optional[str] = None
    limit: int = 50
