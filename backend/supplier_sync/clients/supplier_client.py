"""
Supplier HTTP client — rate-limit aware JSON calls to the dropship/inventory API.

Every request is a JSON body carrying the account credentials plus the
operation's own fields. Calls never raise: each one resolves to a
SupplierResult whose error_type classifies the failure for RetryPolicy.
Version: 1.0.0
"""
import asyncio
import inspect
import logging
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

import httpx

from supplier_sync.core.config import Settings
from supplier_sync.core.constants.supplier import (
    CONNECTION_TEST_ENDPOINT,
    CREDENTIAL_FIELDS,
    DEFAULT_TIMEOUT_MS,
    DROPSHIP_ORDERS_ENDPOINT,
    INVENTORY_BULK_ENDPOINT,
    INVENTORY_CHECK_ENDPOINT,
    INVENTORY_FULL_ENDPOINT,
    INVENTORY_UPDATES_ENDPOINT,
    KIT_COMPONENTS_ENDPOINT,
    MAX_PART_IDS_PER_INVENTORY_REQUEST,
    MAX_PART_IDS_PER_PRICING_REQUEST,
    MAX_SHIPPING_ITEMS,
    ORDERS_ENDPOINT,
    PART_DETAILS_ENDPOINT,
    PARTS_SEARCH_ENDPOINT,
    PRICING_BULK_ENDPOINT,
    RATE_LIMIT_MARKERS,
    SHIPPING_OPTIONS_ENDPOINT,
)
from supplier_sync.core.constants.sync import DEFAULT_RATE_LIMIT_RETRY_SECONDS
from supplier_sync.schemas.supplier import (
    OrderItem,
    OrderRequest,
    PartSearchCriteria,
    ShippingAddress,
    SupplierErrorType,
    SupplierResult,
)
from supplier_sync.utils.rate_limiter import RateLimitTracker
from supplier_sync.utils.schedule_helpers import format_time_remaining

logger = logging.getLogger("supplier_client")

ErrorObserver = Callable[[SupplierResult], Union[None, Awaitable[None]]]


def sanitize_payload(body: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a request body with credentials removed, safe to log."""
    return {k: v for k, v in body.items() if k not in CREDENTIAL_FIELDS}


def mentions_rate_limit(text: Optional[str]) -> bool:
    """Heuristic match on supplier error wording."""
    if not text:
        return False
    lowered = text.lower()
    return any(marker in lowered for marker in RATE_LIMIT_MARKERS)


def _error_text(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if error is None or error == "" or error is False:
        return None
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error)


def _retry_after(body: Any, headers: httpx.Headers) -> int:
    if isinstance(body, dict):
        for key in ("retry_after_seconds", "retry_after", "retryAfter"):
            value = body.get(key)
            if value is not None:
                try:
                    return max(0, int(float(value)))
                except (TypeError, ValueError):
                    break
    header = headers.get("Retry-After")
    if header:
        try:
            return max(0, int(float(header)))
        except ValueError:
            pass
    return DEFAULT_RATE_LIMIT_RETRY_SECONDS


def _validate_part_ids(part_ids: Sequence[str], max_count: int) -> Optional[str]:
    if not part_ids:
        return "At least one part id is required"
    if any(not (part_id or "").strip() for part_id in part_ids):
        return "Part ids must not be empty"
    if len(part_ids) > max_count:
        return f"At most {max_count} part ids per request (got {len(part_ids)})"
    return None


class SupplierClient:
    def __init__(self, settings: Settings, rate_limits: RateLimitTracker) -> None:
        self._base_url = settings.supplier_api_base_url.rstrip("/")
        self._account_number = settings.supplier_account_number
        self._security_token = settings.supplier_security_token
        self._environment = settings.supplier_environment
        self._timeout_ms = settings.supplier_request_timeout_ms or DEFAULT_TIMEOUT_MS
        self._rate_limits = rate_limits
        self._observers: List[ErrorObserver] = []
        self._observer_tasks: set = set()

    @property
    def rate_limits(self) -> RateLimitTracker:
        return self._rate_limits

    # ------------------------------------------------------------------
    # Error observers
    # ------------------------------------------------------------------

    def add_error_observer(self, observer: ErrorObserver) -> None:
        self._observers.append(observer)

    def remove_error_observer(self, observer: ErrorObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _observer_done(self, task: asyncio.Task) -> None:
        self._observer_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Supplier error observer failed: {task.exception()}")

    def _notify(self, result: SupplierResult) -> None:
        """Hand a failure to every observer without waiting on them."""
        for observer in list(self._observers):
            try:
                outcome = observer(result)
                if inspect.isawaitable(outcome):
                    task = asyncio.ensure_future(outcome)
                    self._observer_tasks.add(task)
                    task.add_done_callback(self._observer_done)
            except Exception as e:
                logger.error(f"Supplier error observer failed: {e}")

    def _fail(self, endpoint: str, error_type: SupplierErrorType, error: str, **kwargs) -> SupplierResult:
        result = SupplierResult.failure(endpoint, error_type, error, **kwargs)
        if error_type == SupplierErrorType.UNKNOWN:
            logger.error(
                f"Supplier call {endpoint} failed with unclassified error "
                f"(status={result.status_code}): {error}"
            )
        else:
            logger.warning(f"Supplier call {endpoint} failed [{error_type.value}]: {error}")
        self._notify(result)
        return result

    # ------------------------------------------------------------------
    # Generic call
    # ------------------------------------------------------------------

    async def call(
        self,
        endpoint: str,
        method: str = "POST",
        payload: Optional[Dict[str, Any]] = None,
        timeout_ms: Optional[int] = None,
    ) -> SupplierResult:
        """
        Issue one request to the supplier and classify the outcome.

        Args:
            endpoint: Path relative to the API base URL; also the rate-limit key
            method: HTTP method (the supplier API is POST throughout)
            payload: Operation-specific body fields
            timeout_ms: Per-call timeout (default from settings, 30s)

        Returns:
            SupplierResult; never raises
        """
        if self._rate_limits.is_limited(endpoint):
            remaining = self._rate_limits.remaining_seconds(endpoint)
            return self._fail(
                endpoint,
                SupplierErrorType.RATE_LIMIT,
                f"Rate limited. Retry in {format_time_remaining(remaining)}",
                retry_after_seconds=remaining,
            )

        if not (self._account_number and self._security_token):
            return self._fail(
                endpoint,
                SupplierErrorType.AUTH,
                "SUPPLIER_ACCOUNT_NUMBER and a security token for "
                f"environment '{self._environment}' must be set",
            )

        body = {
            "accountNumber": self._account_number,
            "securityToken": self._security_token,
            **(payload or {}),
        }
        url = f"{self._base_url}{endpoint}"
        timeout = (timeout_ms or self._timeout_ms) / 1000.0
        logger.debug(f"Supplier request {method} {endpoint} payload={sanitize_payload(body)}")

        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                if method.upper() == "GET":
                    resp = await client.get(url, params=body)
                else:
                    resp = await client.request(method.upper(), url, json=body)
        except httpx.TimeoutException:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            return self._fail(
                endpoint,
                SupplierErrorType.NETWORK,
                f"Request timed out after {int(timeout * 1000)}ms",
                response_time_ms=elapsed_ms,
            )
        except httpx.TransportError as e:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            return self._fail(
                endpoint,
                SupplierErrorType.NETWORK,
                f"Network error: {e}",
                response_time_ms=elapsed_ms,
            )

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(f"Supplier {method.upper()} {endpoint} -> {resp.status_code} in {elapsed_ms}ms")
        return self._classify(endpoint, resp, elapsed_ms)

    def _classify(self, endpoint: str, resp: httpx.Response, elapsed_ms: int) -> SupplierResult:
        try:
            body = resp.json()
        except ValueError:
            body = None

        status = resp.status_code
        error_text = _error_text(body)

        # Status code OR wording: the supplier is not consistent about 429s
        if status == 429 or mentions_rate_limit(error_text):
            retry_after = _retry_after(body, resp.headers)
            self._rate_limits.record_limit(endpoint, retry_after)
            return self._fail(
                endpoint,
                SupplierErrorType.RATE_LIMIT,
                error_text or "Rate limit exceeded",
                status_code=status,
                retry_after_seconds=retry_after,
                response_time_ms=elapsed_ms,
            )

        if status in (401, 403):
            return self._fail(
                endpoint,
                SupplierErrorType.AUTH,
                error_text or f"Authentication failed (HTTP {status})",
                status_code=status,
                response_time_ms=elapsed_ms,
            )

        if status >= 500:
            return self._fail(
                endpoint,
                SupplierErrorType.SERVER,
                error_text or f"Supplier server error (HTTP {status})",
                status_code=status,
                response_time_ms=elapsed_ms,
            )

        if 200 <= status < 300:
            if body is None:
                return self._fail(
                    endpoint,
                    SupplierErrorType.UNKNOWN,
                    f"Malformed response body: {resp.text[:500]}",
                    status_code=status,
                    response_time_ms=elapsed_ms,
                )
            if error_text:
                return self._fail(
                    endpoint,
                    SupplierErrorType.UNKNOWN,
                    error_text,
                    status_code=status,
                    response_time_ms=elapsed_ms,
                )
            return SupplierResult.ok(endpoint, body, status_code=status, response_time_ms=elapsed_ms)

        return self._fail(
            endpoint,
            SupplierErrorType.UNKNOWN,
            f"HTTP {status}: {error_text or resp.text[:500]}",
            status_code=status,
            response_time_ms=elapsed_ms,
        )

    def _invalid(self, endpoint: str, message: str) -> SupplierResult:
        return self._fail(endpoint, SupplierErrorType.VALIDATION, message)

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    async def check_inventory(self, part_id: str) -> SupplierResult:
        error = _validate_part_ids([part_id], 1)
        if error:
            return self._invalid(INVENTORY_CHECK_ENDPOINT, error)
        return await self.call(INVENTORY_CHECK_ENDPOINT, payload={"partId": part_id.strip()})

    async def check_inventory_bulk(self, part_ids: Sequence[str]) -> SupplierResult:
        error = _validate_part_ids(part_ids, MAX_PART_IDS_PER_INVENTORY_REQUEST)
        if error:
            return self._invalid(INVENTORY_BULK_ENDPOINT, error)
        return await self.call(
            INVENTORY_BULK_ENDPOINT, payload={"partIds": [p.strip() for p in part_ids]}
        )

    async def get_full_inventory(self) -> SupplierResult:
        """Complete catalog with stock levels; the source of part ids for a full sync."""
        return await self.call(INVENTORY_FULL_ENDPOINT, timeout_ms=max(self._timeout_ms, 120000))

    async def get_inventory_updates(self, since: Optional[datetime] = None) -> SupplierResult:
        payload = {"since": since.isoformat()} if since else {}
        return await self.call(INVENTORY_UPDATES_ENDPOINT, payload=payload)

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    async def get_bulk_pricing(self, part_ids: Sequence[str]) -> SupplierResult:
        error = _validate_part_ids(part_ids, MAX_PART_IDS_PER_PRICING_REQUEST)
        if error:
            return self._invalid(PRICING_BULK_ENDPOINT, error)
        return await self.call(
            PRICING_BULK_ENDPOINT, payload={"partIds": [p.strip() for p in part_ids]}
        )

    # ------------------------------------------------------------------
    # Shipping & orders
    # ------------------------------------------------------------------

    async def get_shipping_options(
        self, items: Sequence[OrderItem], ship_to: ShippingAddress
    ) -> SupplierResult:
        if not items:
            return self._invalid(SHIPPING_OPTIONS_ENDPOINT, "At least one item is required")
        if len(items) > MAX_SHIPPING_ITEMS:
            return self._invalid(
                SHIPPING_OPTIONS_ENDPOINT, f"At most {MAX_SHIPPING_ITEMS} items per shipping quote"
            )
        return await self.call(
            SHIPPING_OPTIONS_ENDPOINT,
            payload={
                "items": [_order_item(item) for item in items],
                "address": _address(ship_to),
            },
        )

    async def place_order(self, order: OrderRequest) -> SupplierResult:
        if not order.items:
            return self._invalid(ORDERS_ENDPOINT, "Orders need at least one item")
        return await self.call(ORDERS_ENDPOINT, payload=_order(order))

    async def place_dropship_order(self, order: OrderRequest) -> SupplierResult:
        if not order.items:
            return self._invalid(DROPSHIP_ORDERS_ENDPOINT, "Orders need at least one item")
        if order.ship_to is None:
            return self._invalid(DROPSHIP_ORDERS_ENDPOINT, "Dropship orders need a ship-to address")
        return await self.call(DROPSHIP_ORDERS_ENDPOINT, payload=_order(order))

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def search_parts(self, criteria: PartSearchCriteria) -> SupplierResult:
        payload = {
            "partNumber": criteria.part_number,
            "description": criteria.description,
            "manufacturer": criteria.manufacturer,
            "category": criteria.category,
        }
        payload = {k: v for k, v in payload.items() if v}
        if not payload:
            return self._invalid(PARTS_SEARCH_ENDPOINT, "At least one search criterion is required")
        payload["limit"] = criteria.limit
        return await self.call(PARTS_SEARCH_ENDPOINT, payload=payload)

    async def get_part_details(self, part_id: str) -> SupplierResult:
        error = _validate_part_ids([part_id], 1)
        if error:
            return self._invalid(PART_DETAILS_ENDPOINT, error)
        return await self.call(PART_DETAILS_ENDPOINT, payload={"partId": part_id.strip()})

    async def get_kit_components(self, kit_id: str) -> SupplierResult:
        error = _validate_part_ids([kit_id], 1)
        if error:
            return self._invalid(KIT_COMPONENTS_ENDPOINT, error)
        return await self.call(KIT_COMPONENTS_ENDPOINT, payload={"kitId": kit_id.strip()})

    async def test_connection(self) -> SupplierResult:
        """Round-trip to the supplier's IP report utility to verify credentials."""
        return await self.call(CONNECTION_TEST_ENDPOINT, timeout_ms=10000)


def _order_item(item: OrderItem) -> Dict[str, Any]:
    row = {"partId": item.part_id, "quantity": item.quantity}
    if item.warehouse:
        row["warehouse"] = item.warehouse
    return row


def _address(address: ShippingAddress) -> Dict[str, Any]:
    return {
        "name": address.name,
        "address1": address.address_line1,
        "address2": address.address_line2 or "",
        "city": address.city,
        "state": address.state,
        "zip": address.postal_code,
        "country": address.country,
        "phone": address.phone or "",
    }


def _order(order: OrderRequest) -> Dict[str, Any]:
    payload = {
        "poNumber": order.po_number,
        "items": [_order_item(item) for item in order.items],
    }
    if order.shipping_method:
        payload["shippingMethod"] = order.shipping_method
    if order.ship_to is not None:
        payload["shipTo"] = _address(order.ship_to)
    if order.notes:
        payload["notes"] = order.notes
    return payload
