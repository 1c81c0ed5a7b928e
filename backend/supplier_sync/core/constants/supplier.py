"""
Supplier API constants — endpoint paths and request limits.
Version: 1.0.0
"""

SUPPLIER_SERVICE_NAME: str = "Supplier"

# Endpoint paths, relative to SUPPLIER_API_BASE_URL
INVENTORY_CHECK_ENDPOINT: str = "/inventory"
INVENTORY_BULK_ENDPOINT: str = "/inventory/bulk"
INVENTORY_FULL_ENDPOINT: str = "/inventory/full"
INVENTORY_UPDATES_ENDPOINT: str = "/inventory/updates"
PRICING_BULK_ENDPOINT: str = "/pricing/bulk"
SHIPPING_OPTIONS_ENDPOINT: str = "/shipping/options/multiple"
ORDERS_ENDPOINT: str = "/orders"
DROPSHIP_ORDERS_ENDPOINT: str = "/orders/place-dropship"
PARTS_SEARCH_ENDPOINT: str = "/parts/search"
PART_DETAILS_ENDPOINT: str = "/parts"
KIT_COMPONENTS_ENDPOINT: str = "/kits"
CONNECTION_TEST_ENDPOINT: str = "/utility/report-my-ip"

# Rate limits are tracked against this endpoint for all pricing traffic
PRICING_ENDPOINT: str = PRICING_BULK_ENDPOINT

DEFAULT_TIMEOUT_MS: int = 30000

# Request size limits enforced before any network call
MAX_PART_IDS_PER_PRICING_REQUEST: int = 50
MAX_PART_IDS_PER_INVENTORY_REQUEST: int = 50
MAX_SHIPPING_ITEMS: int = 50

# Body fields never written to logs
CREDENTIAL_FIELDS = ("accountNumber", "securityToken")

# Lowercased substrings that mark an error body as a rate-limit response
RATE_LIMIT_MARKERS = ("rate limit", "rate-limit", "ratelimit", "too many requests")
