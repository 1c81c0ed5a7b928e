"""
Sync constants — batch sizing, retry ceilings, staleness and schedule defaults.

Pricing sync constants.
Version: 1.0.0
"""

DEFAULT_CURRENCY: str = "USD"

# Part ids per bulk pricing request during full/incremental sync
PRICING_BATCH_SIZE: int = 50

# Retries after the first attempt of a supplier call
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_BASE_DELAY_MS: int = 1000

# Fallback wait when a rate-limit response carries no retry hint
DEFAULT_RATE_LIMIT_RETRY_SECONDS: int = 60

STALE_THRESHOLD_HOURS: int = 24

# Update requests failing this many times stay failed
MAX_REQUEST_ATTEMPTS: int = 3

# Requests drained per processing run
REQUEST_DRAIN_LIMIT: int = 50

# Startup catch-up: run a full sync when the last one is older than this
MISSED_FULL_SYNC_HOURS: int = 48

MAX_RECENT_ERRORS: int = 10
RECENT_LOGS_LIMIT: int = 10

# Truncation for error text written to the database
MAX_ERROR_MESSAGE_LENGTH: int = 500

SCHEDULE_TYPES = ("full_sync", "incremental_sync", "process_requests")

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

# Scheduler defaults
DEFAULT_FULL_SYNC_TIME: str = "02:00"
DEFAULT_INCREMENTAL_INTERVAL_HOURS: int = 6
DEFAULT_REQUEST_INTERVAL_MINUTES: int = 5

# Table names
PRICING_CACHE_TABLE: str = "pricing_cache"
SYNC_LOGS_TABLE: str = "pricing_sync_logs"
UPDATE_REQUESTS_TABLE: str = "pricing_update_requests"
SCHEDULES_TABLE: str = "pricing_sync_schedules"
SCHEDULER_CONFIG_TABLE: str = "pricing_scheduler_config"
