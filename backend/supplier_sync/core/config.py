import os
from typing import Optional
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel


load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    # Supabase
    supabase_url: str | None = os.getenv("SUPABASE_URL")
    supabase_service_role_key: str | None = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

    # Supplier API
    supplier_api_base_url: str = os.getenv(
        "SUPPLIER_API_BASE_URL", "https://api.supplier.example.com/v1"
    )
    supplier_account_number: Optional[str] = os.getenv("SUPPLIER_ACCOUNT_NUMBER")
    supplier_security_token_dev: Optional[str] = os.getenv("SUPPLIER_SECURITY_TOKEN_DEV")
    supplier_security_token_prod: Optional[str] = os.getenv("SUPPLIER_SECURITY_TOKEN_PROD")
    supplier_environment: str = os.getenv("SUPPLIER_ENVIRONMENT", "development")
    supplier_request_timeout_ms: int = int(os.getenv("SUPPLIER_REQUEST_TIMEOUT_MS", "30000"))

    @property
    def supplier_security_token(self) -> Optional[str]:
        """Security token for the configured supplier environment."""
        if self.supplier_environment.lower() in ("production", "prod"):
            return self.supplier_security_token_prod
        return self.supplier_security_token_dev

    # Pricing sync
    pricing_batch_size: int = int(os.getenv("PRICING_BATCH_SIZE", "50"))
    pricing_full_sync_time: str = os.getenv("PRICING_FULL_SYNC_TIME", "02:00")
    pricing_incremental_interval_hours: int = int(os.getenv("PRICING_INCREMENTAL_INTERVAL_HOURS", "6"))
    pricing_request_interval_minutes: int = int(os.getenv("PRICING_REQUEST_INTERVAL_MINUTES", "5"))
    pricing_max_retries: int = int(os.getenv("PRICING_MAX_RETRIES", "3"))
    pricing_retry_base_delay_ms: int = int(os.getenv("PRICING_RETRY_BASE_DELAY_MS", "1000"))
    pricing_stale_threshold_hours: int = int(os.getenv("PRICING_STALE_THRESHOLD_HOURS", "24"))
    pricing_enable_auto_sync: bool = _env_bool("PRICING_ENABLE_AUTO_SYNC", "true")
    pricing_enable_request_processing: bool = _env_bool("PRICING_ENABLE_REQUEST_PROCESSING", "true")
    pricing_request_max_attempts: int = int(os.getenv("PRICING_REQUEST_MAX_ATTEMPTS", "3"))

    # Scheduler
    scheduler_timezone: str = os.getenv("SCHEDULER_TIMEZONE", "UTC")
    auto_start_scheduler: bool = _env_bool("AUTO_START_SCHEDULER", "true")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = Settings()
