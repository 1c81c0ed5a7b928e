"""
Supabase client — lazy supabase-py handle for the pricing stores.

Holds the service-role credentials and creates the SDK client on first
use, so importing the container never opens a connection. Each wrapper
owns its own SDK client; the container keeps one wrapper per process.
Version: 1.0.0
"""
import logging

from supabase import create_client, Client

from supplier_sync.core.config import Settings

logger = logging.getLogger("supabase_client")


class SupabaseClient:
    """Service-role access to the pricing tables."""

    def __init__(self, settings: Settings) -> None:
        missing = [
            name
            for name, value in (
                ("SUPABASE_URL", settings.supabase_url),
                ("SUPABASE_SERVICE_ROLE_KEY", settings.supabase_service_role_key),
            )
            if not value
        ]
        if missing:
            raise RuntimeError(f"{' and '.join(missing)} must be set for pricing cache access")

        self._url = settings.supabase_url
        self._key = settings.supabase_service_role_key
        self._sdk: Client | None = None

    def get_client(self) -> Client:
        if self._sdk is None:
            self._sdk = create_client(self._url, self._key)
            logger.info("pricing store connected url=%s", self._url)
        return self._sdk

    @property
    def client(self) -> Client:
        return self.get_client()
