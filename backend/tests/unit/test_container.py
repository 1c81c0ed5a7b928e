"""
Unit tests for the lazy DI container.
Version: 1.0.0
"""
import pytest
from unittest.mock import patch

from supplier_sync import container


@pytest.fixture(autouse=True)
def clear_caches():
    getters = [
        container.get_clock, container.get_rate_limit_tracker, container.get_retry_policy,
        container.get_supabase_client, container.get_supplier_client,
        container.get_pricing_cache_store, container.get_sync_log_store,
        container.get_update_request_store, container.get_schedule_store,
        container.get_pricing_sync_engine, container.get_sync_scheduler,
        container.get_pricing_service,
    ]
    for getter in getters:
        getter.cache_clear()
    yield
    for getter in getters:
        getter.cache_clear()


@pytest.fixture
def env_settings(mock_settings):
    with patch("supplier_sync.container.settings", mock_settings):
        yield mock_settings


@pytest.mark.unit
class TestContainer:

    def test_getters_are_singletons(self, env_settings):
        assert container.get_pricing_service() is container.get_pricing_service()
        assert container.get_supplier_client() is container.get_supplier_client()

    def test_shared_rate_limit_tracker(self, env_settings):
        client = container.get_supplier_client()
        scheduler = container.get_sync_scheduler()
        assert client.rate_limits is container.get_rate_limit_tracker()
        assert scheduler._rate_limits is client.rate_limits

    def test_stores_share_supabase_client(self, env_settings):
        cache_store = container.get_pricing_cache_store()
        log_store = container.get_sync_log_store()
        assert cache_store._supabase_client is log_store._supabase_client

    def test_engine_uses_settings(self, env_settings):
        env_settings.pricing_batch_size = 25
        env_settings.pricing_max_retries = 2
        engine = container.get_pricing_sync_engine()
        assert engine.batch_size == 25
        assert engine.max_retries == 2

    def test_default_scheduler_config(self, env_settings):
        env_settings.pricing_full_sync_time = "04:15"
        env_settings.pricing_enable_request_processing = False

        config = container.default_scheduler_config()

        assert config.full_sync_time == "04:15"
        assert config.enable_request_processing is False

    def test_supabase_client_needs_credentials(self, env_settings):
        env_settings.supabase_url = None
        with pytest.raises(RuntimeError):
            container.get_supabase_client()
