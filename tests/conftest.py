"""Shared pytest fixtures for staybook tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_module_state():
    """Reset process-wide caches and singletons between tests."""
    import staybook.api.auth as auth_module
    from staybook.infra.config import get_settings
    from staybook.notifications.dispatcher import set_dispatcher
    from staybook.payments.gateway import set_gateway

    auth_module._jwks_cache = None
    auth_module._jwks_cache_time = 0
    get_settings.cache_clear()
    yield
    auth_module._jwks_cache = None
    auth_module._jwks_cache_time = 0
    get_settings.cache_clear()
    set_gateway(None)
    set_dispatcher(None)
