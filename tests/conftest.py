"""Shared fixtures: settings without file logging and mocked upstreams"""

import httpx
import pytest

from config.settings import Settings
from frameproxy.services.proxy_service import ProxyService


@pytest.fixture
def settings():
    return Settings(log_file=None, cors_relay_enabled=True)


@pytest.fixture
def make_service(settings):
    """ProxyService whose upstream is the given MockTransport handler"""

    def _make(handler, **overrides):
        active = settings.model_copy(update=overrides) if overrides else settings
        return ProxyService(active, transport=httpx.MockTransport(handler))

    return _make
