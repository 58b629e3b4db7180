# tests/conftest.py
from typing import Callable

import httpx
import pytest

from shopassist.core.config import Settings


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Settings built from keyword overrides only, no .env file."""
    def _make(**overrides) -> Settings:
        base = {
            "RYE_API_BASE": "https://checkout.test",
            "RYE_SELL_ANYTHING_API_KEY": "test-key",
        }
        base.update(overrides)
        return Settings(_env_file=None, **base)
    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """AsyncClient whose every request is answered by `handler`."""
    def _make(handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
    return _make


@pytest.fixture
def unreachable_http(mock_http) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)
    return mock_http(handler)
