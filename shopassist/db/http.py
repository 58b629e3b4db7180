# shopassist/db/http.py
import logging

import httpx
from shopassist.core.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121 Safari/537.36"
)

http_client: httpx.AsyncClient | None = None


def new_client(timeout_s: float | None = None, **kwargs) -> httpx.AsyncClient:
    """Outbound client shared by adapters, scrapers and provider calls."""
    settings = get_settings()
    timeout = timeout_s if timeout_s is not None else settings.http_timeout_s
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0)),
        follow_redirects=True,
        headers={"User-Agent": DEFAULT_USER_AGENT},
        **kwargs,
    )


async def connect():
    global http_client
    if http_client is None:
        http_client = new_client()
        logger.info("HTTP client ready (timeout=%ss)", get_settings().http_timeout_s)


async def disconnect():
    global http_client
    if http_client is not None:
        await http_client.aclose()
        http_client = None
        logger.info("HTTP client closed")


def get_http() -> httpx.AsyncClient:
    assert http_client is not None, "HTTP client not initialized"
    return http_client
