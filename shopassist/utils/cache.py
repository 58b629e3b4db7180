import hashlib
import json
import logging
from typing import Any, Optional

from redis.asyncio import Redis

logger = logging.getLogger(__name__)


def cache_key(prefix: str, **parts: Any) -> str:
    raw = json.dumps(parts, sort_keys=True, separators=(",", ":"), default=str)
    return f"{prefix}:" + hashlib.md5(raw.encode()).hexdigest()


async def cache_get(redis: Optional[Redis], key: str):
    """JSON value under `key`, or None on miss, missing Redis or Redis error."""
    if redis is None:
        return None
    try:
        if val := await redis.get(key):
            return json.loads(val)
    except Exception as e:
        logger.warning("redis.get error key=%s err=%s", key, e)
    return None


async def cache_set(redis: Optional[Redis], key: str, value, ex: int = 60) -> None:
    if redis is None:
        return
    try:
        await redis.set(key, json.dumps(value), ex=ex)
    except Exception as e:
        logger.warning("redis.set error key=%s err=%s", key, e)
