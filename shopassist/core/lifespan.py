# shopassist/core/lifespan.py
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from shopassist.db import http, redis as r

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup ---
    # Shared outbound client is mandatory
    await http.connect()

    # Redis optional; connect() already degrades to "no cache"
    await r.connect()

    yield

    # --- Shutdown ---
    try:
        await r.disconnect()
    except Exception as e:
        logger.warning("Redis disconnect failed: %s", e)

    await http.disconnect()
