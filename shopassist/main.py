from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging, os

from shopassist.core.config import get_settings
from shopassist.core.lifespan import lifespan
from shopassist.core.logging import configure_logging
from shopassist.api.errors import register_exception_handlers
from shopassist.api.v1.routers.health import router as health_router
from shopassist.api.v1.routers.search import router as search_router
from shopassist.api.v1.routers.products import router as products_router
from shopassist.api.v1.routers.checkout import router as checkout_router

settings = get_settings()
configure_logging(level=logging.DEBUG if settings.DEBUG else logging.INFO)

app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# ------- CORS -------
# ALLOWED_ORIGINS is a CSV, e.g. "https://shop.example.com,https://www.shop.example.com"
allowed_origins_env = os.getenv("ALLOWED_ORIGINS", "")
allowed_origins = [o.strip() for o in allowed_origins_env.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins or ["http://localhost:3000"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=86400,
)

register_exception_handlers(app)

# ------- Routes -------
app.include_router(health_router)
app.include_router(search_router, prefix=settings.api_prefix)     # aggregated search
app.include_router(products_router, prefix=settings.api_prefix)   # enrich / details / summarize
app.include_router(checkout_router, prefix=settings.api_prefix)   # checkout intents
