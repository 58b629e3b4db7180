from functools import lru_cache
from typing import Dict, List, Literal, Optional
import os
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["development", "production"]

def _env_file_for(app_env: EnvName) -> str:
    return ".env.development" if app_env == "development" else ".env.production"

class Settings(BaseSettings):

    # Core
    APP_ENV: EnvName = "development"
    APP_NAME: str = "ShopAssist"
    DEBUG: bool = False
    GIT_SHA: str = "unknown"

    # Redis (optional; caching is skipped when unset)
    REDIS_URL: Optional[str] = None

    # Cache config
    enrich_cache_ttl: int = 24 * 3600          # enriched product, one day
    search_cache_ttl: int = 5 * 60             # search results, 5 minutes

    # Internal storefront (Shopify Storefront API)
    SHOPIFY_STOREFRONT_URL: Optional[str] = None
    SHOPIFY_STOREFRONT_TOKEN: Optional[str] = None

    # Structured catalog (GraphQL)
    RYE_GRAPHQL_API_BASE: str = "https://staging.graphql.api.rye.com/v1/query"
    RYE_GRAPHQL_API_KEY: Optional[str] = None
    RYE_GRAPHQL_AUTH_MODE: Literal["basic", "bearer"] = "basic"
    RYE_SHOPPER_IP: Optional[str] = None

    # Checkout provider (REST)
    RYE_API_BASE: Optional[str] = None
    RYE_SELL_ANYTHING_API_KEY: Optional[str] = None

    # OpenAI
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_SUMMARY_MODEL: str = "gpt-4o-mini"
    openai_timeout_s: int = 30  # seconds

    # Generative fallbacks (feature flags)
    HIGHLIGHTS_ENABLED: bool = False
    REVIEWS_SUMMARY_ENABLED: bool = False

    # Search
    ALLOWED_MERCHANT_DOMAINS: List[str] = ["nike.com", "lululemon.com", "rei.com", "whoop.com", "therabody.com"]
    search_default_limit: int = 6
    adapter_timeout_s: float = 2.5             # per catalog adapter

    # Product summary: regex on "<name> <url>" -> review page URLs
    REVIEW_SOURCES: Dict[str, List[str]] = {}

    # Outbound HTTP
    http_timeout_s: float = 10.0

    # Checkout polling
    poll_timeout_s: float = 120.0              # caller-visible ceiling
    poll_max_errors: int = 3                   # consecutive poll failures tolerated

    # API
    api_prefix: str = "/api"

    # pydantic-settings config will be set dynamically in the factory below
    model_config = SettingsConfigDict(env_file=None, case_sensitive=True)

@lru_cache
def get_settings() -> Settings:
    """
    Factory that chooses the right .env file based on APP_ENV.
    Cache makes it cheap to inject via FastAPI dependencies.
    """
    app_env: EnvName = os.getenv("APP_ENV", "development")  # earliest switch
    env_file = _env_file_for(app_env)
    return Settings(
                _env_file=env_file,  # load .env.development or .env.production
                _env_file_encoding="utf-8"
    )
