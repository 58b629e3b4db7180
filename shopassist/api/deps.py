# shopassist/api/deps.py
from fastapi import Depends

from shopassist.core.config import Settings, get_settings
from shopassist.db.http import get_http
from shopassist.db.redis import get_redis
from shopassist.domain.services.checkout_flow import CheckoutFlow, IntentPoller
from shopassist.domain.services.checkout_svc import CheckoutClient
from shopassist.domain.services.enrichment_svc import EnrichmentPipeline
from shopassist.domain.services.llm_svc import Summarizer


def settings_dep() -> Settings:
    return get_settings()


# Shared outbound httpx client (opened in lifespan)
def http_dep():
    return get_http()


# Redis client or None; services skip caching on None
def redis_dep():
    return get_redis()


def summarizer_dep(settings: Settings = Depends(settings_dep)) -> Summarizer:
    return Summarizer(settings)


def enrichment_dep(
    http=Depends(http_dep),
    settings: Settings = Depends(settings_dep),
    summarizer: Summarizer = Depends(summarizer_dep),
) -> EnrichmentPipeline:
    return EnrichmentPipeline(http, settings, summarizer=summarizer)


def checkout_client_dep(http=Depends(http_dep), settings: Settings = Depends(settings_dep)) -> CheckoutClient:
    return CheckoutClient(http, settings)


def intent_poller_dep(
    client: CheckoutClient = Depends(checkout_client_dep),
    settings: Settings = Depends(settings_dep),
) -> IntentPoller:
    return IntentPoller(client, timeout_s=settings.poll_timeout_s, max_errors=settings.poll_max_errors)


def checkout_flow_dep(
    client: CheckoutClient = Depends(checkout_client_dep),
    poller: IntentPoller = Depends(intent_poller_dep),
) -> CheckoutFlow:
    return CheckoutFlow(client, poller)
