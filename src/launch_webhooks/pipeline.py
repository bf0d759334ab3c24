"""Startup/cleanup hooks wiring the store, delivery engine and event poller."""
from __future__ import annotations

import asyncio

import structlog
from aiohttp import ClientSession, web

from launch_webhooks.chain.horizon import HorizonEventClient
from launch_webhooks.core.exceptions import ConfigurationError
from launch_webhooks.db.pool import get_pool
from launch_webhooks.poller import EventPoller
from launch_webhooks.repositories.webhooks import (
    WebhookDeliveryLogRepository,
    WebhookSubscriptionRepository,
)
from launch_webhooks.services.delivery import RetryPolicy, WebhookDeliveryService
from launch_webhooks.services.dependencies import (
    DELIVERY_SERVICE_KEY,
    EVENT_POLLER_KEY,
    HTTP_SESSION_KEY,
    WEBHOOK_SERVICE_KEY,
)
from launch_webhooks.services.webhooks import WebhookService
from launch_webhooks.settings import Settings, settings

logger = structlog.get_logger(__name__)


def validate_pipeline_settings(config: Settings) -> None:
    """Fail fast on configuration the poll loop cannot recover from."""
    if config.event_poller_enabled and not config.factory_contract_id.strip():
        raise ConfigurationError(
            "FACTORY_CONTRACT_ID is required when the event poller is enabled"
        )


async def start_pipeline(app: web.Application) -> None:
    session = ClientSession()
    app[HTTP_SESSION_KEY] = session

    pool = await get_pool()
    webhook_service = WebhookService(
        WebhookSubscriptionRepository(pool),
        WebhookDeliveryLogRepository(pool),
    )
    delivery_service = WebhookDeliveryService(
        webhook_service,
        session,
        policy=RetryPolicy.from_settings(settings),
        user_agent=settings.webhook_user_agent,
    )
    app[WEBHOOK_SERVICE_KEY] = webhook_service
    app[DELIVERY_SERVICE_KEY] = delivery_service

    if not settings.event_poller_enabled:
        logger.info("event poller disabled")
        return

    source = HorizonEventClient(
        session,
        horizon_url=str(settings.stellar_horizon_url),
        contract_id=settings.factory_contract_id,
    )
    poller = EventPoller(
        source,
        delivery_service,
        poll_interval_seconds=settings.event_poll_interval_seconds,
        page_size=settings.event_page_size,
        max_inflight_dispatches=settings.event_max_inflight_dispatches,
    )
    app[EVENT_POLLER_KEY] = poller
    await poller.start()


async def stop_pipeline(app: web.Application) -> None:
    poller: EventPoller | None = app.get(EVENT_POLLER_KEY)
    if poller is not None:
        poller.stop()
        try:
            await asyncio.wait_for(poller.join(), timeout=settings.shutdown_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "event poller did not drain before shutdown",
                grace_seconds=settings.shutdown_grace_seconds,
                inflight=poller.inflight_count,
            )
    session: ClientSession | None = app.get(HTTP_SESSION_KEY)
    if session is not None:
        await session.close()
