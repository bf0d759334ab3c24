"""Shared dependency providers for aiohttp handlers."""
from __future__ import annotations

from typing import Any

from aiohttp import web

from launch_webhooks.services.delivery import WebhookDeliveryService
from launch_webhooks.services.webhooks import WebhookService

WEBHOOK_SERVICE_KEY = "webhook_service"
DELIVERY_SERVICE_KEY = "webhook_delivery_service"
EVENT_POLLER_KEY = "event_poller"
HTTP_SESSION_KEY = "webhook_http_session"


def _require(app: web.Application, key: str) -> Any:
    service = app.get(key)
    if service is None:
        raise web.HTTPServiceUnavailable(reason=f"{key} is not initialised")
    return service


def get_webhook_service(request: web.Request) -> WebhookService:
    return _require(request.app, WEBHOOK_SERVICE_KEY)


def get_delivery_service(request: web.Request) -> WebhookDeliveryService:
    return _require(request.app, DELIVERY_SERVICE_KEY)
