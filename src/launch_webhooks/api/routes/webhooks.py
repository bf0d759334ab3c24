"""Webhook subscription endpoints."""
from __future__ import annotations

from typing import Any

from aiohttp import web
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from launch_webhooks.api.utils import (
    STELLAR_ACCOUNT_RE,
    STELLAR_TOKEN_RE,
    error_response,
    limit_param,
    mask_secret,
    parse_uuid,
    read_json,
)
from launch_webhooks.domain.webhooks import WebhookEventType, WebhookSubscription
from launch_webhooks.services.dependencies import get_delivery_service, get_webhook_service

routes = web.RouteTableDef()

_MAX_URL_LENGTH = 2048


class SubscriptionCreateDTO(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    url: str
    token_address: str | None = None
    events: list[WebhookEventType] = Field(min_length=1)
    created_by: str

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")) or len(value) > _MAX_URL_LENGTH:
            raise ValueError("Invalid URL format")
        return value

    @field_validator("token_address")
    @classmethod
    def validate_token_address(cls, value: str | None) -> str | None:
        if not value:
            return None
        if not STELLAR_TOKEN_RE.match(value):
            raise ValueError("Invalid Stellar address format")
        return value

    @field_validator("events")
    @classmethod
    def dedupe_events(cls, value: list[WebhookEventType]) -> list[WebhookEventType]:
        return list(dict.fromkeys(value))

    @field_validator("created_by")
    @classmethod
    def validate_creator(cls, value: str) -> str:
        value = value.strip()
        if not STELLAR_ACCOUNT_RE.match(value):
            raise ValueError("Invalid creator Stellar address")
        return value


def public_subscription(subscription: WebhookSubscription) -> dict[str, Any]:
    """Subscription as returned to clients; the secret is never sent in full."""
    data = subscription.model_dump(mode="json", by_alias=True)
    data["secret"] = mask_secret(subscription.secret)
    return data


def _validation_errors(exc: ValidationError) -> list[dict[str, Any]]:
    return [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]


def _creator(body: dict[str, Any]) -> str | None:
    created_by = body.get("createdBy")
    if not isinstance(created_by, str) or not created_by.strip():
        return None
    return created_by.strip()


@routes.post("/api/v1/webhooks/subscribe")
async def subscribe(request: web.Request):
    body = await read_json(request)
    try:
        dto = SubscriptionCreateDTO.model_validate(body)
    except ValidationError as exc:
        return web.json_response(
            {"success": False, "errors": _validation_errors(exc)}, status=400
        )

    service = get_webhook_service(request)
    subscription = await service.create_subscription(
        url=dto.url,
        events=dto.events,
        created_by=dto.created_by,
        token_address=dto.token_address,
    )
    return web.json_response(
        {
            "success": True,
            "data": public_subscription(subscription),
            "message": "Webhook subscription created successfully",
        },
        status=201,
    )


@routes.delete("/api/v1/webhooks/unsubscribe/{subscription_id}")
async def unsubscribe(request: web.Request):
    subscription_id = parse_uuid(request.match_info["subscription_id"], "subscription id")
    body = await read_json(request)
    created_by = _creator(body)
    if created_by is None:
        return error_response(400, "createdBy address is required")

    service = get_webhook_service(request)
    if not await service.delete_subscription(subscription_id, created_by):
        return error_response(404, "Subscription not found or unauthorized")
    return web.json_response(
        {"success": True, "message": "Webhook subscription deleted successfully"}
    )


@routes.post("/api/v1/webhooks/list")
async def list_subscriptions(request: web.Request):
    body = await read_json(request)
    created_by = _creator(body)
    if created_by is None:
        return error_response(400, "createdBy address is required")
    active = body.get("active")
    if active is not None and not isinstance(active, bool):
        return error_response(400, "active must be a boolean")

    service = get_webhook_service(request)
    subscriptions = await service.list_subscriptions(created_by, active=active)
    items = [public_subscription(sub) for sub in subscriptions]
    return web.json_response({"success": True, "data": items, "count": len(items)})


@routes.get("/api/v1/webhooks/{subscription_id}")
async def get_subscription(request: web.Request):
    subscription_id = parse_uuid(request.match_info["subscription_id"], "subscription id")
    service = get_webhook_service(request)
    subscription = await service.get_subscription(subscription_id)
    if subscription is None:
        return error_response(404, "Subscription not found")
    return web.json_response({"success": True, "data": public_subscription(subscription)})


@routes.patch("/api/v1/webhooks/{subscription_id}/toggle")
async def toggle_subscription(request: web.Request):
    subscription_id = parse_uuid(request.match_info["subscription_id"], "subscription id")
    body = await read_json(request)
    active = body.get("active")
    if not isinstance(active, bool):
        return error_response(400, "active field must be a boolean")

    service = get_webhook_service(request)
    if not await service.update_subscription_status(subscription_id, active):
        return error_response(404, "Subscription not found")
    state = "activated" if active else "deactivated"
    return web.json_response({"success": True, "message": f"Subscription {state} successfully"})


@routes.get("/api/v1/webhooks/{subscription_id}/logs")
async def delivery_logs(request: web.Request):
    subscription_id = parse_uuid(request.match_info["subscription_id"], "subscription id")
    limit = limit_param(request)
    service = get_webhook_service(request)
    logs = await service.get_delivery_logs(subscription_id, limit=limit)
    items = [log.model_dump(mode="json", by_alias=True) for log in logs]
    return web.json_response({"success": True, "data": items, "count": len(items)})


@routes.post("/api/v1/webhooks/{subscription_id}/test")
async def test_subscription(request: web.Request):
    subscription_id = parse_uuid(request.match_info["subscription_id"], "subscription id")
    service = get_webhook_service(request)
    subscription = await service.get_subscription(subscription_id)
    if subscription is None:
        return error_response(404, "Subscription not found")

    delivered = await get_delivery_service(request).test_webhook(subscription)
    message = "Test webhook delivered successfully" if delivered else "Test webhook delivery failed"
    return web.json_response({"success": delivered, "message": message})
