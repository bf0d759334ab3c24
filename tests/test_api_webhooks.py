from __future__ import annotations

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import web

from launch_webhooks.api.router import setup_routes
from launch_webhooks.domain.webhooks import WebhookDeliveryLog, WebhookEventType
from launch_webhooks.middleware.trace import TRACE_ID_HEADER, create_trace_middleware
from launch_webhooks.services.dependencies import DELIVERY_SERVICE_KEY, WEBHOOK_SERVICE_KEY

from tests.utils import CREATOR, TOKEN_A, make_subscription

SECRET = "abcdef0123456789" * 4


@pytest.fixture
def webhook_service():
    service = MagicMock()
    for name in (
        "create_subscription",
        "get_subscription",
        "list_subscriptions",
        "delete_subscription",
        "update_subscription_status",
        "get_delivery_logs",
    ):
        setattr(service, name, AsyncMock())
    return service


@pytest.fixture
def delivery_service():
    service = MagicMock()
    service.test_webhook = AsyncMock(return_value=True)
    return service


@pytest.fixture
async def client(aiohttp_client, webhook_service, delivery_service):
    app = web.Application(middlewares=[create_trace_middleware("launch-webhooks-test")])
    setup_routes(app)
    app[WEBHOOK_SERVICE_KEY] = webhook_service
    app[DELIVERY_SERVICE_KEY] = delivery_service
    return await aiohttp_client(app)


@pytest.mark.asyncio
async def test_subscribe_creates_and_masks_secret(client, webhook_service):
    sub = make_subscription(secret=SECRET, token_address=TOKEN_A)
    webhook_service.create_subscription.return_value = sub

    resp = await client.post(
        "/api/v1/webhooks/subscribe",
        json={
            "url": "https://example.com/hook",
            "events": ["token.created", "token.burn.self", "token.created"],
            "tokenAddress": TOKEN_A,
            "createdBy": CREATOR,
        },
    )

    assert resp.status == 201
    body = await resp.json()
    assert body["success"] is True
    assert body["data"]["secret"] == "abcdef01..."
    assert body["data"]["tokenAddress"] == TOKEN_A
    assert body["data"]["id"] == str(sub.id)
    webhook_service.create_subscription.assert_awaited_once_with(
        url="https://example.com/hook",
        events=[WebhookEventType.TOKEN_CREATED, WebhookEventType.TOKEN_BURN_SELF],
        created_by=CREATOR,
        token_address=TOKEN_A,
    )
    assert TRACE_ID_HEADER in resp.headers


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"url": "ftp://example.com", "events": ["token.created"], "createdBy": CREATOR},
        {"url": "https://example.com", "events": [], "createdBy": CREATOR},
        {"url": "https://example.com", "events": ["token.transfer"], "createdBy": CREATOR},
        {"url": "https://example.com", "events": ["token.created"], "createdBy": "nobody"},
        {"url": "https://example.com", "events": ["token.created"], "createdBy": CREATOR,
         "tokenAddress": "XYZ"},
    ],
)
async def test_subscribe_rejects_invalid_input(client, webhook_service, payload):
    resp = await client.post("/api/v1/webhooks/subscribe", json=payload)

    assert resp.status == 400
    body = await resp.json()
    assert body["success"] is False
    assert body["errors"]
    webhook_service.create_subscription.assert_not_awaited()


@pytest.mark.asyncio
async def test_subscribe_rejects_non_json(client):
    resp = await client.post("/api/v1/webhooks/subscribe", data="not json")
    assert resp.status == 400


@pytest.mark.asyncio
async def test_unsubscribe_requires_creator(client, webhook_service):
    resp = await client.delete(f"/api/v1/webhooks/unsubscribe/{uuid.uuid4()}", json={})
    assert resp.status == 400
    webhook_service.delete_subscription.assert_not_awaited()


@pytest.mark.asyncio
async def test_unsubscribe_not_found(client, webhook_service):
    webhook_service.delete_subscription.return_value = False
    resp = await client.delete(
        f"/api/v1/webhooks/unsubscribe/{uuid.uuid4()}", json={"createdBy": CREATOR}
    )
    assert resp.status == 404


@pytest.mark.asyncio
async def test_unsubscribe_deletes_owned_subscription(client, webhook_service):
    sub_id = uuid.uuid4()
    webhook_service.delete_subscription.return_value = True
    resp = await client.delete(
        f"/api/v1/webhooks/unsubscribe/{sub_id}", json={"createdBy": CREATOR}
    )
    assert resp.status == 200
    webhook_service.delete_subscription.assert_awaited_once_with(sub_id, CREATOR)


@pytest.mark.asyncio
async def test_list_masks_secrets(client, webhook_service):
    webhook_service.list_subscriptions.return_value = [
        make_subscription(secret=SECRET),
        make_subscription(secret=SECRET),
    ]
    resp = await client.post("/api/v1/webhooks/list", json={"createdBy": CREATOR, "active": True})

    assert resp.status == 200
    body = await resp.json()
    assert body["count"] == 2
    assert all(item["secret"] == "abcdef01..." for item in body["data"])
    webhook_service.list_subscriptions.assert_awaited_once_with(CREATOR, active=True)


@pytest.mark.asyncio
async def test_get_subscription_not_found(client, webhook_service):
    webhook_service.get_subscription.return_value = None
    resp = await client.get(f"/api/v1/webhooks/{uuid.uuid4()}")
    assert resp.status == 404


@pytest.mark.asyncio
async def test_get_subscription_invalid_id(client):
    resp = await client.get("/api/v1/webhooks/not-a-uuid")
    assert resp.status == 400


@pytest.mark.asyncio
async def test_toggle_requires_boolean(client, webhook_service):
    resp = await client.patch(f"/api/v1/webhooks/{uuid.uuid4()}/toggle", json={"active": "yes"})
    assert resp.status == 400
    webhook_service.update_subscription_status.assert_not_awaited()


@pytest.mark.asyncio
async def test_toggle_deactivates(client, webhook_service):
    sub_id = uuid.uuid4()
    webhook_service.update_subscription_status.return_value = True
    resp = await client.patch(f"/api/v1/webhooks/{sub_id}/toggle", json={"active": False})

    assert resp.status == 200
    assert (await resp.json())["message"] == "Subscription deactivated successfully"
    webhook_service.update_subscription_status.assert_awaited_once_with(sub_id, False)


@pytest.mark.asyncio
async def test_logs_clamps_limit(client, webhook_service):
    sub_id = uuid.uuid4()
    now = datetime.now(timezone.utc)
    webhook_service.get_delivery_logs.return_value = [
        WebhookDeliveryLog(
            id=uuid.uuid4(),
            subscription_id=sub_id,
            event=WebhookEventType.TOKEN_CREATED,
            payload={"event": "token.created"},
            status_code=None,
            success=False,
            attempts=3,
            last_attempt_at=now,
            error_message="Timeout after 5000 ms",
            created_at=now,
        )
    ]
    resp = await client.get(f"/api/v1/webhooks/{sub_id}/logs?limit=1000")

    assert resp.status == 200
    body = await resp.json()
    assert body["count"] == 1
    assert body["data"][0]["errorMessage"] == "Timeout after 5000 ms"
    assert body["data"][0]["attempts"] == 3
    webhook_service.get_delivery_logs.assert_awaited_once_with(sub_id, limit=100)


@pytest.mark.asyncio
async def test_test_endpoint_reports_delivery(client, webhook_service, delivery_service):
    sub = make_subscription()
    webhook_service.get_subscription.return_value = sub
    delivery_service.test_webhook.return_value = False

    resp = await client.post(f"/api/v1/webhooks/{sub.id}/test")

    assert resp.status == 200
    body = await resp.json()
    assert body == {"success": False, "message": "Test webhook delivery failed"}
    delivery_service.test_webhook.assert_awaited_once_with(sub)
