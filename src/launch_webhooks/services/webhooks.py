"""Webhook domain service (subscriptions, matching, delivery audit log)."""
from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Any, List
from uuid import UUID

from launch_webhooks.domain.webhooks import (
    WebhookDeliveryLog,
    WebhookEventType,
    WebhookPayload,
    WebhookSubscription,
)
from launch_webhooks.repositories.webhooks import (
    WebhookDeliveryLogRepository,
    WebhookSubscriptionRepository,
)
from launch_webhooks.services.signing import sign_payload


def generate_webhook_secret() -> str:
    return secrets.token_hex(32)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def create_payload(
    event: WebhookEventType,
    data: dict[str, Any],
    secret: str,
    *,
    now: datetime | None = None,
) -> WebhookPayload:
    timestamp = format_timestamp(now or datetime.now(timezone.utc))
    signature = sign_payload(event.value, timestamp, data, secret)
    return WebhookPayload(event=event, timestamp=timestamp, data=data, signature=signature)


class WebhookService:
    """Subscription store facade used by the API layer and the delivery engine."""

    def __init__(
        self,
        subscription_repository: WebhookSubscriptionRepository,
        delivery_log_repository: WebhookDeliveryLogRepository,
    ):
        self._subscriptions = subscription_repository
        self._logs = delivery_log_repository

    async def create_subscription(
        self,
        *,
        url: str,
        events: list[WebhookEventType],
        created_by: str,
        token_address: str | None = None,
    ) -> WebhookSubscription:
        return await self._subscriptions.create(
            url=url,
            token_address=token_address,
            events=events,
            secret=generate_webhook_secret(),
            created_by=created_by,
        )

    async def get_subscription(self, subscription_id: UUID) -> WebhookSubscription | None:
        return await self._subscriptions.get(subscription_id)

    async def list_subscriptions(
        self, created_by: str, *, active: bool | None = None
    ) -> List[WebhookSubscription]:
        return await self._subscriptions.list_by_owner(created_by, active=active)

    async def delete_subscription(self, subscription_id: UUID, created_by: str) -> bool:
        return await self._subscriptions.delete(subscription_id, created_by)

    async def update_subscription_status(self, subscription_id: UUID, active: bool) -> bool:
        return await self._subscriptions.set_active(subscription_id, active)

    async def find_matching_subscriptions(
        self, event: WebhookEventType, token_address: str | None = None
    ) -> List[WebhookSubscription]:
        return await self._subscriptions.list_active_matching(event, token_address)

    async def update_last_triggered(self, subscription_id: UUID) -> None:
        await self._subscriptions.touch_last_triggered(subscription_id)

    async def log_delivery(
        self,
        subscription_id: UUID,
        event: WebhookEventType,
        payload: WebhookPayload,
        status_code: int | None,
        success: bool,
        attempts: int,
        error_message: str | None = None,
    ) -> WebhookDeliveryLog:
        return await self._logs.create(
            subscription_id=subscription_id,
            event=event,
            payload=payload.to_body(),
            status_code=status_code,
            success=success,
            attempts=attempts,
            error_message=error_message,
        )

    async def get_delivery_logs(
        self, subscription_id: UUID, *, limit: int = 50
    ) -> List[WebhookDeliveryLog]:
        return await self._logs.list_by_subscription(subscription_id, limit=limit)
