"""Webhook repositories (subscriptions + delivery audit log)."""
from __future__ import annotations

import json
from typing import Any, List
from uuid import UUID

from asyncpg import Pool, Record  # type: ignore[import-untyped]

from launch_webhooks.domain.webhooks import (
    WebhookDeliveryLog,
    WebhookEventType,
    WebhookSubscription,
)
from launch_webhooks.repositories.base import BaseRepository


class WebhookSubscriptionRepository(BaseRepository):
    def __init__(self, pool: Pool):
        super().__init__(pool)

    @staticmethod
    def _to_model(record: Record) -> WebhookSubscription:
        return WebhookSubscription.model_validate(dict(record))

    async def create(
        self,
        *,
        url: str,
        token_address: str | None,
        events: list[WebhookEventType],
        secret: str,
        created_by: str,
    ) -> WebhookSubscription:
        record = await self._fetchrow(
            """
            INSERT INTO webhook_subscriptions (url, token_address, events, secret, created_by)
            VALUES ($1, $2, $3::text[], $4, $5)
            RETURNING *
            """,
            url,
            token_address,
            [event.value for event in events],
            secret,
            created_by,
        )
        assert record is not None
        return self._to_model(record)

    async def get(self, subscription_id: UUID) -> WebhookSubscription | None:
        record = await self._fetchrow(
            "SELECT * FROM webhook_subscriptions WHERE id = $1",
            subscription_id,
        )
        return self._to_model(record) if record else None

    async def list_by_owner(
        self, created_by: str, *, active: bool | None = None
    ) -> List[WebhookSubscription]:
        records = await self._fetch(
            """
            SELECT *
            FROM webhook_subscriptions
            WHERE created_by = $1
              AND ($2::boolean IS NULL OR active = $2)
            ORDER BY created_at DESC
            """,
            created_by,
            active,
        )
        return [self._to_model(r) for r in records]

    async def delete(self, subscription_id: UUID, created_by: str) -> bool:
        record = await self._fetchrow(
            """
            DELETE FROM webhook_subscriptions
            WHERE id = $1 AND created_by = $2
            RETURNING id
            """,
            subscription_id,
            created_by,
        )
        return record is not None

    async def set_active(self, subscription_id: UUID, active: bool) -> bool:
        record = await self._fetchrow(
            """
            UPDATE webhook_subscriptions
            SET active = $1
            WHERE id = $2
            RETURNING id
            """,
            active,
            subscription_id,
        )
        return record is not None

    async def list_active_matching(
        self, event: WebhookEventType, token_address: str | None
    ) -> List[WebhookSubscription]:
        records = await self._fetch(
            """
            SELECT *
            FROM webhook_subscriptions
            WHERE active = true
              AND $1 = ANY(events)
              AND (token_address IS NULL OR token_address = $2)
            ORDER BY created_at ASC
            """,
            event.value,
            token_address,
        )
        return [self._to_model(r) for r in records]

    async def touch_last_triggered(self, subscription_id: UUID) -> None:
        await self._execute(
            "UPDATE webhook_subscriptions SET last_triggered = now() WHERE id = $1",
            subscription_id,
        )


class WebhookDeliveryLogRepository(BaseRepository):
    def __init__(self, pool: Pool):
        super().__init__(pool)

    @staticmethod
    def _to_model(record: Record) -> WebhookDeliveryLog:
        payload = dict(record)
        value = payload.get("payload")
        if isinstance(value, str):
            payload["payload"] = json.loads(value)
        return WebhookDeliveryLog.model_validate(payload)

    async def create(
        self,
        *,
        subscription_id: UUID,
        event: WebhookEventType,
        payload: dict[str, Any],
        status_code: int | None,
        success: bool,
        attempts: int,
        error_message: str | None,
    ) -> WebhookDeliveryLog:
        record = await self._fetchrow(
            """
            INSERT INTO webhook_delivery_logs (
                subscription_id,
                event,
                payload,
                status_code,
                success,
                attempts,
                error_message,
                last_attempt_at
            )
            VALUES ($1, $2, $3::jsonb, $4, $5, $6, $7, now())
            RETURNING *
            """,
            subscription_id,
            event.value,
            json.dumps(payload),
            status_code,
            success,
            attempts,
            error_message,
        )
        assert record is not None
        return self._to_model(record)

    async def list_by_subscription(
        self, subscription_id: UUID, *, limit: int = 50
    ) -> List[WebhookDeliveryLog]:
        records = await self._fetch(
            """
            SELECT *
            FROM webhook_delivery_logs
            WHERE subscription_id = $1
            ORDER BY created_at DESC
            LIMIT $2
            """,
            subscription_id,
            limit,
        )
        return [self._to_model(r) for r in records]
