from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List
from uuid import UUID, uuid4

from launch_webhooks.domain.events import RawChainEvent
from launch_webhooks.domain.webhooks import (
    WebhookEventType,
    WebhookPayload,
    WebhookSubscription,
    subscription_matches,
)

TOKEN_A = "C" + "A" * 55
TOKEN_B = "C" + "B" * 55
CREATOR = "G" + "C" * 55


def make_subscription(
    *,
    url: str = "https://example.com/hook",
    events: list[WebhookEventType] | None = None,
    token_address: str | None = None,
    secret: str = "s3cr3t",
    active: bool = True,
    created_by: str = CREATOR,
) -> WebhookSubscription:
    return WebhookSubscription(
        id=uuid4(),
        url=url,
        token_address=token_address,
        events=events if events is not None else [WebhookEventType.TOKEN_CREATED],
        secret=secret,
        active=active,
        created_by=created_by,
        created_at=datetime.now(timezone.utc),
    )


def make_raw_event(
    name: str | None,
    value: Any = None,
    *,
    paging_token: str = "1-1",
    ledger: int = 100,
    transaction_hash: str = "abc123",
) -> RawChainEvent:
    topic = ["factory", name] if name is not None else []
    return RawChainEvent(
        id=paging_token,
        paging_token=paging_token,
        ledger=ledger,
        transaction_hash=transaction_hash,
        topic=topic,
        value=value if value is not None else {},
    )


@dataclass
class LoggedDelivery:
    subscription_id: UUID
    event: WebhookEventType
    payload: WebhookPayload
    status_code: int | None
    success: bool
    attempts: int
    error_message: str | None


class FakeStore:
    """In-memory subscription store applying the eligibility predicate."""

    def __init__(self, subscriptions: List[WebhookSubscription] | None = None):
        self.subscriptions = list(subscriptions or [])
        self.logs: List[LoggedDelivery] = []
        self.triggered: List[UUID] = []

    async def find_matching_subscriptions(
        self, event: WebhookEventType, token_address: str | None = None
    ) -> List[WebhookSubscription]:
        return [s for s in self.subscriptions if subscription_matches(s, event, token_address)]

    async def update_last_triggered(self, subscription_id: UUID) -> None:
        self.triggered.append(subscription_id)

    async def log_delivery(
        self,
        subscription_id: UUID,
        event: WebhookEventType,
        payload: WebhookPayload,
        status_code: int | None,
        success: bool,
        attempts: int,
        error_message: str | None = None,
    ) -> None:
        self.logs.append(
            LoggedDelivery(
                subscription_id=subscription_id,
                event=event,
                payload=payload,
                status_code=status_code,
                success=success,
                attempts=attempts,
                error_message=error_message,
            )
        )

    def log_for(self, subscription_id: UUID) -> LoggedDelivery:
        matches = [log for log in self.logs if log.subscription_id == subscription_id]
        assert len(matches) == 1, f"expected one log row, got {len(matches)}"
        return matches[0]


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records delays without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)
