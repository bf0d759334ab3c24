"""Webhook domain primitives."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WebhookEventType(str, Enum):
    TOKEN_BURN_SELF = "token.burn.self"
    TOKEN_BURN_ADMIN = "token.burn.admin"
    TOKEN_CREATED = "token.created"
    TOKEN_METADATA_UPDATED = "token.metadata.updated"


class WebhookSubscription(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID
    url: str
    token_address: str | None = None
    events: list[WebhookEventType] = Field(min_length=1)
    secret: str
    active: bool = True
    created_by: str
    created_at: datetime
    last_triggered: datetime | None = None


def subscription_matches(
    subscription: WebhookSubscription,
    event: WebhookEventType,
    token_address: str | None = None,
) -> bool:
    """Eligibility predicate; mirrored by the SQL in ``list_active_matching``.

    A subscription without a token scope matches every token.
    """
    if not subscription.active or event not in subscription.events:
        return False
    return subscription.token_address is None or subscription.token_address == token_address


class WebhookPayload(BaseModel):
    """Wire object POSTed to subscribers.

    Field order is significant: the body is serialized in declaration order and
    the signature covers ``event``, ``timestamp`` and ``data`` only.
    """

    event: WebhookEventType
    timestamp: str
    data: dict[str, Any]
    signature: str

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class WebhookDeliveryLog(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID
    subscription_id: UUID
    event: WebhookEventType
    payload: dict[str, Any]
    status_code: int | None = None
    success: bool = False
    attempts: int = 1
    last_attempt_at: datetime
    error_message: str | None = None
    created_at: datetime


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one full attempt sequence for one subscription."""

    subscription_id: UUID
    success: bool
    attempts: int
    status_code: int | None = None
    error: str | None = None
