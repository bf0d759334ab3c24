"""Raw chain events and the typed domain events classified from them."""
from __future__ import annotations

from typing import Any, ClassVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from launch_webhooks.domain.webhooks import WebhookEventType


class RawChainEvent(BaseModel):
    """One record of the contract events endpoint (Horizon/Soroban shape)."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    type: str = "contract"
    ledger: int = 0
    ledger_close_time: str | None = None
    contract_id: str = ""
    paging_token: str
    topic: list[str] = Field(default_factory=list)
    value: Any = None
    in_successful_contract_call: bool = True
    transaction_hash: str = ""

    @field_validator("topic", mode="before")
    @classmethod
    def topic_as_text(cls, value: Any) -> list[str]:
        # decoded ScVal topics may be numbers or nested values; only names are matched
        if not isinstance(value, (list, tuple)):
            return []
        return [item if isinstance(item, str) else str(item) for item in value]

    @field_validator("ledger", mode="before")
    @classmethod
    def ledger_or_zero(cls, value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0


class DomainEventBase(BaseModel):
    """Fields shared by every domain event.

    Serialized with camelCase keys; declaration order (base fields first) is
    the key order inside the signed ``data`` object.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    kind: ClassVar[WebhookEventType]

    transaction_hash: str = ""
    ledger: int = 0
    token_address: str = ""

    def to_data(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class BurnEvent(DomainEventBase):
    from_address: str = Field(default="", alias="from")
    amount: str = "0"
    burner: str = ""


class BurnSelf(BurnEvent):
    kind: ClassVar[WebhookEventType] = WebhookEventType.TOKEN_BURN_SELF


class BurnAdmin(BurnEvent):
    kind: ClassVar[WebhookEventType] = WebhookEventType.TOKEN_BURN_ADMIN


class TokenCreated(DomainEventBase):
    kind: ClassVar[WebhookEventType] = WebhookEventType.TOKEN_CREATED

    creator: str = ""
    name: str = ""
    symbol: str = ""
    decimals: int = 7
    initial_supply: str = "0"


class MetadataUpdated(DomainEventBase):
    kind: ClassVar[WebhookEventType] = WebhookEventType.TOKEN_METADATA_UPDATED

    metadata_uri: str = ""
    updated_by: str = ""


DomainEvent = Union[BurnSelf, BurnAdmin, TokenCreated, MetadataUpdated]
