"""Classify raw contract events into typed domain events."""
from __future__ import annotations

from typing import Any

from launch_webhooks.domain.events import (
    BurnAdmin,
    BurnSelf,
    DomainEvent,
    MetadataUpdated,
    RawChainEvent,
    TokenCreated,
)

# topic[0] is the emitting namespace, topic[1] the event name
_EVENT_NAME_INDEX = 1


def _text(value: dict[str, Any], key: str) -> str:
    raw = value.get(key)
    return "" if raw is None else str(raw)


def _amount(value: dict[str, Any], key: str) -> str:
    # i128 amounts do not fit a JSON number; keep them as strings
    raw = value.get(key)
    return "0" if raw is None or raw == "" else str(raw)


def _int(value: dict[str, Any], key: str, default: int) -> int:
    raw = value.get(key)
    try:
        return int(raw) if raw not in (None, "") else default
    except (TypeError, ValueError):
        return default


def _classify_burn(raw: RawChainEvent, value: dict[str, Any]) -> DomainEvent:
    holder = _text(value, "from")
    admin = _text(value, "admin")
    fields = {
        "token_address": _text(value, "token_address"),
        "transaction_hash": raw.transaction_hash,
        "ledger": raw.ledger,
        "from_address": holder,
        "amount": _amount(value, "amount"),
    }
    if admin and admin != holder:
        return BurnAdmin(burner=_text(value, "burner") or admin, **fields)
    return BurnSelf(burner=_text(value, "burner") or holder, **fields)


def _classify_token_created(raw: RawChainEvent, value: dict[str, Any]) -> DomainEvent:
    return TokenCreated(
        token_address=_text(value, "token_address"),
        transaction_hash=raw.transaction_hash,
        ledger=raw.ledger,
        creator=_text(value, "creator"),
        name=_text(value, "name"),
        symbol=_text(value, "symbol"),
        decimals=_int(value, "decimals", 7),
        initial_supply=_amount(value, "initial_supply"),
    )


def _classify_metadata_updated(raw: RawChainEvent, value: dict[str, Any]) -> DomainEvent:
    return MetadataUpdated(
        token_address=_text(value, "token_address"),
        transaction_hash=raw.transaction_hash,
        ledger=raw.ledger,
        metadata_uri=_text(value, "metadata_uri"),
        updated_by=_text(value, "updated_by"),
    )


_HANDLERS = {
    "burn": _classify_burn,
    "token_created": _classify_token_created,
    "metadata_updated": _classify_metadata_updated,
}


def classify(raw: RawChainEvent) -> DomainEvent | None:
    """Map a raw event to a domain event, or ``None`` for unknown topics.

    Pure and total: missing fields fall back to empty/zero values instead of
    raising.
    """
    if len(raw.topic) <= _EVENT_NAME_INDEX:
        return None
    handler = _HANDLERS.get(raw.topic[_EVENT_NAME_INDEX])
    if handler is None:
        return None
    value = raw.value if isinstance(raw.value, dict) else {}
    return handler(raw, value)
