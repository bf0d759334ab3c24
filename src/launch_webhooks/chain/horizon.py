"""Paginated contract-event reader for the Horizon API."""
from __future__ import annotations

import asyncio
from typing import Any, List, Protocol

import aiohttp
import structlog
from aiohttp import ClientSession, ClientTimeout
from pydantic import ValidationError

from launch_webhooks.core.exceptions import ChainEventSourceError
from launch_webhooks.domain.events import RawChainEvent

logger = structlog.get_logger(__name__)


class ChainEventSource(Protocol):
    async def fetch_events(self, cursor: str | None, limit: int) -> List[RawChainEvent]: ...


class HorizonEventClient:
    """Reads ``/contracts/{id}/events`` in ascending ledger order.

    Every failure (transport, non-2xx, malformed body) surfaces as
    :class:`ChainEventSourceError`.
    """

    def __init__(
        self,
        session: ClientSession,
        *,
        horizon_url: str,
        contract_id: str,
        timeout_s: float = 10.0,
    ):
        self._session = session
        self._url = f"{horizon_url.rstrip('/')}/contracts/{contract_id}/events"
        self._timeout = ClientTimeout(total=timeout_s)

    async def fetch_events(self, cursor: str | None, limit: int) -> List[RawChainEvent]:
        params: dict[str, Any] = {"limit": limit, "order": "asc"}
        if cursor:
            params["cursor"] = cursor
        try:
            async with self._session.get(self._url, params=params, timeout=self._timeout) as resp:
                if resp.status != 200:
                    text = await resp.text(errors="replace")
                    raise ChainEventSourceError(f"HTTP {resp.status}: {text[:500]}")
                body = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise ChainEventSourceError(str(exc) or type(exc).__name__) from exc

        if not isinstance(body, dict):
            raise ChainEventSourceError("Event response is not an object")
        embedded = body.get("_embedded") or {}
        records = embedded.get("records") if isinstance(embedded, dict) else None
        if records is None:
            return []
        if not isinstance(records, list):
            raise ChainEventSourceError("Event records is not a list")
        events = [event for event in map(_parse_record, records) if event is not None]
        if records and not events:
            raise ChainEventSourceError(
                f"Malformed event records: none of {len(records)} carried a paging token"
            )
        return events


def _parse_record(record: Any) -> RawChainEvent | None:
    """Parse one record; a broken record that still has a paging token becomes an
    empty placeholder so the cursor can move past it.
    """
    try:
        return RawChainEvent.model_validate(record)
    except ValidationError as exc:
        paging_token = record.get("paging_token") if isinstance(record, dict) else None
        if not isinstance(paging_token, str) or not paging_token:
            logger.error("dropping event record without paging token", error=str(exc))
            return None
        logger.warning(
            "malformed event record, skipping", paging_token=paging_token, error=str(exc)
        )
        return RawChainEvent(id=paging_token, paging_token=paging_token)
