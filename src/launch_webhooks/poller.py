"""Chain event poller: fetch, classify, dispatch, advance the cursor."""
from __future__ import annotations

import asyncio
from functools import partial
from typing import Any, Awaitable, Callable, Protocol

import structlog

from launch_webhooks.chain.horizon import ChainEventSource
from launch_webhooks.domain.events import DomainEvent, DomainEventBase, RawChainEvent
from launch_webhooks.domain.webhooks import WebhookEventType
from launch_webhooks.services.classifier import classify as default_classify

logger = structlog.get_logger(__name__)

ClassifyFn = Callable[[RawChainEvent], "DomainEvent | None"]
SleepFn = Callable[[float], Awaitable[None]]


class EventDispatcher(Protocol):
    async def trigger_event(
        self,
        event: WebhookEventType,
        data: DomainEventBase,
        token_address: str | None = None,
    ) -> Any: ...


class EventPoller:
    """Owns the in-memory cursor and the Stopped/Running lifecycle.

    Only one poller may run against a given contract: the cursor and the
    running flag are written by the poll loop alone, and a second instance
    would dispatch every event twice. The cursor is not persisted; seed it
    with ``initial_cursor`` to resume after a restart.
    """

    def __init__(
        self,
        source: ChainEventSource,
        dispatcher: EventDispatcher,
        *,
        poll_interval_seconds: float = 5.0,
        page_size: int = 100,
        max_inflight_dispatches: int = 10,
        initial_cursor: str | None = None,
        classify: ClassifyFn = default_classify,
        sleep: SleepFn = asyncio.sleep,
    ):
        if max_inflight_dispatches < 1:
            raise ValueError("max_inflight_dispatches must be >= 1")
        self._source = source
        self._dispatcher = dispatcher
        self._poll_interval = poll_interval_seconds
        self._page_size = page_size
        self._max_inflight = max_inflight_dispatches
        self._classify = classify
        self._sleep = sleep
        self._cursor = initial_cursor
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._inflight: set[asyncio.Task[Any]] = set()

    @property
    def cursor(self) -> str | None:
        return self._cursor

    @property
    def running(self) -> bool:
        return self._running

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    async def start(self) -> None:
        if self._running:
            logger.warning("event poller is already running", cursor=self._cursor)
            return
        self._running = True
        if self._task is not None and not self._task.done():
            # stop() was requested but the loop has not reached its boundary yet
            logger.info("event poller resumed", cursor=self._cursor)
            return
        self._task = asyncio.create_task(self._run())

    def stop(self) -> None:
        """Request a stop; takes effect at the next loop boundary."""
        if self._running:
            logger.info("stopping event poller", cursor=self._cursor)
        self._running = False

    async def join(self) -> None:
        """Wait for the loop to exit and for in-flight dispatches to settle."""
        if self._task is not None:
            await self._task
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def poll_once(self) -> int:
        """One tick: fetch a page after the cursor and dispatch it. Returns events fetched."""
        events = await self._source.fetch_events(self._cursor, self._page_size)
        if not events:
            return 0

        logger.info("processing chain events", count=len(events), cursor=self._cursor)
        for raw in events:
            domain_event = self._classify(raw)
            if domain_event is not None:
                await self._dispatch(domain_event, raw)
            # advance even for unrecognized or undeliverable events
            self._cursor = raw.paging_token
        return len(events)

    async def _run(self) -> None:
        logger.info(
            "event poller started",
            cursor=self._cursor,
            poll_interval_seconds=self._poll_interval,
            page_size=self._page_size,
        )
        while self._running:
            try:
                fetched = await self.poll_once()
            except Exception:
                logger.exception("event poll cycle failed", cursor=self._cursor)
                fetched = 0
            if fetched == 0 and self._running:
                await self._sleep(self._poll_interval)
        logger.info("event poller stopped", cursor=self._cursor)

    async def _dispatch(self, event: DomainEvent, raw: RawChainEvent) -> None:
        while len(self._inflight) >= self._max_inflight:
            await asyncio.wait(set(self._inflight), return_when=asyncio.FIRST_COMPLETED)

        task = asyncio.create_task(
            self._dispatcher.trigger_event(event.kind, event, event.token_address or None)
        )
        self._inflight.add(task)
        task.add_done_callback(
            partial(
                self._on_dispatch_done,
                event_kind=event.kind.value,
                paging_token=raw.paging_token,
                transaction_hash=raw.transaction_hash,
            )
        )

    def _on_dispatch_done(
        self,
        task: asyncio.Task[Any],
        *,
        event_kind: str,
        paging_token: str,
        transaction_hash: str,
    ) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "event dispatch failed",
                webhook_event=event_kind,
                paging_token=paging_token,
                transaction_hash=transaction_hash,
                error=str(exc),
                error_type=type(exc).__name__,
            )
