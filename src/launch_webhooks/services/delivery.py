"""Webhook delivery engine: fan-out, signed POST, bounded retry with backoff."""
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Protocol, Union
from uuid import UUID

import aiohttp
import structlog
from aiohttp import ClientSession, ClientTimeout

from launch_webhooks.domain.events import DomainEventBase, TokenCreated
from launch_webhooks.domain.webhooks import (
    DeliveryResult,
    WebhookEventType,
    WebhookPayload,
    WebhookSubscription,
)
from launch_webhooks.services.webhooks import create_payload

logger = structlog.get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]
ClockFn = Callable[[], datetime]
EventData = Union[DomainEventBase, dict[str, Any]]

SIGNATURE_HEADER = "X-Webhook-Signature"
EVENT_HEADER = "X-Webhook-Event"
TEST_EVENT_NAME = "test"
_ERROR_BODY_LIMIT = 2000


class SubscriptionStore(Protocol):
    """Store operations the engine needs; :class:`WebhookService` provides them."""

    async def find_matching_subscriptions(
        self, event: WebhookEventType, token_address: str | None = None
    ) -> List[WebhookSubscription]: ...

    async def update_last_triggered(self, subscription_id: UUID) -> None: ...

    async def log_delivery(
        self,
        subscription_id: UUID,
        event: WebhookEventType,
        payload: WebhookPayload,
        status_code: int | None,
        success: bool,
        attempts: int,
        error_message: str | None = None,
    ) -> Any: ...


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay_ms: int = 1000
    timeout_ms: int = 5000

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")

    def backoff_ms(self, attempt: int) -> int:
        # attempt is 1-based: base, 2*base, 4*base, ...
        return self.base_delay_ms * 2 ** (attempt - 1)

    @classmethod
    def from_settings(cls, settings: Any) -> "RetryPolicy":
        return cls(
            max_retries=settings.webhook_max_retries,
            base_delay_ms=settings.webhook_retry_delay_ms,
            timeout_ms=settings.webhook_timeout_ms,
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_data(data: EventData) -> dict[str, Any]:
    if isinstance(data, DomainEventBase):
        return data.to_data()
    return dict(data)


def encode_body(payload: WebhookPayload) -> bytes:
    return json.dumps(payload.to_body(), separators=(",", ":"), ensure_ascii=False).encode("utf-8")


class WebhookDeliveryService:
    """Delivers one triggered event to every matching subscription.

    Branches run concurrently and settle independently; attempts for a single
    subscription are sequential. Exhausted deliveries are written to the audit
    log and never raised to the caller.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        session: ClientSession,
        *,
        policy: RetryPolicy | None = None,
        user_agent: str = "Nova-Launch-Webhook/1.0",
        sleep: SleepFn = asyncio.sleep,
        clock: ClockFn = _utcnow,
    ):
        self._store = store
        self._session = session
        self._policy = policy or RetryPolicy()
        self._user_agent = user_agent
        self._sleep = sleep
        self._clock = clock
        self._timeout = ClientTimeout(total=self._policy.timeout_ms / 1000)

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def trigger_event(
        self,
        event: WebhookEventType,
        data: EventData,
        token_address: str | None = None,
    ) -> List[DeliveryResult]:
        subscriptions = await self._store.find_matching_subscriptions(event, token_address)
        logger.info(
            "webhook subscriptions matched",
            webhook_event=event.value,
            token_address=token_address,
            count=len(subscriptions),
        )
        if not subscriptions:
            return []

        event_data = _as_data(data)
        outcomes = await asyncio.gather(
            *(self.deliver_webhook(sub, event, event_data) for sub in subscriptions),
            return_exceptions=True,
        )

        results: List[DeliveryResult] = []
        for subscription, outcome in zip(subscriptions, outcomes):
            if isinstance(outcome, DeliveryResult):
                results.append(outcome)
                continue
            if not isinstance(outcome, Exception):
                raise outcome
            logger.error(
                "webhook delivery branch failed",
                subscription_id=str(subscription.id),
                webhook_event=event.value,
                error=str(outcome),
                error_type=type(outcome).__name__,
            )
            results.append(
                DeliveryResult(
                    subscription_id=subscription.id,
                    success=False,
                    attempts=0,
                    error=str(outcome),
                )
            )
        return results

    async def deliver_webhook(
        self,
        subscription: WebhookSubscription,
        event: WebhookEventType,
        data: EventData,
    ) -> DeliveryResult:
        # Signed once; every retry sends identical bytes.
        payload = create_payload(event, _as_data(data), subscription.secret, now=self._clock())
        body = encode_body(payload)
        headers = self._headers(event.value, payload.signature)
        max_retries = self._policy.max_retries

        status_code: int | None = None
        error: str | None = None
        success = False
        attempts = 0

        for attempt in range(1, max_retries + 1):
            attempts = attempt
            logger.info(
                "delivering webhook",
                url=subscription.url,
                subscription_id=str(subscription.id),
                attempt=attempt,
                max_retries=max_retries,
            )
            status_code, error = await self._post(subscription.url, body, headers)
            if error is None:
                success = True
                logger.info(
                    "webhook delivered",
                    url=subscription.url,
                    subscription_id=str(subscription.id),
                    status_code=status_code,
                    attempt=attempt,
                )
                break

            logger.warning(
                "webhook delivery attempt failed",
                url=subscription.url,
                subscription_id=str(subscription.id),
                attempt=attempt,
                max_retries=max_retries,
                status_code=status_code,
                error=error,
            )
            if attempt < max_retries:
                await self._sleep(self._policy.backoff_ms(attempt) / 1000)

        if success:
            try:
                await self._store.update_last_triggered(subscription.id)
            except Exception:
                logger.exception(
                    "failed to update last_triggered",
                    subscription_id=str(subscription.id),
                )
        else:
            logger.warning(
                "webhook delivery exhausted retries",
                url=subscription.url,
                subscription_id=str(subscription.id),
                attempts=attempts,
            )

        await self._store.log_delivery(
            subscription.id,
            event,
            payload,
            status_code,
            success,
            attempts,
            None if success else error,
        )
        return DeliveryResult(
            subscription_id=subscription.id,
            success=success,
            attempts=attempts,
            status_code=status_code,
            error=None if success else error,
        )

    async def test_webhook(self, subscription: WebhookSubscription) -> bool:
        """Send one sample ``token.created`` payload; no retries, no audit row."""
        sample = TokenCreated(
            token_address="GTEST...",
            transaction_hash="test-hash",
            ledger=12345,
            creator="GTEST...",
            name="Test Token",
            symbol="TEST",
            decimals=7,
            initial_supply="1000000",
        )
        payload = create_payload(
            WebhookEventType.TOKEN_CREATED, sample.to_data(), subscription.secret, now=self._clock()
        )
        status_code, error = await self._post(
            subscription.url,
            encode_body(payload),
            self._headers(TEST_EVENT_NAME, payload.signature),
        )
        if error is not None:
            logger.warning(
                "test webhook failed",
                url=subscription.url,
                subscription_id=str(subscription.id),
                status_code=status_code,
                error=error,
            )
        return error is None

    def _headers(self, event_name: str, signature: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: signature,
            EVENT_HEADER: event_name,
            "User-Agent": self._user_agent,
        }

    async def _post(
        self, url: str, body: bytes, headers: dict[str, str]
    ) -> tuple[int | None, str | None]:
        """Single HTTP attempt; returns ``(status_code, error)`` with ``error`` None on 2xx."""
        try:
            async with self._session.post(
                url, data=body, headers=headers, timeout=self._timeout
            ) as resp:
                if 200 <= resp.status < 300:
                    return resp.status, None
                text = await resp.text(errors="replace")
                return resp.status, f"HTTP {resp.status}: {text[:_ERROR_BODY_LIMIT]}"
        except asyncio.TimeoutError:
            return None, f"Timeout after {self._policy.timeout_ms} ms"
        except (aiohttp.ClientError, ValueError) as exc:
            return None, str(exc) or type(exc).__name__
