"""Repository package exports."""

from launch_webhooks.repositories.webhooks import (
    WebhookDeliveryLogRepository,
    WebhookSubscriptionRepository,
)

__all__ = [
    "WebhookSubscriptionRepository",
    "WebhookDeliveryLogRepository",
]
