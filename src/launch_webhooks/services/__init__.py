"""Domain services exports."""

from launch_webhooks.services.classifier import classify
from launch_webhooks.services.delivery import RetryPolicy, WebhookDeliveryService
from launch_webhooks.services.signing import sign_payload, verify_signature
from launch_webhooks.services.webhooks import WebhookService

__all__ = [
    "classify",
    "sign_payload",
    "verify_signature",
    "RetryPolicy",
    "WebhookDeliveryService",
    "WebhookService",
]
