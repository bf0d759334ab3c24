"""Common exceptions for domain, repository and integration layers."""
from __future__ import annotations


class LaunchWebhooksError(Exception):
    """Base error for the webhook pipeline."""


class RepositoryError(LaunchWebhooksError):
    """Raised when repository operations fail."""


class ConfigurationError(LaunchWebhooksError):
    """Raised at startup when required configuration is missing or invalid."""


class ChainEventSourceError(LaunchWebhooksError):
    """Raised when the chain event API is unreachable or returns garbage."""
