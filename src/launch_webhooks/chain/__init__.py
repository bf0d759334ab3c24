"""Chain event sources."""

from launch_webhooks.chain.horizon import ChainEventSource, HorizonEventClient

__all__ = [
    "ChainEventSource",
    "HorizonEventClient",
]
