"""Route modules."""

from launch_webhooks.api.routes import webhooks

__all__ = ["webhooks"]
