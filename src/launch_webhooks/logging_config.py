"""Logging for the webhook pipeline.

structlog and stdlib records (aiohttp access/client logs) share one chain and
one stdout handler, so every record is a single ``key=value`` or JSON line
carrying the service name and environment.
"""
from __future__ import annotations

import logging
import sys

import structlog

from launch_webhooks.settings import Settings

# Fields that make delivery and poll lines greppable; the rest follow in insertion order.
_KEY_ORDER = [
    "timestamp",
    "level",
    "logger",
    "event",
    "webhook_event",
    "subscription_id",
    "paging_token",
    "attempt",
]
_STDLIB_LOGGERS = ("aiohttp.access", "aiohttp.client", "aiohttp.server", "asyncio")


def add_service_fields(config: Settings):
    def processor(logger, method_name, event_dict):
        event_dict.setdefault("service", config.app_name)
        event_dict.setdefault("env", config.env)
        return event_dict

    return processor


def _renderer(log_format: str):
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    # repr() of string values escapes newlines, so tracebacks stay on one line
    return structlog.processors.KeyValueRenderer(key_order=_KEY_ORDER, drop_missing=True)


def configure_logging(config: Settings) -> None:
    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_service_fields(config),
    ]

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                _renderer(config.log_format),
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(config.log_level)

    for name in _STDLIB_LOGGERS:
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = []
        stdlib_logger.propagate = True

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
