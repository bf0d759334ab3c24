"""aiohttp application entrypoint."""
from __future__ import annotations

from pathlib import Path

from aiohttp import web
from aiohttp_cors import ResourceOptions, setup as cors_setup

from launch_webhooks.api.router import setup_routes
from launch_webhooks.db.migrations import create_migration_runner
from launch_webhooks.db.pool import close_pool, init_pool
from launch_webhooks.logging_config import configure_logging
from launch_webhooks.middleware.trace import create_trace_middleware
from launch_webhooks.pipeline import start_pipeline, stop_pipeline, validate_pipeline_settings
from launch_webhooks.services.dependencies import EVENT_POLLER_KEY
from launch_webhooks.settings import settings

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
MIGRATION_PATHS = [
    PROJECT_ROOT / "migrations",
    Path("/app/migrations"),
]

_ALLOWED_HEADERS = ("Accept", "Content-Type", "X-Trace-Id", "X-Request-Id")
_ALLOWED_METHODS = ("GET", "POST", "PATCH", "DELETE", "OPTIONS")
_EXPOSED_HEADERS = ("X-Trace-Id", "X-Request-Id")


async def healthcheck(request: web.Request) -> web.Response:
    poller = request.app.get(EVENT_POLLER_KEY)
    return web.json_response(
        {
            "status": "ok",
            "service": settings.app_name,
            "env": settings.env,
            "event_poller": "running" if poller is not None and poller.running else "stopped",
            "cursor": poller.cursor if poller is not None else None,
        }
    )


def create_app() -> web.Application:
    validate_pipeline_settings(settings)

    app = web.Application()
    app.middlewares.append(create_trace_middleware(settings.app_name))

    cors = cors_setup(
        app,
        defaults={
            origin: ResourceOptions(
                allow_credentials=True,
                expose_headers=_EXPOSED_HEADERS,
                allow_headers=_ALLOWED_HEADERS,
                allow_methods=_ALLOWED_METHODS,
            )
            for origin in settings.cors_allowed_origins
        },
    )

    app.router.add_get("/health", healthcheck)
    setup_routes(app)

    app.on_startup.append(init_pool)
    app.on_startup.append(create_migration_runner(settings.database_url, MIGRATION_PATHS))
    app.on_startup.append(start_pipeline)
    app.on_cleanup.append(stop_pipeline)
    app.on_cleanup.append(close_pool)

    for route in list(app.router.routes()):
        cors.add(route)

    return app


def main() -> None:
    configure_logging(settings)
    web.run_app(create_app(), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
