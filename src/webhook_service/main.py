"""aiohttp application entrypoint."""
from __future__ import annotations

import asyncio
from pathlib import Path

from aiohttp import ClientSession, web

from backend_common.aiohttp_app import add_cors_to_routes, add_healthcheck, create_base_app
from backend_common.db.migrations import create_migration_runner
from backend_common.db.pool import create_pool_wrappers
from backend_common.logging_config import configure_logging

from webhook_service.api.router import setup_routes
from webhook_service.otel import setup_otel
from webhook_service.services.dependencies import (
    HTTP_SESSION_KEY,
    STORES_KEY,
    USAGE_TASKS_KEY,
    WebhookStores,
    postgres_stores,
)
from webhook_service.services.usage import cancel_pending
from webhook_service.settings import settings

# Configure structured logging
configure_logging()

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
MIGRATION_PATHS = [
    PROJECT_ROOT / "migrations",  # local checkout
    Path("/app/migrations"),  # container
]


async def start_http_session(app: web.Application) -> None:
    app[HTTP_SESSION_KEY] = ClientSession()


async def close_http_session(app: web.Application) -> None:
    session = app.get(HTTP_SESSION_KEY)
    if session is not None:
        await session.close()


async def cancel_usage_tasks(app: web.Application) -> None:
    pending: set[asyncio.Task] = app[USAGE_TASKS_KEY]
    await cancel_pending(pending)


async def attach_postgres_stores(app: web.Application) -> None:
    app[STORES_KEY] = await postgres_stores()


def create_app(stores: WebhookStores | None = None) -> web.Application:
    """Build the application.

    ``stores`` replaces the Postgres-backed repositories; when it is omitted
    the pool is opened and migrations are applied on startup.
    """
    app, cors = create_base_app(settings)
    app[USAGE_TASKS_KEY] = set()

    add_healthcheck(app, settings)
    setup_routes(app)

    app.on_startup.append(start_http_session)
    app.on_cleanup.append(cancel_usage_tasks)
    app.on_cleanup.append(close_http_session)

    if stores is None:
        init_pool, close_pool = create_pool_wrappers(settings)
        app.on_startup.append(init_pool)
        app.on_startup.append(create_migration_runner(settings, MIGRATION_PATHS))
        app.on_startup.append(attach_postgres_stores)
        app.on_cleanup.append(close_pool)
    else:
        app[STORES_KEY] = stores

    setup_otel(app)
    add_cors_to_routes(app, cors)
    return app


def main() -> None:
    web.run_app(create_app(), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
