"""aiohttp application plumbing shared by the backend services."""
from __future__ import annotations

from typing import Any, Iterable, Literal, Protocol

from aiohttp import web
from aiohttp_cors import CorsConfig, ResourceOptions, setup as cors_setup

from backend_common.middleware.trace import (
    REQUEST_ID_HEADER,
    TRACE_ID_HEADER,
    create_trace_middleware,
)

# Headers the browser client (supabase-js style) sends on envelope calls
CORS_REQUEST_HEADERS = (
    "Authorization",
    "Apikey",
    "Content-Type",
    "X-Client-Info",
    TRACE_ID_HEADER,
    REQUEST_ID_HEADER,
)
CORS_METHODS = ("GET", "POST", "OPTIONS")
PREFLIGHT_MAX_AGE_SECONDS = 24 * 60 * 60

BEARER_SCHEME = "bearer"


class SettingsProtocol(Protocol):
    app_name: str
    env: Literal["development", "staging", "production"]
    cors_allowed_origins: list[str]


def cors_defaults(origins: Iterable[str]) -> dict[str, ResourceOptions]:
    """One ``ResourceOptions`` per allowed origin; aiohttp_cors has no wildcards here."""
    options = ResourceOptions(
        allow_credentials=True,
        expose_headers=(TRACE_ID_HEADER, REQUEST_ID_HEADER),
        allow_headers=CORS_REQUEST_HEADERS,
        allow_methods=CORS_METHODS,
        max_age=PREFLIGHT_MAX_AGE_SECONDS,
    )
    return {origin: options for origin in origins}


def create_base_app(settings: SettingsProtocol) -> tuple[web.Application, CorsConfig]:
    """Application with request tracing and a CORS config still to be bound to routes."""
    app = web.Application(middlewares=[create_trace_middleware(settings.app_name)])
    cors = cors_setup(app, defaults=cors_defaults(settings.cors_allowed_origins))
    return app, cors


def add_healthcheck(app: web.Application, settings: SettingsProtocol, path: str = "/health") -> None:
    async def healthcheck(_request: web.Request) -> web.Response:
        return web.json_response(
            {"status": "ok", "service": settings.app_name, "env": settings.env}
        )

    app.router.add_get(path, healthcheck)


def add_cors_to_routes(app: web.Application, cors: CorsConfig) -> None:
    """Bind CORS to every registered route. Call after all routes are added."""
    for route in list(app.router.routes()):
        cors.add(route)


async def read_json(request: web.Request) -> dict[str, Any]:
    """Decode a JSON object body. Raises ``HTTPBadRequest`` with a short reason."""
    if not request.can_read_body:
        raise web.HTTPBadRequest(text="Request body is required")
    try:
        data = await request.json()
    except ValueError as exc:
        raise web.HTTPBadRequest(text="Invalid JSON payload") from exc
    if not isinstance(data, dict):
        raise web.HTTPBadRequest(text="JSON body must be an object")
    return data


def extract_bearer_token(request: web.Request) -> str:
    """Token from ``Authorization: Bearer <token>``; raises ``HTTPUnauthorized``."""
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    token = token.strip()
    if scheme.lower() != BEARER_SCHEME or not token:
        raise web.HTTPUnauthorized(reason="Authorization token is required")
    return token
