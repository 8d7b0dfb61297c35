"""Helper utilities for API handlers."""
from __future__ import annotations

from aiohttp import web

# Re-export read_json from backend_common so handlers import from one place.
from backend_common.aiohttp_app import read_json as read_json  # noqa: F401


def json_error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)
