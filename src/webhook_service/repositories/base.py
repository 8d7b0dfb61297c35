"""Shared asyncpg helpers for repositories."""
from __future__ import annotations

import asyncio
from typing import Any, Iterable

import asyncpg  # type: ignore[import-untyped]

from webhook_service.core.exceptions import PersistenceError

# Driver and transport failures surface as PersistenceError
_STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


class BaseRepository:
    """Thin wrapper over asyncpg pool operations."""

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def _fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetchrow(query, *args)
        except _STORE_ERRORS as exc:
            raise PersistenceError(str(exc) or type(exc).__name__) from exc

    async def _fetch(self, query: str, *args: Any) -> Iterable[asyncpg.Record]:
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetch(query, *args)
        except _STORE_ERRORS as exc:
            raise PersistenceError(str(exc) or type(exc).__name__) from exc

    async def _execute(self, query: str, *args: Any) -> str:
        try:
            async with self._pool.acquire() as conn:
                return await conn.execute(query, *args)
        except _STORE_ERRORS as exc:
            raise PersistenceError(str(exc) or type(exc).__name__) from exc
