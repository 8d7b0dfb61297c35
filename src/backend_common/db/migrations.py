"""SQL migration runner shared between services."""
from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Protocol

import asyncpg  # type: ignore[import-untyped]
import structlog
from aiohttp import web

logger = structlog.get_logger(__name__)

_MAX_CONNECT_ATTEMPTS = 5
_CONNECT_RETRY_DELAY_SECONDS = 2


class SettingsProtocol(Protocol):
    """Protocol for settings objects with database configuration."""

    database_url: Any


def _find_migrations_dir(possible_paths: list[Path]) -> Path | None:
    for path in possible_paths:
        if path.exists():
            return path
    return None


def load_migrations(migrations_dir: Path) -> dict[str, Path]:
    """Return ``{version: path}`` for every ``*.sql`` file, ordered by file name."""
    migrations: dict[str, Path] = {}
    for path in sorted(migrations_dir.glob("*.sql")):
        version = path.stem
        if version in migrations:
            raise ValueError(f"Duplicate migration version detected: {version}")
        migrations[version] = path
    return migrations


async def _connect(database_url: str) -> asyncpg.Connection:
    for attempt in range(1, _MAX_CONNECT_ATTEMPTS + 1):
        try:
            return await asyncpg.connect(database_url)
        except (OSError, asyncpg.PostgresError) as exc:
            logger.warning(
                "Database connection failed",
                attempt=attempt,
                max_attempts=_MAX_CONNECT_ATTEMPTS,
                error=str(exc),
            )
            if attempt == _MAX_CONNECT_ATTEMPTS:
                raise
            await asyncio.sleep(_CONNECT_RETRY_DELAY_SECONDS)
    raise RuntimeError("unreachable")


async def apply_migrations(conn: asyncpg.Connection, migrations: dict[str, Path]) -> int:
    """Apply pending migrations inside one transaction each. Returns applied count."""
    await conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version text PRIMARY KEY,
            checksum text NOT NULL,
            applied_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    rows = await conn.fetch("SELECT version, checksum FROM schema_migrations")
    applied = {row["version"]: row["checksum"] for row in rows}

    count = 0
    for version, path in migrations.items():
        sql = path.read_text(encoding="utf-8")
        checksum = hashlib.sha256(sql.encode("utf-8")).hexdigest()
        if version in applied:
            if applied[version] != checksum:
                raise RuntimeError(
                    f"Checksum mismatch for {version}: "
                    f"{applied[version]} (db) != {checksum} (file)"
                )
            continue
        logger.info("Applying migration", version=version, file=path.name)
        async with conn.transaction():
            await conn.execute(sql)
            await conn.execute(
                "INSERT INTO schema_migrations (version, checksum) VALUES ($1, $2)",
                version,
                checksum,
            )
        count += 1
    return count


def create_migration_runner(
    settings: SettingsProtocol,
    possible_paths: Iterable[Path],
) -> Callable[[web.Application], Awaitable[None]]:
    """Create an aiohttp startup hook to apply SQL migrations."""
    possible_paths_list = list(possible_paths)

    async def apply_migrations_on_startup(_app: web.Application) -> None:
        migrations_dir = _find_migrations_dir(possible_paths_list)
        if migrations_dir is None:
            logger.warning(
                "Migrations directory not found, skipping migrations",
                tried=[str(p) for p in possible_paths_list],
            )
            return

        migrations = load_migrations(migrations_dir)
        if not migrations:
            logger.warning("No migrations found, skipping", directory=str(migrations_dir))
            return

        conn = await _connect(str(settings.database_url))
        try:
            count = await apply_migrations(conn, migrations)
        finally:
            await conn.close()
        logger.info("Migrations applied", applied=count, known=len(migrations))

    return apply_migrations_on_startup
