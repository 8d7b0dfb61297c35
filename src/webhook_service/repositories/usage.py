"""Integration usage log repository."""
from __future__ import annotations

import json
from typing import Any
from uuid import UUID

from asyncpg import Pool  # type: ignore[import-untyped]

from webhook_service.repositories.base import BaseRepository


class IntegrationLogRepository(BaseRepository):
    def __init__(self, pool: Pool):
        super().__init__(pool)

    async def insert(
        self,
        *,
        user_id: UUID,
        integration_type: str,
        action: str,
        success: bool,
        metadata: dict[str, Any],
    ) -> None:
        await self._execute(
            """
            INSERT INTO integration_logs (user_id, integration_type, action, success, metadata)
            VALUES ($1, $2, $3, $4, $5::jsonb)
            """,
            user_id,
            integration_type,
            action,
            success,
            json.dumps(metadata),
        )
