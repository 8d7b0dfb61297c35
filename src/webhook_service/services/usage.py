"""Best-effort integration usage telemetry.

Writes happen in a detached asyncio task spawned after the response is built.
They are not ordered against the response, may be lost on shutdown, and a
failure is logged and dropped. Delivery correctness never depends on them.
"""
from __future__ import annotations

import asyncio
from typing import Any, MutableSet
from uuid import UUID

import structlog

from webhook_service.repositories.protocols import UsageStore

logger = structlog.get_logger(__name__)

INTEGRATION_TYPE = "webhook-manager"


class UsageRecorder:
    def __init__(self, store: UsageStore, pending: MutableSet[asyncio.Task]):
        self._store = store
        # strong references so tasks are not garbage-collected mid-flight
        self._pending = pending

    def record_later(
        self,
        *,
        user_id: UUID,
        action: str,
        success: bool,
        metadata: dict[str, Any] | None = None,
    ) -> asyncio.Task:
        task = asyncio.create_task(
            self._write(
                user_id=user_id,
                action=action,
                success=success,
                metadata={"action": action, "success": success, **(metadata or {})},
            )
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _write(
        self, *, user_id: UUID, action: str, success: bool, metadata: dict[str, Any]
    ) -> None:
        try:
            await self._store.insert(
                user_id=user_id,
                integration_type=INTEGRATION_TYPE,
                action=action,
                success=success,
                metadata=metadata,
            )
        except Exception:
            logger.warning("integration usage log failed", action=action, exc_info=True)


async def cancel_pending(pending: MutableSet[asyncio.Task]) -> None:
    """Cancel outstanding usage writes (shutdown hook)."""
    tasks = list(pending)
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)
