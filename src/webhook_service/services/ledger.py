"""Delivery ledger: append-only record of every delivery attempt."""
from __future__ import annotations

from typing import List
from uuid import UUID

from webhook_service.core.exceptions import NotFoundError
from webhook_service.domain.webhooks import DeliveryAttempt, DeliveryResult
from webhook_service.repositories.protocols import DeliveryStore


class DeliveryLedger:
    def __init__(self, store: DeliveryStore, *, default_limit: int = 50, max_limit: int = 100):
        self._store = store
        self._default_limit = default_limit
        self._max_limit = max_limit

    async def record(self, result: DeliveryResult) -> DeliveryAttempt:
        """Append one attempt. Raises ``PersistenceError`` if the store is down."""
        return await self._store.insert(result)

    async def get(self, delivery_id: UUID) -> DeliveryAttempt:
        attempt = await self._store.get(delivery_id)
        if attempt is None:
            raise NotFoundError("Webhook delivery not found")
        return attempt

    async def list_for_subscription(
        self, subscription_id: UUID, user_id: UUID, limit: int | None = None
    ) -> List[DeliveryAttempt]:
        """Most recent first."""
        if limit is None:
            limit = self._default_limit
        limit = max(1, min(limit, self._max_limit))
        return await self._store.list_for_subscription(subscription_id, user_id, limit=limit)
