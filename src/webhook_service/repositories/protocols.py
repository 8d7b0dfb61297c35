"""Store interfaces the services depend on.

The Postgres repositories implement these; tests plug in in-memory versions.
"""
from __future__ import annotations

from typing import Any, Protocol
from uuid import UUID

from webhook_service.domain.webhooks import DeliveryAttempt, DeliveryResult, Subscription


class SubscriptionStore(Protocol):
    async def create(
        self,
        *,
        user_id: UUID,
        agent_id: UUID,
        url: str,
        events: list[str],
        secret: str | None,
        headers: dict[str, str],
        is_active: bool,
    ) -> Subscription: ...

    async def update(
        self, subscription_id: UUID, user_id: UUID, changes: dict[str, Any]
    ) -> Subscription | None: ...

    async def delete(self, subscription_id: UUID, user_id: UUID) -> bool: ...

    async def get(self, subscription_id: UUID) -> Subscription | None: ...

    async def list_active_for_event(
        self, agent_id: UUID, event: str, *, user_id: UUID | None = None
    ) -> list[Subscription]: ...

    async def list_for_agent(self, agent_id: UUID, user_id: UUID) -> list[Subscription]: ...


class DeliveryStore(Protocol):
    """Append-only: no update or delete."""

    async def insert(self, result: DeliveryResult) -> DeliveryAttempt: ...

    async def get(self, delivery_id: UUID) -> DeliveryAttempt | None: ...

    async def list_for_subscription(
        self, subscription_id: UUID, user_id: UUID, *, limit: int
    ) -> list[DeliveryAttempt]: ...


class UsageStore(Protocol):
    async def insert(
        self,
        *,
        user_id: UUID,
        integration_type: str,
        action: str,
        success: bool,
        metadata: dict[str, Any],
    ) -> None: ...
