"""Webhook repositories (subscriptions + append-only delivery ledger)."""
from __future__ import annotations

import json
from typing import Any, List
from uuid import UUID

from asyncpg import Pool, Record  # type: ignore[import-untyped]

from webhook_service.domain.webhooks import (
    DeliveryAttempt,
    DeliveryResult,
    Subscription,
    encode_payload,
)
from webhook_service.repositories.base import BaseRepository

_UPDATABLE_COLUMNS = ("url", "events", "secret", "headers", "is_active")


class WebhookSubscriptionRepository(BaseRepository):
    def __init__(self, pool: Pool):
        super().__init__(pool)

    @staticmethod
    def _to_model(record: Record) -> Subscription:
        payload = dict(record)
        headers = payload.get("headers")
        if isinstance(headers, str):
            payload["headers"] = json.loads(headers)
        return Subscription.model_validate(payload)

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
    ) -> Subscription:
        record = await self._fetchrow(
            """
            INSERT INTO webhooks (user_id, agent_id, url, events, secret, headers, is_active)
            VALUES ($1, $2, $3, $4::text[], $5, $6::jsonb, $7)
            RETURNING *
            """,
            user_id,
            agent_id,
            url,
            events,
            secret,
            json.dumps(headers),
            is_active,
        )
        assert record is not None
        return self._to_model(record)

    async def update(
        self, subscription_id: UUID, user_id: UUID, changes: dict[str, Any]
    ) -> Subscription | None:
        assignments: list[str] = []
        values: list[Any] = [subscription_id, user_id]
        idx = 3
        for column in _UPDATABLE_COLUMNS:
            if column not in changes:
                continue
            value = changes[column]
            if column == "events":
                assignments.append(f"events = ${idx}::text[]")
            elif column == "headers":
                assignments.append(f"headers = ${idx}::jsonb")
                value = json.dumps(value)
            else:
                assignments.append(f"{column} = ${idx}")
            values.append(value)
            idx += 1

        if not assignments:
            record = await self._fetchrow(
                "SELECT * FROM webhooks WHERE id = $1 AND user_id = $2",
                *values,
            )
        else:
            record = await self._fetchrow(
                f"""
                UPDATE webhooks
                SET {", ".join(assignments)}
                WHERE id = $1 AND user_id = $2
                RETURNING *
                """,
                *values,
            )
        return self._to_model(record) if record is not None else None

    async def delete(self, subscription_id: UUID, user_id: UUID) -> bool:
        record = await self._fetchrow(
            """
            DELETE FROM webhooks
            WHERE id = $1 AND user_id = $2
            RETURNING id
            """,
            subscription_id,
            user_id,
        )
        return record is not None

    async def get(self, subscription_id: UUID) -> Subscription | None:
        record = await self._fetchrow("SELECT * FROM webhooks WHERE id = $1", subscription_id)
        return self._to_model(record) if record is not None else None

    async def list_active_for_event(
        self, agent_id: UUID, event: str, *, user_id: UUID | None = None
    ) -> List[Subscription]:
        records = await self._fetch(
            """
            SELECT *
            FROM webhooks
            WHERE agent_id = $1
              AND is_active = true
              AND $2 = ANY(events)
              AND ($3::uuid IS NULL OR user_id = $3)
            """,
            agent_id,
            event,
            user_id,
        )
        return [self._to_model(r) for r in records]

    async def list_for_agent(self, agent_id: UUID, user_id: UUID) -> List[Subscription]:
        records = await self._fetch(
            """
            SELECT *
            FROM webhooks
            WHERE agent_id = $1 AND user_id = $2
            ORDER BY created_at DESC
            """,
            agent_id,
            user_id,
        )
        return [self._to_model(r) for r in records]


class WebhookDeliveryRepository(BaseRepository):
    """Append-only ledger of delivery attempts. Rows are never updated or deleted."""

    def __init__(self, pool: Pool):
        super().__init__(pool)

    @staticmethod
    def _to_model(record: Record) -> DeliveryAttempt:
        payload = dict(record)
        raw = payload.get("payload")
        if isinstance(raw, str):
            payload["payload_json"] = raw
            payload["payload"] = json.loads(raw)
        return DeliveryAttempt.model_validate(payload)

    async def insert(self, result: DeliveryResult) -> DeliveryAttempt:
        record = await self._fetchrow(
            """
            INSERT INTO webhook_deliveries (
                webhook_id,
                user_id,
                agent_id,
                event,
                payload,
                delivery_key,
                status_code,
                success,
                response_body,
                error,
                delivered_at,
                is_retry,
                original_delivery_id
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
            RETURNING *
            """,
            result.webhook_id,
            result.user_id,
            result.agent_id,
            result.event,
            result.payload_json if result.payload_json is not None else encode_payload(result.payload),
            result.delivery_key,
            result.status_code,
            result.success,
            result.response_body,
            result.error,
            result.delivered_at,
            result.is_retry,
            result.original_delivery_id,
        )
        assert record is not None
        return self._to_model(record)

    async def get(self, delivery_id: UUID) -> DeliveryAttempt | None:
        record = await self._fetchrow(
            "SELECT * FROM webhook_deliveries WHERE id = $1",
            delivery_id,
        )
        return self._to_model(record) if record is not None else None

    async def list_for_subscription(
        self, subscription_id: UUID, user_id: UUID, *, limit: int
    ) -> List[DeliveryAttempt]:
        records = await self._fetch(
            """
            SELECT *
            FROM webhook_deliveries
            WHERE webhook_id = $1 AND user_id = $2
            ORDER BY delivered_at DESC
            LIMIT $3
            """,
            subscription_id,
            user_id,
            limit,
        )
        return [self._to_model(r) for r in records]
