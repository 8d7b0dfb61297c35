"""Subscription registry: owner-scoped CRUD over webhook subscriptions."""
from __future__ import annotations

from typing import Any, List
from uuid import UUID

import structlog

from webhook_service.core.exceptions import NotFoundError, ValidationError
from webhook_service.domain.webhooks import Subscription
from webhook_service.repositories.protocols import SubscriptionStore

logger = structlog.get_logger(__name__)


def _normalize_url(url: str | None) -> str:
    value = (url or "").strip()
    if not value:
        raise ValidationError("url is required")
    return value


def normalize_event(event: str | None) -> str:
    """Event names are compared after stripping surrounding whitespace."""
    value = (event or "").strip()
    if not value:
        raise ValidationError("event is required")
    if "\x00" in value:
        raise ValidationError("event must not contain NUL characters")
    return value


def _normalize_events(events: list[str] | None) -> list[str]:
    cleaned = [normalize_event(e) for e in events or [] if e and e.strip()]
    cleaned = list(dict.fromkeys(cleaned))
    if not cleaned:
        raise ValidationError("events must be a non-empty list")
    return cleaned


class SubscriptionRegistry:
    def __init__(self, store: SubscriptionStore):
        self._store = store

    async def create(
        self,
        user_id: UUID,
        agent_id: UUID,
        url: str,
        events: list[str],
        secret: str | None = None,
        *,
        headers: dict[str, str] | None = None,
        is_active: bool = True,
    ) -> Subscription:
        subscription = await self._store.create(
            user_id=user_id,
            agent_id=agent_id,
            url=_normalize_url(url),
            events=_normalize_events(events),
            secret=secret or None,
            headers=dict(headers or {}),
            is_active=is_active,
        )
        logger.info(
            "webhook subscription created",
            webhook_id=str(subscription.id),
            agent_id=str(agent_id),
            events=subscription.events,
        )
        return subscription

    async def update(
        self, subscription_id: UUID, user_id: UUID, **fields: Any
    ) -> Subscription:
        """Apply the given fields; ``None`` means "leave as is" except for ``secret``."""
        changes: dict[str, Any] = {}
        if fields.get("url") is not None:
            changes["url"] = _normalize_url(fields["url"])
        if fields.get("events") is not None:
            changes["events"] = _normalize_events(fields["events"])
        if "secret" in fields:
            changes["secret"] = fields["secret"] or None
        if fields.get("headers") is not None:
            changes["headers"] = dict(fields["headers"])
        if fields.get("is_active") is not None:
            changes["is_active"] = bool(fields["is_active"])

        subscription = await self._store.update(subscription_id, user_id, changes)
        if subscription is None:
            raise NotFoundError("Webhook subscription not found")
        logger.info(
            "webhook subscription updated",
            webhook_id=str(subscription_id),
            fields=sorted(changes),
        )
        return subscription

    async def delete(self, subscription_id: UUID, user_id: UUID) -> None:
        deleted = await self._store.delete(subscription_id, user_id)
        if not deleted:
            raise NotFoundError("Webhook subscription not found")
        logger.info("webhook subscription deleted", webhook_id=str(subscription_id))

    async def get_owned(self, subscription_id: UUID, user_id: UUID) -> Subscription:
        subscription = await self._store.get(subscription_id)
        if subscription is None or subscription.user_id != user_id:
            raise NotFoundError("Webhook subscription not found")
        return subscription

    async def list_active_for_event(
        self, agent_id: UUID, event: str, *, user_id: UUID | None = None
    ) -> List[Subscription]:
        subscriptions = await self._store.list_active_for_event(agent_id, event, user_id=user_id)
        # active flag and event membership re-checked on the loaded snapshot
        return [s for s in subscriptions if s.matches(event)]

    async def list_all(self, agent_id: UUID, user_id: UUID) -> List[Subscription]:
        return await self._store.list_for_agent(agent_id, user_id)
