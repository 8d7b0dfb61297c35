"""Event dispatcher: fans one event out to every matching active subscription."""
from __future__ import annotations

import asyncio
from typing import Any, List
from uuid import UUID

import structlog

from webhook_service.domain.webhooks import DeliveryAttempt, Subscription
from webhook_service.services.delivery import DeliveryExecutor
from webhook_service.services.ledger import DeliveryLedger
from webhook_service.services.registry import SubscriptionRegistry, normalize_event

logger = structlog.get_logger(__name__)


class EventDispatcher:
    """Runs sign -> execute -> record independently for each subscription.

    Pipelines run concurrently, bounded by ``max_concurrency``. A slow or
    failing endpoint only affects its own pipeline. If the ledger itself fails
    the remaining pipelines still finish before the first error is re-raised.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        executor: DeliveryExecutor,
        ledger: DeliveryLedger,
        *,
        max_concurrency: int = 10,
    ):
        self._registry = registry
        self._executor = executor
        self._ledger = ledger
        self._max_concurrency = max_concurrency

    async def dispatch(
        self,
        agent_id: UUID,
        event: str,
        payload: Any,
        *,
        user_id: UUID | None = None,
    ) -> List[DeliveryAttempt]:
        event = normalize_event(event)
        subscriptions = await self._registry.list_active_for_event(
            agent_id, event, user_id=user_id
        )
        if not subscriptions:
            logger.info(
                "no webhook subscriptions matched",
                agent_id=str(agent_id),
                webhook_event=event,
            )
            return []

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def deliver(subscription: Subscription) -> DeliveryAttempt:
            async with semaphore:
                result = await self._executor.execute(subscription, event, payload)
            return await self._ledger.record(result)

        outcomes = await asyncio.gather(
            *(deliver(s) for s in subscriptions), return_exceptions=True
        )

        attempts: List[DeliveryAttempt] = []
        errors: List[BaseException] = []
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                errors.append(outcome)
            else:
                attempts.append(outcome)

        logger.info(
            "webhook event dispatched",
            agent_id=str(agent_id),
            webhook_event=event,
            matched=len(subscriptions),
            succeeded=sum(1 for a in attempts if a.success),
            ledger_errors=len(errors),
        )
        if errors:
            raise errors[0]
        return attempts
