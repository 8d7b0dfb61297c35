"""Manual re-delivery of a recorded attempt."""
from __future__ import annotations

from uuid import UUID

import structlog

from webhook_service.domain.webhooks import DeliveryAttempt
from webhook_service.services.delivery import DeliveryExecutor
from webhook_service.services.ledger import DeliveryLedger
from webhook_service.services.registry import SubscriptionRegistry

logger = structlog.get_logger(__name__)


class RetryCoordinator:
    """Re-sends a prior attempt's payload and appends a new, linked ledger row.

    Authorization follows the subscription: only its owner may retry. The
    original row is never touched.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        executor: DeliveryExecutor,
        ledger: DeliveryLedger,
    ):
        self._registry = registry
        self._executor = executor
        self._ledger = ledger

    async def retry(self, delivery_id: UUID, user_id: UUID) -> DeliveryAttempt:
        original = await self._ledger.get(delivery_id)
        subscription = await self._registry.get_owned(original.webhook_id, user_id)
        logger.info(
            "retrying webhook delivery",
            delivery_id=str(delivery_id),
            webhook_id=str(subscription.id),
            previous_status=original.status_code,
        )
        result = await self._executor.execute(
            subscription,
            original.event,
            original.payload,
            payload_json=original.payload_json,
            is_retry=True,
            original_delivery_id=original.id,
        )
        return await self._ledger.record(result)
