"""Domain services exports."""

from webhook_service.services.delivery import DeliveryExecutor
from webhook_service.services.dispatcher import EventDispatcher
from webhook_service.services.ledger import DeliveryLedger
from webhook_service.services.registry import SubscriptionRegistry
from webhook_service.services.retry import RetryCoordinator
from webhook_service.services.usage import UsageRecorder

__all__ = [
    "DeliveryExecutor",
    "DeliveryLedger",
    "EventDispatcher",
    "RetryCoordinator",
    "SubscriptionRegistry",
    "UsageRecorder",
]
