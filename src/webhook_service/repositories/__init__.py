"""Repository package exports."""

from webhook_service.repositories.protocols import DeliveryStore, SubscriptionStore, UsageStore
from webhook_service.repositories.usage import IntegrationLogRepository
from webhook_service.repositories.webhooks import (
    WebhookDeliveryRepository,
    WebhookSubscriptionRepository,
)

__all__ = [
    "DeliveryStore",
    "SubscriptionStore",
    "UsageStore",
    "IntegrationLogRepository",
    "WebhookDeliveryRepository",
    "WebhookSubscriptionRepository",
]
