"""Shared dependency providers for aiohttp handlers."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar
from uuid import UUID

from aiohttp import ClientSession, web

from backend_common.aiohttp_app import extract_bearer_token
from backend_common.db.pool import get_pool
from webhook_service.core.exceptions import AuthError
from webhook_service.repositories import (
    DeliveryStore,
    IntegrationLogRepository,
    SubscriptionStore,
    UsageStore,
    WebhookDeliveryRepository,
    WebhookSubscriptionRepository,
)
from webhook_service.services.auth import get_user_id_from_token
from webhook_service.services.delivery import DeliveryExecutor
from webhook_service.services.dispatcher import EventDispatcher
from webhook_service.services.ledger import DeliveryLedger
from webhook_service.services.registry import SubscriptionRegistry
from webhook_service.services.retry import RetryCoordinator
from webhook_service.services.usage import UsageRecorder
from webhook_service.settings import settings

TService = TypeVar("TService")

STORES_KEY = "webhook_stores"
HTTP_SESSION_KEY = "webhook_http_session"
USAGE_TASKS_KEY = "usage_log_tasks"

_REGISTRY_KEY = "subscription_registry"
_LEDGER_KEY = "delivery_ledger"
_EXECUTOR_KEY = "delivery_executor"
_DISPATCHER_KEY = "event_dispatcher"
_RETRY_KEY = "retry_coordinator"
_USAGE_KEY = "usage_recorder"


@dataclass
class WebhookStores:
    """Persistence capabilities injected into the services."""

    subscriptions: SubscriptionStore
    deliveries: DeliveryStore
    usage: UsageStore


@dataclass
class UserContext:
    user_id: UUID


async def postgres_stores() -> WebhookStores:
    pool = await get_pool()
    return WebhookStores(
        subscriptions=WebhookSubscriptionRepository(pool),
        deliveries=WebhookDeliveryRepository(pool),
        usage=IntegrationLogRepository(pool),
    )


async def require_current_user(request: web.Request) -> UserContext:
    """Resolve the caller from the bearer token. Raises :class:`AuthError`."""
    try:
        token = extract_bearer_token(request)
    except web.HTTPUnauthorized as exc:
        raise AuthError("Authorization token is required") from exc
    return UserContext(user_id=get_user_id_from_token(token))


async def _get_or_create_service(
    request: web.Request,
    cache_key: str,
    builder: Callable[[web.Request], Awaitable[TService]],
) -> TService:
    service = request.get(cache_key)
    if service is None:
        service = await builder(request)
        request[cache_key] = service
    return service


def _stores(request: web.Request) -> WebhookStores:
    return request.app[STORES_KEY]


async def get_registry(request: web.Request) -> SubscriptionRegistry:
    async def builder(req: web.Request) -> SubscriptionRegistry:
        return SubscriptionRegistry(_stores(req).subscriptions)

    return await _get_or_create_service(request, _REGISTRY_KEY, builder)


async def get_ledger(request: web.Request) -> DeliveryLedger:
    async def builder(req: web.Request) -> DeliveryLedger:
        return DeliveryLedger(
            _stores(req).deliveries,
            default_limit=settings.deliveries_default_limit,
            max_limit=settings.deliveries_max_limit,
        )

    return await _get_or_create_service(request, _LEDGER_KEY, builder)


async def get_executor(request: web.Request) -> DeliveryExecutor:
    async def builder(req: web.Request) -> DeliveryExecutor:
        session: ClientSession = req.app[HTTP_SESSION_KEY]
        return DeliveryExecutor(
            session,
            timeout_seconds=settings.webhook_request_timeout_seconds,
            response_body_limit=settings.webhook_response_body_limit,
            user_agent=settings.webhook_user_agent,
            header_prefix=settings.webhook_header_prefix,
        )

    return await _get_or_create_service(request, _EXECUTOR_KEY, builder)


async def get_dispatcher(request: web.Request) -> EventDispatcher:
    async def builder(req: web.Request) -> EventDispatcher:
        return EventDispatcher(
            await get_registry(req),
            await get_executor(req),
            await get_ledger(req),
            max_concurrency=settings.webhook_dispatch_max_concurrency,
        )

    return await _get_or_create_service(request, _DISPATCHER_KEY, builder)


async def get_retry_coordinator(request: web.Request) -> RetryCoordinator:
    async def builder(req: web.Request) -> RetryCoordinator:
        return RetryCoordinator(
            await get_registry(req),
            await get_executor(req),
            await get_ledger(req),
        )

    return await _get_or_create_service(request, _RETRY_KEY, builder)


async def get_usage_recorder(request: web.Request) -> UsageRecorder:
    async def builder(req: web.Request) -> UsageRecorder:
        pending: set[asyncio.Task] = req.app[USAGE_TASKS_KEY]
        return UsageRecorder(_stores(req).usage, pending)

    return await _get_or_create_service(request, _USAGE_KEY, builder)
