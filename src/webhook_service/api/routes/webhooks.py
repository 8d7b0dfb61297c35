"""Webhook manager endpoint: one ``{action, data}`` envelope per request."""
from __future__ import annotations

from typing import Any, Awaitable, Callable

import structlog
from aiohttp import web

from webhook_service.api.utils import json_error, read_json
from webhook_service.core.exceptions import (
    AuthError,
    NotFoundError,
    UnknownActionError,
    ValidationError,
)
from webhook_service.domain.commands import (
    ACTIONS,
    CreateWebhook,
    DeleteWebhook,
    GetDeliveries,
    GetWebhooks,
    RetryDelivery,
    TriggerWebhook,
    UpdateWebhook,
    parse_command,
)
from webhook_service.services.dependencies import (
    UserContext,
    get_dispatcher,
    get_ledger,
    get_registry,
    get_retry_coordinator,
    get_usage_recorder,
    require_current_user,
)

logger = structlog.get_logger(__name__)

routes = web.RouteTableDef()

Handler = Callable[[web.Request, UserContext, Any], Awaitable[dict[str, Any]]]


async def create_webhook(
    request: web.Request, user: UserContext, command: CreateWebhook
) -> dict[str, Any]:
    data = command.data
    registry = await get_registry(request)
    webhook = await registry.create(
        user.user_id,
        data.agent_id,
        data.url,
        data.events,
        data.secret,
        headers=data.headers,
        is_active=data.is_active,
    )
    return {"webhook": webhook.model_dump(mode="json")}


async def update_webhook(
    request: web.Request, user: UserContext, command: UpdateWebhook
) -> dict[str, Any]:
    registry = await get_registry(request)
    webhook = await registry.update(
        command.data.webhook_id, user.user_id, **command.data.changes()
    )
    return {"webhook": webhook.model_dump(mode="json")}


async def delete_webhook(
    request: web.Request, user: UserContext, command: DeleteWebhook
) -> dict[str, Any]:
    registry = await get_registry(request)
    await registry.delete(command.data.webhook_id, user.user_id)
    return {"success": True}


async def trigger_webhook(
    request: web.Request, user: UserContext, command: TriggerWebhook
) -> dict[str, Any]:
    data = command.data
    dispatcher = await get_dispatcher(request)
    deliveries = await dispatcher.dispatch(
        data.agent_id, data.event, data.payload, user_id=user.user_id
    )
    return {"deliveries": [d.model_dump(mode="json") for d in deliveries]}


async def get_webhooks(
    request: web.Request, user: UserContext, command: GetWebhooks
) -> dict[str, Any]:
    registry = await get_registry(request)
    webhooks = await registry.list_all(command.data.agent_id, user.user_id)
    return {"webhooks": [w.model_dump(mode="json") for w in webhooks]}


async def get_deliveries(
    request: web.Request, user: UserContext, command: GetDeliveries
) -> dict[str, Any]:
    ledger = await get_ledger(request)
    deliveries = await ledger.list_for_subscription(
        command.data.webhook_id, user.user_id, command.data.limit
    )
    if not deliveries:
        # rows are owner-scoped, so history of a deleted subscription is still listed
        registry = await get_registry(request)
        await registry.get_owned(command.data.webhook_id, user.user_id)
    return {"deliveries": [d.model_dump(mode="json") for d in deliveries]}


async def retry_delivery(
    request: web.Request, user: UserContext, command: RetryDelivery
) -> dict[str, Any]:
    coordinator = await get_retry_coordinator(request)
    delivery = await coordinator.retry(command.data.delivery_id, user.user_id)
    return {"delivery": delivery.model_dump(mode="json")}


HANDLERS: dict[type, Handler] = {
    CreateWebhook: create_webhook,
    UpdateWebhook: update_webhook,
    DeleteWebhook: delete_webhook,
    TriggerWebhook: trigger_webhook,
    GetWebhooks: get_webhooks,
    GetDeliveries: get_deliveries,
    RetryDelivery: retry_delivery,
}


@routes.post("/api/v1/webhook-manager")
async def webhook_manager(request: web.Request) -> web.Response:
    try:
        user = await require_current_user(request)
    except AuthError as exc:
        logger.info("unauthorized webhook-manager call", reason=str(exc))
        return json_error("Unauthorized", 401)

    action: Any = None
    success = False
    try:
        body = await read_json(request)
        action = body.get("action")
        command = parse_command(body)
        payload = await HANDLERS[type(command)](request, user, command)
        response = web.json_response(payload)
        success = True
    except web.HTTPBadRequest as exc:
        response = json_error(exc.text or "Bad request", 400)
    except UnknownActionError:
        response = json_error("Invalid action", 400)
    except ValidationError as exc:
        response = json_error(str(exc), 400)
    except NotFoundError as exc:
        response = json_error(str(exc), 404)
    except Exception as exc:
        logger.exception("webhook manager error", action=action)
        response = json_error(str(exc) or type(exc).__name__, 500)

    if isinstance(action, str) and action in ACTIONS:
        recorder = await get_usage_recorder(request)
        recorder.record_later(user_id=user.user_id, action=action, success=success)
    return response
