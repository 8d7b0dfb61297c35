"""Typed commands for the ``{action, data}`` request envelope.

Every action accepted by ``POST /api/v1/webhook-manager`` is a separate model,
discriminated on ``action``. ``data`` keys use the camelCase names the web
client sends; snake_case names are accepted as well.
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Union, get_args
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from webhook_service.core.exceptions import UnknownActionError, ValidationError


class _Data(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CreateWebhookData(_Data):
    agent_id: UUID = Field(alias="agentId")
    url: str
    events: list[str]
    secret: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    is_active: bool = Field(default=True, alias="isActive")


class UpdateWebhookData(_Data):
    """Partial update: only the keys present in the request are changed."""

    webhook_id: UUID = Field(alias="webhookId")
    url: str | None = None
    events: list[str] | None = None
    secret: str | None = None
    headers: dict[str, str] | None = None
    is_active: bool | None = Field(default=None, alias="isActive")

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude={"webhook_id"})


class DeleteWebhookData(_Data):
    webhook_id: UUID = Field(alias="webhookId")


class TriggerWebhookData(_Data):
    agent_id: UUID = Field(alias="agentId")
    event: str = Field(min_length=1)
    payload: Any = None


class GetWebhooksData(_Data):
    agent_id: UUID = Field(alias="agentId")


class GetDeliveriesData(_Data):
    webhook_id: UUID = Field(alias="webhookId")
    limit: int | None = None


class RetryDeliveryData(_Data):
    delivery_id: UUID = Field(alias="deliveryId")


class CreateWebhook(BaseModel):
    action: Literal["createWebhook"]
    data: CreateWebhookData


class UpdateWebhook(BaseModel):
    action: Literal["updateWebhook"]
    data: UpdateWebhookData


class DeleteWebhook(BaseModel):
    action: Literal["deleteWebhook"]
    data: DeleteWebhookData


class TriggerWebhook(BaseModel):
    action: Literal["triggerWebhook"]
    data: TriggerWebhookData


class GetWebhooks(BaseModel):
    action: Literal["getWebhooks"]
    data: GetWebhooksData


class GetDeliveries(BaseModel):
    action: Literal["getDeliveries"]
    data: GetDeliveriesData


class RetryDelivery(BaseModel):
    action: Literal["retryDelivery"]
    data: RetryDeliveryData


Command = Annotated[
    Union[
        CreateWebhook,
        UpdateWebhook,
        DeleteWebhook,
        TriggerWebhook,
        GetWebhooks,
        GetDeliveries,
        RetryDelivery,
    ],
    Field(discriminator="action"),
]

COMMAND_TYPES: tuple[type[BaseModel], ...] = (
    CreateWebhook,
    UpdateWebhook,
    DeleteWebhook,
    TriggerWebhook,
    GetWebhooks,
    GetDeliveries,
    RetryDelivery,
)

ACTIONS = frozenset(get_args(cls.model_fields["action"].annotation)[0] for cls in COMMAND_TYPES)

_command_adapter: TypeAdapter[Command] = TypeAdapter(Command)


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"])
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def parse_command(body: dict[str, Any]) -> Command:
    """Turn a decoded request body into a typed command.

    Raises :class:`UnknownActionError` for actions outside the closed set and
    :class:`ValidationError` when ``data`` does not fit the action.
    """
    action = body.get("action")
    if not isinstance(action, str) or action not in ACTIONS:
        raise UnknownActionError("Invalid action")
    envelope = {"action": action, "data": body.get("data") or {}}
    try:
        return _command_adapter.validate_python(envelope)
    except PydanticValidationError as exc:
        raise ValidationError(_describe(exc)) from exc
