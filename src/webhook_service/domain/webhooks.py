"""Webhook domain primitives."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field


def encode_payload(data: Any) -> str:
    """Compact JSON text of an event payload.

    Control characters (NUL included) come out as ``\\uXXXX`` escapes, so the
    text is safe to store as-is.
    """
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str)


class Subscription(BaseModel):
    """An owner-registered endpoint interested in a set of event types.

    Instances are frozen: the dispatcher works on the snapshot it loaded.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    user_id: UUID
    agent_id: UUID
    url: str
    events: list[str] = Field(default_factory=list)
    secret: str | None = Field(default=None, exclude=True, repr=False)
    headers: dict[str, str] = Field(default_factory=dict)
    is_active: bool = True
    created_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_secret(self) -> bool:
        return bool(self.secret)

    def matches(self, event: str) -> bool:
        return self.is_active and event in self.events


class DeliveryResult(BaseModel):
    """Outcome of one outbound call. Failures are data, not exceptions."""

    model_config = ConfigDict(frozen=True)

    webhook_id: UUID
    user_id: UUID
    agent_id: UUID
    event: str
    payload: Any = None
    # exact JSON text sent as ``data``; storage and retries use it verbatim
    payload_json: str | None = Field(default=None, exclude=True, repr=False)
    delivery_key: UUID
    # 0 when no HTTP response was received
    status_code: int
    success: bool
    response_body: str | None = None
    error: str | None = None
    delivered_at: datetime
    is_retry: bool = False
    original_delivery_id: UUID | None = None


class DeliveryAttempt(DeliveryResult):
    """A persisted, immutable ledger row."""

    id: UUID
