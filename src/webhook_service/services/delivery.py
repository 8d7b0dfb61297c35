"""Delivery executor: one signed HTTP POST per call, outcome returned as data."""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

import aiohttp
import structlog

from webhook_service.domain.webhooks import DeliveryResult, Subscription
from webhook_service.otel import get_tracer
from webhook_service.services.signing import encode_envelope, encode_payload, sign

logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)

DEFAULT_USER_AGENT = "Dolly-Webhooks/1.0"
DEFAULT_HEADER_PREFIX = "X-Dolly"


def _scrub(text: str) -> str:
    # text columns reject NUL
    return text.replace("\x00", "\ufffd")


class DeliveryExecutor:
    """Performs a single outbound webhook call with a bounded timeout.

    ``execute`` never raises for delivery failures: a non-2xx answer is a
    completed-but-failed attempt, and a transport error (DNS, refused
    connection, timeout) becomes ``status_code=0`` with ``error`` set.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        timeout_seconds: float,
        response_body_limit: int = 2000,
        user_agent: str = DEFAULT_USER_AGENT,
        header_prefix: str = DEFAULT_HEADER_PREFIX,
    ):
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._body_limit = response_body_limit
        self._user_agent = user_agent
        self.event_header = f"{header_prefix}-Event"
        self.delivery_header = f"{header_prefix}-Delivery"
        self.signature_header = f"{header_prefix}-Signature"
        self.retry_header = f"{header_prefix}-Retry"

    def build_headers(
        self,
        subscription: Subscription,
        *,
        event: str,
        delivery_key: UUID,
        signature: str | None,
        is_retry: bool,
    ) -> dict[str, str]:
        system = {
            "Content-Type": "application/json",
            "User-Agent": self._user_agent,
            self.event_header: event,
            self.delivery_header: str(delivery_key),
        }
        if signature is not None:
            system[self.signature_header] = signature
        if is_retry:
            system[self.retry_header] = "true"

        reserved = {name.lower() for name in system}
        reserved.add(self.signature_header.lower())
        reserved.add(self.retry_header.lower())
        headers = {
            name: value
            for name, value in subscription.headers.items()
            if name.lower() not in reserved
        }
        headers.update(system)
        return headers

    async def execute(
        self,
        subscription: Subscription,
        event: str,
        payload: Any,
        *,
        payload_json: str | None = None,
        is_retry: bool = False,
        original_delivery_id: UUID | None = None,
    ) -> DeliveryResult:
        """POST one envelope. ``payload_json`` re-sends a stored payload text as-is."""
        delivery_key = uuid4()
        if payload_json is None:
            payload_json = encode_payload(payload)
        body = encode_envelope(
            event=event,
            agent_id=subscription.agent_id,
            timestamp=datetime.now(timezone.utc),
            payload_json=payload_json,
        )
        signature = sign(body, subscription.secret) if subscription.secret else None
        headers = self.build_headers(
            subscription,
            event=event,
            delivery_key=delivery_key,
            signature=signature,
            is_retry=is_retry,
        )

        status_code = 0
        response_body: str | None = None
        error: str | None = None
        with tracer.start_as_current_span("webhook.deliver") as span:
            span.set_attribute("webhook.id", str(subscription.id))
            span.set_attribute("webhook.event", event)
            span.set_attribute("webhook.retry", is_retry)
            try:
                async with self._session.post(
                    subscription.url,
                    data=body,
                    headers=headers,
                    timeout=self._timeout,
                ) as resp:
                    status_code = resp.status
                    response_body = await self._read_body(resp)
            except Exception as exc:
                error = _scrub(str(exc) or type(exc).__name__)
            span.set_attribute("http.status_code", status_code)

        success = 200 <= status_code < 300
        log = logger.info if success else logger.warning
        log(
            "webhook delivered" if success else "webhook delivery failed",
            webhook_id=str(subscription.id),
            webhook_event=event,
            delivery_key=str(delivery_key),
            status_code=status_code,
            is_retry=is_retry,
            error=error,
        )
        return DeliveryResult(
            webhook_id=subscription.id,
            user_id=subscription.user_id,
            agent_id=subscription.agent_id,
            event=event,
            payload=payload,
            payload_json=payload_json,
            delivery_key=delivery_key,
            status_code=status_code,
            success=success,
            response_body=response_body,
            error=error,
            delivered_at=datetime.now(timezone.utc),
            is_retry=is_retry,
            original_delivery_id=original_delivery_id,
        )

    async def _read_body(self, resp: aiohttp.ClientResponse) -> str | None:
        # Best effort; a receiver that stalls mid-body still counts by status
        try:
            raw = await resp.content.read(self._body_limit * 4)
        except (aiohttp.ClientError, asyncio.TimeoutError):
            return None
        return _scrub(raw.decode("utf-8", errors="replace")[: self._body_limit])
