"""Outgoing payload encoding and HMAC signing."""
from __future__ import annotations

import hmac
from datetime import datetime
from hashlib import sha256
from uuid import UUID

from webhook_service.domain.webhooks import encode_payload

SIGNATURE_PREFIX = "sha256="

__all__ = ["SIGNATURE_PREFIX", "encode_envelope", "encode_payload", "sign"]


def encode_envelope(
    *,
    event: str,
    agent_id: UUID,
    timestamp: datetime,
    payload_json: str,
) -> bytes:
    """Serialize the request body once; these exact bytes are signed and sent.

    ``payload_json`` is spliced in unchanged as the ``data`` member, so a
    stored payload text is re-sent byte for byte.
    """
    head = encode_payload(
        {
            "event": event,
            "agent_id": str(agent_id),
            "timestamp": timestamp.isoformat(),
        }
    )
    return f'{head[:-1]},"data":{payload_json}}}'.encode("utf-8")


def sign(body_bytes: bytes, secret: str) -> str:
    """Return the ``sha256=<hex>`` signature header value for ``body_bytes``."""
    digest = hmac.new(secret.encode("utf-8"), body_bytes, sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"
