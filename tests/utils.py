from __future__ import annotations

import socket
import time
import uuid
from datetime import datetime, timezone
from typing import Any

import jwt

from webhook_service.domain.webhooks import Subscription
from webhook_service.settings import settings

MANAGER_PATH = "/api/v1/webhook-manager"


def make_token(user_id: uuid.UUID | str | None, *, expires_in: int = 3600, secret: str | None = None) -> str:
    now = int(time.time())
    claims: dict[str, Any] = {"iat": now, "exp": now + expires_in, "role": "authenticated"}
    if user_id is not None:
        claims["sub"] = str(user_id)
    return jwt.encode(claims, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm)


def make_headers(user_id: uuid.UUID) -> dict[str, str]:
    """Authorization header as sent by the web client."""
    return {"Authorization": f"Bearer {make_token(user_id)}"}


async def call(client, user_id: uuid.UUID, action: str, data: dict[str, Any]) -> tuple[int, dict]:
    resp = await client.post(
        MANAGER_PATH,
        json={"action": action, "data": data},
        headers=make_headers(user_id),
    )
    return resp.status, await resp.json()


def make_subscription(url: str, **overrides: Any) -> Subscription:
    fields: dict[str, Any] = {
        "id": uuid.uuid4(),
        "user_id": uuid.uuid4(),
        "agent_id": uuid.uuid4(),
        "url": url,
        "events": ["message.received"],
        "secret": None,
        "headers": {},
        "is_active": True,
        "created_at": datetime.now(timezone.utc),
    }
    fields.update(overrides)
    return Subscription(**fields)


def free_port_url(path: str = "hook") -> str:
    """URL on a local port nobody listens on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}/{path}"
