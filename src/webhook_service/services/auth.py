"""Bearer token verification."""
from __future__ import annotations

from typing import Any
from uuid import UUID

import jwt  # type: ignore[import-untyped]

from webhook_service.core.exceptions import AuthError
from webhook_service.settings import settings


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate JWT token."""
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthError("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthError(f"Invalid token: {exc}") from exc
    return dict(payload)


def get_user_id_from_token(token: str) -> UUID:
    """Extract the owner id (``sub`` claim) from a token."""
    subject = decode_token(token).get("sub")
    if not subject:
        raise AuthError("Token missing user ID")
    try:
        return UUID(str(subject))
    except ValueError as exc:
        raise AuthError("Token subject is not a valid user ID") from exc
