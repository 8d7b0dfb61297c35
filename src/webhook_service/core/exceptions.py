"""Common exceptions for domain and repository layers."""
from __future__ import annotations


class WebhookServiceError(Exception):
    """Base error for service layer."""


class AuthError(WebhookServiceError):
    """Raised when the caller identity is missing or invalid."""


class ValidationError(WebhookServiceError):
    """Raised when a create/update request is malformed."""


class UnknownActionError(ValidationError):
    """Raised when the request envelope names an action we do not handle."""


class NotFoundError(WebhookServiceError):
    """Raised when an entity is missing or not owned by the caller."""


class PersistenceError(WebhookServiceError):
    """Raised when the backing store is unreachable or rejects a write."""
