from __future__ import annotations

import uuid

import pytest

from tests.utils import make_token
from webhook_service.core.exceptions import AuthError
from webhook_service.services.auth import decode_token, get_user_id_from_token


def test_valid_token_yields_owner():
    owner = uuid.uuid4()
    assert get_user_id_from_token(make_token(owner)) == owner
    assert decode_token(make_token(owner))["role"] == "authenticated"


def test_expired_token():
    with pytest.raises(AuthError, match="expired"):
        get_user_id_from_token(make_token(uuid.uuid4(), expires_in=-10))


def test_wrong_signature():
    token = make_token(uuid.uuid4(), secret="some-other-secret-that-is-long-enough")
    with pytest.raises(AuthError):
        get_user_id_from_token(token)


def test_garbage_token():
    with pytest.raises(AuthError):
        get_user_id_from_token("not.a.jwt")


def test_missing_subject():
    with pytest.raises(AuthError, match="missing"):
        get_user_id_from_token(make_token(None))


def test_non_uuid_subject():
    with pytest.raises(AuthError):
        get_user_id_from_token(make_token("service-account"))
