from __future__ import annotations

import json
import uuid

import pytest

from tests.utils import free_port_url, make_subscription
from webhook_service.services.delivery import DeliveryExecutor
from webhook_service.services.signing import sign


@pytest.fixture
def executor(http_session) -> DeliveryExecutor:
    return DeliveryExecutor(http_session, timeout_seconds=0.3, response_body_limit=100)


@pytest.mark.asyncio
async def test_successful_delivery_is_signed_over_exact_body(executor, receiver):
    subscription = make_subscription(receiver.url("ok"), secret="abc")

    result = await executor.execute(subscription, "message.received", {"text": "hi"})

    assert result.success is True
    assert result.status_code == 200
    assert result.response_body == "ok"
    assert result.error is None
    assert result.is_retry is False
    assert result.original_delivery_id is None
    assert result.webhook_id == subscription.id
    assert result.payload == {"text": "hi"}

    [request] = receiver.hits("ok")
    assert request.headers["X-Dolly-Signature"] == sign(request.raw, "abc")
    assert request.headers["X-Dolly-Event"] == "message.received"
    assert uuid.UUID(request.headers["X-Dolly-Delivery"]) == result.delivery_key
    assert request.headers["User-Agent"] == "Dolly-Webhooks/1.0"
    assert request.headers["Content-Type"] == "application/json"
    assert "X-Dolly-Retry" not in request.headers

    body = json.loads(request.raw)
    assert body["event"] == "message.received"
    assert body["agent_id"] == str(subscription.agent_id)
    assert body["data"] == {"text": "hi"}
    assert body["timestamp"]


@pytest.mark.asyncio
async def test_non_2xx_is_a_recorded_failure(executor, receiver):
    result = await executor.execute(make_subscription(receiver.url("error")), "e", None)

    assert result.success is False
    assert result.status_code == 500
    assert result.response_body == "error"
    assert result.error is None


@pytest.mark.asyncio
async def test_any_2xx_counts_as_success(executor, receiver):
    result = await executor.execute(make_subscription(receiver.url("created")), "e", {})
    assert result.success is True
    assert result.status_code == 201


@pytest.mark.asyncio
async def test_timeout_becomes_status_zero(executor, receiver):
    result = await executor.execute(make_subscription(receiver.url("slow")), "e", {})

    assert result.success is False
    assert result.status_code == 0
    assert result.response_body is None
    assert result.error


@pytest.mark.asyncio
async def test_connection_refused_becomes_status_zero(executor):
    result = await executor.execute(make_subscription(free_port_url()), "e", {})

    assert result.success is False
    assert result.status_code == 0
    assert result.error


@pytest.mark.asyncio
async def test_unsupported_url_does_not_raise(executor):
    result = await executor.execute(make_subscription("not-a-url"), "e", {})
    assert result.status_code == 0
    assert result.error


@pytest.mark.asyncio
async def test_response_body_is_truncated(executor, receiver):
    result = await executor.execute(make_subscription(receiver.url("large")), "e", {})
    assert result.success is True
    assert result.response_body == "x" * 100


@pytest.mark.asyncio
async def test_no_signature_header_without_secret(executor, receiver):
    await executor.execute(make_subscription(receiver.url("ok")), "e", {})
    [request] = receiver.hits("ok")
    assert "X-Dolly-Signature" not in request.headers


@pytest.mark.asyncio
async def test_custom_headers_cannot_override_system_headers(executor, receiver):
    subscription = make_subscription(
        receiver.url("ok"),
        secret="abc",
        headers={
            "X-Api-Key": "k-123",
            "x-dolly-event": "spoofed",
            "X-Dolly-Signature": "sha256=forged",
            "content-type": "text/plain",
        },
    )
    await executor.execute(subscription, "message.received", {})

    [request] = receiver.hits("ok")
    assert request.headers["X-Api-Key"] == "k-123"
    assert request.headers.getall("X-Dolly-Event") == ["message.received"]
    assert request.headers["X-Dolly-Signature"] == sign(request.raw, "abc")
    assert request.headers["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_retry_marks_header_and_linkage(executor, receiver):
    original_id = uuid.uuid4()
    result = await executor.execute(
        make_subscription(receiver.url("ok")),
        "e",
        {},
        is_retry=True,
        original_delivery_id=original_id,
    )

    assert result.is_retry is True
    assert result.original_delivery_id == original_id
    [request] = receiver.hits("ok")
    assert request.headers["X-Dolly-Retry"] == "true"


@pytest.mark.asyncio
async def test_each_execution_gets_a_fresh_delivery_key(executor, receiver):
    subscription = make_subscription(receiver.url("ok"))
    first = await executor.execute(subscription, "e", {})
    second = await executor.execute(subscription, "e", {})
    assert first.delivery_key != second.delivery_key


@pytest.mark.asyncio
async def test_header_prefix_is_configurable(http_session):
    executor = DeliveryExecutor(http_session, timeout_seconds=1, header_prefix="X-Acme")
    headers = executor.build_headers(
        make_subscription("http://example.invalid"),
        event="e",
        delivery_key=uuid.UUID(int=7),
        signature="sha256=00",
        is_retry=True,
    )
    assert headers["X-Acme-Event"] == "e"
    assert headers["X-Acme-Delivery"] == str(uuid.UUID(int=7))
    assert headers["X-Acme-Signature"] == "sha256=00"
    assert headers["X-Acme-Retry"] == "true"


@pytest.mark.asyncio
async def test_nul_in_response_body_is_replaced(executor, receiver):
    result = await executor.execute(make_subscription(receiver.url("nul")), "e", {})

    assert result.success is True
    assert "\x00" not in result.response_body
    assert result.response_body == "ok\ufffdbinary"


@pytest.mark.asyncio
async def test_nul_in_payload_is_sent_escaped(executor, receiver):
    result = await executor.execute(make_subscription(receiver.url("ok")), "e", {"text": "a\x00b"})

    assert result.payload_json == '{"text":"a\\u0000b"}'
    [request] = receiver.hits("ok")
    assert b"\x00" not in request.raw
    assert json.loads(request.raw)["data"] == {"text": "a\x00b"}


@pytest.mark.asyncio
async def test_stored_payload_text_is_resent_byte_for_byte(executor, receiver):
    stored = '{"z": 1,  "a": "é"}'
    await executor.execute(
        make_subscription(receiver.url("ok")), "e", {"z": 1, "a": "é"}, payload_json=stored
    )

    [request] = receiver.hits("ok")
    assert request.raw.endswith(b',"data":' + stored.encode("utf-8") + b"}")
