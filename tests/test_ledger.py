from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from webhook_service.core.exceptions import NotFoundError
from webhook_service.domain.webhooks import DeliveryResult
from webhook_service.services.ledger import DeliveryLedger


def _result(webhook_id: uuid.UUID, user_id: uuid.UUID, minutes: int) -> DeliveryResult:
    return DeliveryResult(
        webhook_id=webhook_id,
        user_id=user_id,
        agent_id=uuid.uuid4(),
        event="message.received",
        payload={"n": minutes},
        delivery_key=uuid.uuid4(),
        status_code=200,
        success=True,
        delivered_at=datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes),
    )


@pytest.fixture
def ledger(delivery_store) -> DeliveryLedger:
    return DeliveryLedger(delivery_store, default_limit=3, max_limit=5)


@pytest.mark.asyncio
async def test_record_assigns_id(ledger):
    attempt = await ledger.record(_result(uuid.uuid4(), uuid.uuid4(), 0))
    assert attempt.id
    assert (await ledger.get(attempt.id)) == attempt


@pytest.mark.asyncio
async def test_get_missing(ledger):
    with pytest.raises(NotFoundError):
        await ledger.get(uuid.uuid4())


@pytest.mark.asyncio
async def test_list_newest_first_with_limits(ledger):
    webhook_id, owner = uuid.uuid4(), uuid.uuid4()
    for minutes in range(8):
        await ledger.record(_result(webhook_id, owner, minutes))
    await ledger.record(_result(uuid.uuid4(), owner, 99))

    default = await ledger.list_for_subscription(webhook_id, owner)
    assert [a.payload["n"] for a in default] == [7, 6, 5]

    clamped = await ledger.list_for_subscription(webhook_id, owner, 1000)
    assert len(clamped) == 5

    assert len(await ledger.list_for_subscription(webhook_id, owner, 0)) == 1
    assert len(await ledger.list_for_subscription(webhook_id, owner, 2)) == 2


@pytest.mark.asyncio
async def test_list_is_owner_scoped(ledger):
    webhook_id = uuid.uuid4()
    await ledger.record(_result(webhook_id, uuid.uuid4(), 0))
    assert await ledger.list_for_subscription(webhook_id, uuid.uuid4()) == []
