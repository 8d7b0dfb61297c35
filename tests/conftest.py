from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Mapping

import aiohttp
import pytest
from aiohttp import web

from tests.fakes import InMemoryDeliveryStore, InMemorySubscriptionStore, InMemoryUsageStore
from webhook_service.main import create_app
from webhook_service.services.dependencies import WebhookStores
from webhook_service.settings import settings

# Endpoints served by the local receiver: path -> (status, body)
RECEIVER_ROUTES: dict[str, tuple[int, str]] = {
    "ok": (200, "ok"),
    "created": (201, '{"received":true}'),
    "error": (500, "error"),
    "missing": (404, "not found"),
}


@dataclass
class ReceivedRequest:
    path: str
    headers: Mapping[str, str]
    raw: bytes


@dataclass
class Receiver:
    """Local HTTP endpoint standing in for subscriber servers."""

    base_url: str = ""
    requests: list[ReceivedRequest] = field(default_factory=list)
    release: asyncio.Event = field(default_factory=asyncio.Event)

    def url(self, name: str) -> str:
        return f"{self.base_url}/{name}"

    def hits(self, name: str) -> list[ReceivedRequest]:
        return [r for r in self.requests if r.path == f"/{name}"]

    async def handle(self, request: web.Request) -> web.Response:
        raw = await request.read()
        self.requests.append(
            ReceivedRequest(path=request.path, headers=request.headers.copy(), raw=raw)
        )
        name = request.match_info["name"]
        if name == "slow":
            # held until teardown; callers time out first
            try:
                await asyncio.wait_for(self.release.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                pass
            return web.Response(status=200, text="late")
        if name == "large":
            return web.Response(status=200, text="x" * 10_000)
        if name == "nul":
            return web.Response(status=200, body=b"ok\x00binary")
        status, body = RECEIVER_ROUTES.get(name, (200, "ok"))
        return web.Response(status=status, text=body)


@pytest.fixture
async def receiver() -> AsyncIterator[Receiver]:
    rec = Receiver()
    app = web.Application()
    app.router.add_post("/{name}", rec.handle)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port = site._server.sockets[0].getsockname()[1]  # type: ignore[union-attr]
    rec.base_url = f"http://127.0.0.1:{port}"
    try:
        yield rec
    finally:
        rec.release.set()
        await runner.cleanup()


@pytest.fixture
async def http_session() -> AsyncIterator[aiohttp.ClientSession]:
    async with aiohttp.ClientSession() as session:
        yield session


@pytest.fixture
def subscription_store() -> InMemorySubscriptionStore:
    return InMemorySubscriptionStore()


@pytest.fixture
def delivery_store() -> InMemoryDeliveryStore:
    return InMemoryDeliveryStore()


@pytest.fixture
def usage_store() -> InMemoryUsageStore:
    return InMemoryUsageStore()


@pytest.fixture
def stores(subscription_store, delivery_store, usage_store) -> WebhookStores:
    return WebhookStores(
        subscriptions=subscription_store,
        deliveries=delivery_store,
        usage=usage_store,
    )


@pytest.fixture
async def service_client(aiohttp_client, stores, monkeypatch) -> Any:
    monkeypatch.setattr(settings, "webhook_request_timeout_seconds", 0.5)
    app = create_app(stores=stores)
    return await aiohttp_client(app)
