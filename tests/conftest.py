# Centralized pytest configuration file (fixtures, hooks, plugins, etc.)
import asyncio

import httpx
import pytest
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from gtd_gateway.config import Settings
from gtd_gateway.main import create_app
from gtd_gateway.registry import BackendRegistry
from gtd_gateway.testing.fake_upstream import FakeUpstream


def make_settings(**overrides) -> Settings:
    """Settings isolated from the process environment and any .env file."""
    values = dict(
        default_backend="hono-d1",
        hono_d1_url="http://up1",
        bun_sqlite_url="http://up2",
        rails_url=None,
        phoenix_url=None,
        laravel_url=None,
        dotnet_url=None,
        java_url=None,
        upstream_timeout=30.0,
        router_version="test",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


class CallCounter(httpx.AsyncBaseTransport):
    """Transport wrapper that counts requests before handing them on."""
    def __init__(self, transport: httpx.AsyncBaseTransport):
        self.transport = transport
        self.requests: list[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return await self.transport.handle_async_request(request)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def up1() -> FakeUpstream:
    return FakeUpstream("hono-d1")


@pytest.fixture
def up2() -> FakeUpstream:
    return FakeUpstream("bun-sqlite")


@pytest.fixture
def upstream_client(up1: FakeUpstream, up2: FakeUpstream) -> AsyncClient:
    """Outbound client with each upstream host mounted on an in-process app"""
    return AsyncClient(
        mounts={
            "http://up1": ASGITransport(app=up1.app),
            "http://up2": ASGITransport(app=up2.app),
        }
    )


class CountingRegistry(BackendRegistry):
    """Registry that counts id lookups."""
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.lookups = 0

    def get(self, backend_id):
        self.lookups += 1
        return super().get(backend_id)


@pytest.fixture
def gateway_app(settings: Settings) -> FastAPI:
    return create_app(settings, registry=CountingRegistry.from_settings(settings))


async def open_gateway(app: FastAPI, http_client: AsyncClient):
    # Injected before startup so the lifespan keeps it instead of creating one
    app.state.http_client = http_client
    async with LifespanManager(app):
        async with AsyncClient(
                transport=ASGITransport(app=app),
                base_url="http://gateway") as client:
            yield client


@pytest.fixture
async def gateway_client(gateway_app: FastAPI, upstream_client: AsyncClient):
    """Gateway test client with upstreams mocked via ASGITransport"""
    async for client in open_gateway(gateway_app, upstream_client):
        yield client


@pytest.fixture
def dead_transport() -> CallCounter:
    """Transport whose every connection attempt is refused."""
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

    return CallCounter(httpx.MockTransport(refuse))


@pytest.fixture
async def dead_gateway_client(gateway_app: FastAPI, dead_transport: CallCounter):
    """Gateway test client whose upstreams are all unreachable"""
    async for client in open_gateway(gateway_app, AsyncClient(transport=dead_transport)):
        yield client


@pytest.fixture(name="make_settings")
def make_settings_fixture():
    return make_settings


@pytest.fixture
async def slow_gateway_client(make_settings):
    """Gateway test client whose upstream never answers within the timeout"""
    async def stall(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200)

    app = create_app(make_settings(upstream_timeout=0.05))
    async for client in open_gateway(app, AsyncClient(transport=httpx.MockTransport(stall))):
        yield client


@pytest.fixture
def recording_transport() -> CallCounter:
    """Upstream that reports the raw request target it received."""
    def answer(request: httpx.Request) -> httpx.Response:
        if request.method == "HEAD":
            return httpx.Response(200, headers={"content-length": "42", "content-type": "application/json"})
        return httpx.Response(200, json={"raw_path": request.url.raw_path.decode("ascii")})

    return CallCounter(httpx.MockTransport(answer))


@pytest.fixture
async def recording_gateway_client(gateway_app: FastAPI, recording_transport: CallCounter):
    """Gateway test client whose upstream records raw request targets"""
    async for client in open_gateway(gateway_app, AsyncClient(transport=recording_transport)):
        yield client
