"""Test fixtures.

Learn: Two layers of fixtures:

1. Realtime unit fixtures (`directory`, `distributor`, ...) wire the engine
   to in-memory fakes — no database, no sockets.
2. App fixtures build a real app against in-memory SQLite. `client` is an
   httpx AsyncClient over ASGITransport with the lifespan entered by hand
   (ASGITransport doesn't run it); `ws_app` is a sync Starlette TestClient,
   which runs the lifespan itself and can open WebSockets.
"""

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from fakes import FakeAuthenticator, FakeDirectory
from mochat.config import Settings
from mochat.main import create_app
from mochat.realtime.distributor import EventDistributor
from mochat.realtime.registry import ConnectionRegistry
from mochat.realtime.routing import RecipientResolver
from mochat.realtime.subscriptions import SubscriptionIndex

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


# ─── Realtime unit fixtures ───────────────────────────────


@pytest.fixture()
def directory():
    return FakeDirectory()


@pytest.fixture()
def subscriptions():
    return SubscriptionIndex(verify=True)


@pytest.fixture()
def registry():
    return ConnectionRegistry()


@pytest.fixture()
def resolver(directory, subscriptions):
    return RecipientResolver(directory, subscriptions)


@pytest_asyncio.fixture()
async def distributor(directory, subscriptions, registry, resolver):
    dist = EventDistributor(
        registry=registry,
        subscriptions=subscriptions,
        resolver=resolver,
        directory=directory,
        authenticator=FakeAuthenticator(directory),
        queue_size=8,
    )
    await dist.start()
    yield dist
    await dist.stop()


# ─── App fixtures ─────────────────────────────────────────


def _test_settings() -> Settings:
    return Settings(database_url=TEST_DB_URL, debug=True)


@pytest_asyncio.fixture()
async def app():
    application = create_app(_test_settings())
    async with application.router.lifespan_context(application):
        yield application


@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def ws_app():
    """Sync TestClient — use from plain (non-async) tests only."""
    with TestClient(create_app(_test_settings())) as tc:
        yield tc
