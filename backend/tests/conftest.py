"""
Efficio Backend — Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test runs against a fresh InMemoryStore; no Redis server needed.

Fixture Hierarchy (all function-scoped):
    ├── store: empty InMemoryStore
    ├── services: ServiceContainer over `store` (cheap bcrypt rounds)
    ├── alice / bob: registered users as ConnectionToken (token + user_id)
    └── test_client: HTTPX AsyncClient talking to create_app(store)
"""

import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Before any efficio import: settings are read once at import time
os.environ["STORE_BACKEND"] = "memory"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["BCRYPT_ROUNDS"] = "4"

from efficio.config import Settings  # noqa: E402
from efficio.schemas.grocery import UserCreate  # noqa: E402
from efficio.services.container import ServiceContainer  # noqa: E402
from efficio.store import InMemoryStore  # noqa: E402

TEST_BCRYPT_ROUNDS = 4


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def services(store):
    return ServiceContainer(store, token_bytes=32, bcrypt_rounds=TEST_BCRYPT_ROUNDS)


async def register(services, username: str, password: str = "correct horse"):
    return await services.users.register(
        UserCreate(username=username, email=f"{username.lower()}@gmail.com", password=password)
    )


@pytest.fixture
def register_user(services):
    """Coroutine factory: await register_user("carol") → ConnectionToken."""

    async def _register(username: str, password: str = "correct horse"):
        return await register(services, username, password)

    return _register


@pytest_asyncio.fixture
async def alice(services):
    """Registered user "alice" with one live session."""
    return await register(services, "alice")


@pytest_asyncio.fixture
async def bob(services):
    return await register(services, "bob")


@pytest.fixture
def test_settings():
    return Settings(store_backend="memory", bcrypt_rounds=TEST_BCRYPT_ROUNDS, log_level="WARNING")


@pytest_asyncio.fixture
async def test_client(store, test_settings):
    """
    HTTPX AsyncClient routed straight into the ASGI app.

    The store is injected, so the app is usable without running its lifespan.
    """
    from efficio.main import create_app

    app = create_app(store=store, config=test_settings)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
