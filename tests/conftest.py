"""Test fixtures — an app wired to the in-memory document store.

Learn: Testing pattern for FastAPI + httpx:

1. Each test builds its own Settings (memory store, fixed JWT secret,
   bcrypt cost 4 so hashing is fast) and its own app via create_app().
2. The client talks to the app in-process through ASGITransport; no
   server, no network, no database.
3. `register_and_login` goes through the real register/login routes and
   returns ready-to-use Authorization headers, so API tests exercise the
   real auth gate instead of overriding it.
"""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from tasktracker.config import Settings
from tasktracker.db.store import MemoryDocumentStore
from tasktracker.main import create_app

TEST_SECRET = "test-secret-not-for-production-0123456789"


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        store_backend="memory",
        jwt_secret=TEST_SECRET,
        bcrypt_rounds=4,
    )


@pytest.fixture()
def store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture()
def app(settings, store):
    return create_app(settings, store=store)


@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def register_and_login(client):
    """Register a fresh user, log in, and return (user, auth headers)."""

    async def _register_and_login(username=None, email=None, password="secret1"):
        username = username or f"user-{uuid.uuid4().hex[:8]}"
        email = email or f"{username}@example.com"
        r = await client.post(
            "/api/auth/register",
            json={"username": username, "email": email, "password": password},
        )
        assert r.status_code == 201, r.text
        r = await client.post(
            "/api/auth/login", json={"email": email, "password": password}
        )
        assert r.status_code == 200, r.text
        body = r.json()
        return body["user"], {"Authorization": f"Bearer {body['token']}"}

    return _register_and_login
