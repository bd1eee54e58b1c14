"""Pytest configuration and fixtures."""

from typing import Dict, List, Optional

import mongomock
import pytest
from fastapi.testclient import TestClient

from favely.config import Settings
from favely.db import ListStorage, MongoConnection, UserStorage, set_connection
from favely.errors import IdentityProviderError
from favely.main import app
from favely.providers.base import IdentityProvider, IdentityUser
from favely.routes.deps import get_feedback_limiter, get_identity_provider, get_search_limiter
from favely.services.user_service import UserService
from favely.utils.rate_limit import RateLimiter


class FakeIdentityProvider(IdentityProvider):
    """In-memory identity provider; the bearer token of user `x` is `token-x`."""

    def __init__(self):
        self.users: Dict[str, IdentityUser] = {}
        self.fail = False

    def add(self, user_id: str, username: str, first_name: str = "", last_name: str = "", email: Optional[str] = None):
        user = IdentityUser(
            id=user_id,
            username=username,
            first_name=first_name or None,
            last_name=last_name or None,
            image_url=f"https://img.example.com/{username}.png",
            email=email,
        )
        self.users[user_id] = user
        return user

    def verify_session(self, token: str) -> Optional[str]:
        if token.startswith("token-") and token[len("token-"):] in self.users:
            return token[len("token-"):]
        return None

    def get_user(self, user_id: str) -> Optional[IdentityUser]:
        return self.users.get(user_id)

    def get_user_list(self, user_ids: List[str]) -> List[IdentityUser]:
        if self.fail:
            raise IdentityProviderError()
        return [self.users[uid] for uid in user_ids if uid in self.users]

    def get_user_by_username(self, username: str) -> Optional[IdentityUser]:
        for user in self.users.values():
            if user.username == username:
                return user
        return None


def auth(user_id: str) -> dict:
    return {"Authorization": f"Bearer token-{user_id}"}


@pytest.fixture
def settings():
    return Settings(mongodb_db_name="favely_test", db_initial_retry_delay_ms=0, clerk_webhook_secret="")


@pytest.fixture
def connection(settings):
    """mongomock-backed connection installed as the process-wide one."""
    conn = MongoConnection(settings=settings, client=mongomock.MongoClient())
    conn.ensure_indexes()
    set_connection(conn)
    try:
        yield conn
    finally:
        set_connection(None)


@pytest.fixture
def identity():
    provider = FakeIdentityProvider()
    provider.add("user_alice", "alice", "Alice", "Anders", email="alice@example.com")
    provider.add("user_bob", "bob", "Bob", "Brown", email="bob@example.com")
    provider.add("user_carol", "carol", "Carol", "Cole", email="carol@example.com")
    provider.add("user_dave", "dave", email="dave@example.com")
    return provider


@pytest.fixture
def list_storage(connection):
    return ListStorage(connection)


@pytest.fixture
def user_storage(connection):
    return UserStorage(connection)


@pytest.fixture
def user_service(user_storage, list_storage, identity, settings):
    return UserService(user_storage, list_storage, identity, settings)


@pytest.fixture
def client(connection, identity):
    app.dependency_overrides[get_identity_provider] = lambda: identity
    search_limiter = RateLimiter(limit=1000, window=60, cleanup_probability=0)
    feedback_limiter = RateLimiter(limit=2, window=60, cleanup_probability=0)
    app.dependency_overrides[get_search_limiter] = lambda: search_limiter
    app.dependency_overrides[get_feedback_limiter] = lambda: feedback_limiter
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_list(client):
    """Create a list through the API and return its JSON."""

    def _make(user_id: str = "user_alice", **fields):
        payload = {"title": "Best movies", "category": "movies", **fields}
        resp = client.post("/api/lists", json=payload, headers=auth(user_id))
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _make
