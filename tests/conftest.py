import httpx
import pytest
from fastapi.testclient import TestClient

from authorization import get_store
from fake_store import FakeStore, issue_token, store_url
from main import app
from store import ApiClient

@pytest.fixture
def fake_store():
    return FakeStore()

@pytest.fixture
def make_client(fake_store):
    def make_client():
        return ApiClient(base_url=store_url, transport=httpx.MockTransport(fake_store))
    return make_client

@pytest.fixture
def alice(fake_store):
    return fake_store.add_user("Alice", "alice@example.com")

@pytest.fixture
def alice_token(alice):
    return issue_token(alice["id"])

@pytest.fixture
def client(make_client):
    async def fake_get_store():
        async with make_client() as store:
            yield store

    app.dependency_overrides[get_store] = fake_get_store
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
