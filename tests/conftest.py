# tests/conftest.py
import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_app

API_KEY = "test-secret"


@pytest.fixture
def settings():
    return Settings(api_key=API_KEY, environment="test")


@pytest.fixture
def app(settings):
    # fresh app == fresh store per test
    return create_app(settings)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth():
    return {"X-API-Key": API_KEY}


@pytest.fixture
def create(client, auth):
    def _create(name="Laptop", description="Fast machine", price=1299.99, category="electronics", **extra):
        body = {"name": name, "description": description, "price": price, "category": category, **extra}
        r = client.post("/api/products", json=body, headers=auth)
        assert r.status_code == 201, r.text
        return r.json()["data"]
    return _create
