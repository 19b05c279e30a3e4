"""
Pytest configuration and fixtures for ShopEasy tests.

Service tests run against an in-memory MongoDB (mongomock-motor); API tests
drive the real app through FastAPI's TestClient with the same in-memory
client injected into the lifespan.
"""
import asyncio
from decimal import Decimal
from typing import Dict

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from shopeasy.main import create_app
from shopeasy.schemas import ProductCreate, ShippingAddressIn
from shopeasy.services.catalog import create_product
from shopeasy.shared.utils import Settings

PASSWORD = "Passw0rd1"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        ENVIRONMENT="development",
        MONGO_DB_NAME="shopeasy_test",
        SECRET_KEY="test-secret-key-for-unit-tests-only",
        REFRESH_SECRET_KEY="test-refresh-key-for-unit-tests-only",
        RATE_LIMIT_ENABLED=False,
    )


@pytest.fixture
def mongo_client() -> AsyncMongoMockClient:
    return AsyncMongoMockClient()


@pytest.fixture
def db(mongo_client, settings):
    return mongo_client[settings.MONGO_DB_NAME]


@pytest.fixture
def make_product(db):
    """Insert a product through the catalog store."""
    async def _make(name: str = "Widget", price: str = "20.00", stock: int = 5, **fields) -> dict:
        data = ProductCreate(
            name=name,
            description=fields.pop("description", f"{name} description"),
            price=Decimal(price),
            category=fields.pop("category", "Gadgets"),
            stock=stock,
            **fields,
        )
        return await create_product(db, data)
    return _make


@pytest.fixture
def shipping_address() -> ShippingAddressIn:
    return ShippingAddressIn(
        address="123 Main Street",
        city="Springfield",
        state="IL",
        postal_code="62701",
        country="USA",
    )


# --- API fixtures ---

@pytest.fixture
def client(settings, mongo_client):
    app = create_app(settings, mongo_client=mongo_client)
    with TestClient(app) as test_client:
        yield test_client


def auth_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def register(client: TestClient, email: str, name: str = "Test User", password: str = PASSWORD) -> dict:
    resp = client.post("/api/v1/auth/register", json={"name": name, "email": email, "password": password})
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def user_headers(client) -> Dict[str, str]:
    return auth_headers(register(client, "shopper@example.com")["accessToken"])


@pytest.fixture
def admin_headers(client, db) -> Dict[str, str]:
    body = register(client, "admin@example.com", name="Admin User")
    asyncio.run(db.users.update_one({"email": "admin@example.com"}, {"$set": {"role": "admin"}}))
    return auth_headers(body["accessToken"])


@pytest.fixture
def api_product(client, admin_headers):
    """Create a product through the admin API and return its JSON."""
    def _create(name: str = "Widget", price: float = 20.0, stock: int = 5, **fields) -> dict:
        payload = {
            "name": name,
            "description": f"{name} description",
            "price": price,
            "category": fields.pop("category", "Gadgets"),
            "stock": stock,
            **fields,
        }
        resp = client.post("/api/v1/products", json=payload, headers=admin_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["product"]
    return _create
