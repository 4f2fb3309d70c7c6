import os

# Must be set before the app builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite://")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.api.routes import get_reference_resolver, get_checkout_gateway
from app.application.references import ReferenceResolver
from app.application.checkout import CheckoutGateway
from app.domain.models import Base
from app.infrastructure.db import get_db

PRODUCTS = {
    1: {"id": 1, "name": "Oak Desk", "price": 250.0},
    2: {"id": 2, "name": "Desk Lamp", "price": 49.99},
}
USERS = {
    7: {"id": 7, "name": "Ada Lovelace", "email": "ada@example.com"},
}


def reference_handler(request: httpx.Request) -> httpx.Response:
    kind, _, entity_id = request.url.path.strip("/").partition("/")
    table = {"products": PRODUCTS, "users": USERS}.get(kind, {})
    entity = table.get(int(entity_id)) if entity_id.isdigit() else None
    if entity is None:
        return httpx.Response(404, json={"detail": "not found"})
    return httpx.Response(200, json=entity)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def resolver():
    with httpx.Client(transport=httpx.MockTransport(reference_handler)) as client:
        yield ReferenceResolver(client, "http://products:8000", "http://users:8000")


@pytest.fixture
def gateway_requests():
    """Requests received by the fake payment gateway"""
    return []


@pytest.fixture
def gateway_handler(gateway_requests):
    def handler(request: httpx.Request) -> httpx.Response:
        gateway_requests.append(request)
        return httpx.Response(200, json={"id": "cs_test_123", "object": "checkout.session"})
    return handler


@pytest.fixture
def client(session_factory, resolver, gateway_handler):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def override_get_checkout_gateway():
        with httpx.Client(base_url="https://gateway.test", transport=httpx.MockTransport(gateway_handler)) as http:
            yield CheckoutGateway(
                http,
                secret_key="sk_test_abc",
                currency="try",
                success_url="http://localhost:5173/thanksPage?session_id={CHECKOUT_SESSION_ID}",
                cancel_url="http://localhost:5173/checkout",
            )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_reference_resolver] = lambda: resolver
    app.dependency_overrides[get_checkout_gateway] = override_get_checkout_gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def order_payload():
    return {
        "order_items": [
            {"product": 1, "name": "Oak Desk", "quantity": 1, "price": 249.99},
            {"product": 2, "name": "Desk Lamp", "quantity": 5, "price": 50.0},
        ],
        "shipping_address": {"address": "1 Main St", "city": "Istanbul", "postalCode": "34000", "country": "TR"},
        "payment_method": "card",
        "items_price": 499.99,
        "tax_price": 0,
        "shipping_price": 0,
        "total_price": 499.99,
        "user": 7,
    }
