import os
import itertools
import tempfile

# Settings are read at import time; configure the test environment first.
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["PUSH_MODE"] = "mock"
os.environ["PAYMENT_MODE"] = "mock"
os.environ["SOCIAL_LOGIN_MODE"] = "mock"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["MEDIA_ROOT"] = tempfile.mkdtemp(prefix="chefhub-media-")

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from chefhub.main import app
from chefhub.db import Base, get_db, install_sqlite_functions
from chefhub.infra import redis_client, sessions
from chefhub.models import Cuisine, Dish, User
from chefhub.services.auth import hash_password
from chefhub.services.payments import PaymentGateway, get_payment_gateway
from chefhub.services.push import MockPushGateway, get_push_gateway

# --- Test Database Setup ---

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # one shared connection so every session sees the same in-memory DB
)
install_sqlite_functions(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "secret123"
NYC = (40.7128, -74.0060)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def mock_redis():
    redis_client._redis = fakeredis.FakeRedis(decode_responses=True)
    yield redis_client._redis
    redis_client._redis = None


@pytest.fixture
def push_gateway():
    return MockPushGateway()


@pytest.fixture
def client(push_gateway):
    """Test client with DB, push and payment overrides."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_push_gateway] = lambda: push_gateway
    app.dependency_overrides[get_payment_gateway] = lambda: PaymentGateway(mode="mock")
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db_session():
    """Direct database session for setup and assertions."""
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def make_user(db_session):
    counter = itertools.count(1)

    def _make(user_type="customer", **fields):
        n = next(counter)
        user = User(
            first_name=fields.pop("first_name", f"Test{n}"),
            last_name=fields.pop("last_name", "User"),
            email=fields.pop("email", f"{user_type}{n}@example.com"),
            user_type=user_type,
            password_hash=hash_password(PASSWORD),
            **fields,
        )
        if user_type == "chef":
            user.rest_status = user.rest_status or "available"
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_for():
    def _headers(user):
        return {"Authorization": f"Bearer {sessions.issue_token(user.id).access_token}"}
    return _headers


@pytest.fixture
def customer(make_user):
    return make_user("customer", first_name="Casey", last_name="Customer")


@pytest.fixture
def chef(make_user):
    return make_user(
        "chef",
        first_name="Charlie",
        last_name="Chef",
        about="Home cooked pasta",
        current_lat=NYC[0],
        current_lng=NYC[1],
    )


@pytest.fixture
def customer_headers(customer, auth_for):
    return auth_for(customer)


@pytest.fixture
def chef_headers(chef, auth_for):
    return auth_for(chef)


@pytest.fixture
def cuisine(db_session):
    c = Cuisine(name="Italian")
    db_session.add(c)
    db_session.commit()
    db_session.refresh(c)
    return c


@pytest.fixture
def make_dish(db_session, cuisine):
    def _make(chef, **fields):
        dish = Dish(
            user_id=chef.id,
            cuisine_id=fields.pop("cuisine_id", cuisine.id),
            category=fields.pop("category", "Mains"),
            name=fields.pop("name", "Lasagna"),
            about=fields.pop("about", "Layered pasta"),
            keywords=fields.pop("keywords", ["pasta"]),
            price=fields.pop("price", 10.0),
            images=fields.pop("images", []),
            sizes=fields.pop("sizes", []),
            dish_type=fields.pop("dish_type", "dish"),
            **fields,
        )
        db_session.add(dish)
        db_session.commit()
        db_session.refresh(dish)
        return dish

    return _make


@pytest.fixture
def dish(chef, make_dish):
    return make_dish(chef)


@pytest.fixture
def order_payload(chef, dish):
    return {
        "to_id": chef.id,
        "order_type": "delivery",
        "amount": 20,
        "delivery_fee": 3,
        "service_fee": 1,
        "cart_items": [{"dish_id": dish.id, "qty": 2, "price": 10}],
        "address": "1 Main St",
        "payment_method": "card",
        "lat": 40.7306,
        "lng": -73.9866,
    }


@pytest.fixture
def place_order(client, customer_headers, order_payload):
    def _place(headers=None, **overrides):
        resp = client.post("/api/orders", json={**order_payload, **overrides}, headers=headers or customer_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _place


@pytest.fixture
def advance_order(client, chef_headers):
    def _advance(order_id, *statuses, headers=None):
        resp = None
        for status in statuses:
            resp = client.put(
                f"/api/chef/orders/{order_id}/status",
                json={"status": status},
                headers=headers or chef_headers,
            )
            assert resp.status_code == 200, resp.text
        return resp

    return _advance
