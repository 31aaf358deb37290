"""
Shared fixtures: an app wired to an in-memory mongomock database, seeded
users for each role, and a two-product catalog.
"""
import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import AuthContext, create_token, hash_password
from config import Settings
from database import PRODUCTS, USERS, create_document
from main import create_app

SETTINGS = Settings(jwt_secret="test-secret", environment="development")
PASSWORD = "secret123"

ADDRESS = {
    "street": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "zipCode": "62701",
    "country": "USA",
}


def auth_headers(user: dict) -> dict:
    return {"Authorization": f"Bearer {create_token(user, SETTINGS)}"}


def as_actor(user: dict) -> AuthContext:
    return AuthContext(id=str(user["_id"]), email=user["email"], name=user["name"], role=user["role"])


@pytest.fixture(scope="session")
def password_hash():
    # bcrypt is slow; hash once per session
    return hash_password(PASSWORD)


@pytest.fixture
def db():
    return mongomock.MongoClient()["data-vista-test"]


@pytest.fixture
def app(db):
    return create_app(SETTINGS, db=db)


@pytest.fixture
def client(app):
    return TestClient(app)


def _seed_user(db, password_hash, name, email, role):
    _id = create_document(db, USERS, {"name": name, "email": email, "password": password_hash, "role": role, "language": "en"})
    return db[USERS].find_one({"_id": _id})


@pytest.fixture
def admin(db, password_hash):
    return _seed_user(db, password_hash, "Ada Admin", "admin@example.com", "admin")


@pytest.fixture
def alice(db, password_hash):
    return _seed_user(db, password_hash, "Alice User", "alice@example.com", "user")


@pytest.fixture
def bob(db, password_hash):
    return _seed_user(db, password_hash, "Bob Manager", "bob@example.com", "manager")


@pytest.fixture
def products(db):
    """Product A at 10.00 and product B at 5.50."""
    a = create_document(db, PRODUCTS, {"name": "Widget A", "description": "First widget", "price": 10.00, "category": "Widgets", "stock": 20})
    b = create_document(db, PRODUCTS, {"name": "Gadget B", "description": "Second gadget", "price": 5.50, "category": "Gadgets", "stock": 5})
    return {"A": db[PRODUCTS].find_one({"_id": a}), "B": db[PRODUCTS].find_one({"_id": b})}


@pytest.fixture
def order_payload(products):
    return {
        "products": [
            {"product": str(products["A"]["_id"]), "quantity": 2},
            {"product": str(products["B"]["_id"]), "quantity": 1},
        ],
        "shippingAddress": dict(ADDRESS),
        "paymentMethod": "card",
    }


@pytest.fixture
def alice_order(client, alice, order_payload):
    resp = client.post("/api/orders", json=order_payload, headers=auth_headers(alice))
    assert resp.status_code == 201, resp.text
    return resp.json()
