"""Pytest fixtures for the storefront tests."""

import jwt
import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import database

JWT_SECRET = "test-secret"


def make_token(user_id, secret: str = JWT_SECRET) -> str:
    return jwt.encode({"userId": str(user_id)}, secret, algorithm="HS256")


def bearer(user_id) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
def mongo(monkeypatch):
    """Fresh in-memory database patched in as database.db."""
    db = mongomock.MongoClient()["sole_store_test"]
    monkeypatch.setattr(database, "db", db)
    monkeypatch.setenv("JWT_SECRET", JWT_SECRET)
    monkeypatch.delenv("EMAIL", raising=False)
    monkeypatch.delenv("EMAIL_PASS", raising=False)
    monkeypatch.delenv("ORDER_ID_PREFIX", raising=False)
    database.ensure_indexes()
    return db


@pytest.fixture
def client(mongo):
    from main import app

    return TestClient(app)


@pytest.fixture
def catalog(mongo):
    """Two shoes and one apparel item, keyed by short names."""
    items = {
        "S1": ("shoes", {"name": "Air Max 90", "brand": "Nike", "image": "/img/am90.jpg", "price": 5000,
                         "retailPrice": 4000, "profit": 1000, "sizes": ["9", "10", "11"]}),
        "S2": ("shoes", {"name": "Samba OG", "brand": "Adidas", "image": "/img/samba.jpg", "price": 2000,
                         "sizes": ["8", "9"]}),
        "A1": ("apparel", {"name": "Tech Fleece Hoodie", "brand": "Nike", "image": "/img/hoodie.jpg",
                           "price": 3000, "retailPrice": 2500, "profit": 500, "sizes": ["M", "L"]}),
    }
    ids = {}
    for key, (collection, doc) in items.items():
        ids[key] = str(mongo[collection].insert_one(dict(doc)).inserted_id)
    return ids


@pytest.fixture
def customer(mongo):
    user = {
        "_id": ObjectId(),
        "firstName": "Nimal",
        "lastName": "Perera",
        "email": "nimal@example.com",
        "phone": "0771234567",
        "shippingAddress": {"street": "12 Galle Road", "city": "Colombo", "zipCode": "00300"},
    }
    mongo["users"].insert_one(user)
    return user


@pytest.fixture
def admin(mongo):
    user = {"_id": ObjectId(), "firstName": "Shop", "lastName": "Admin", "email": "admin@example.com",
            "isAdmin": True}
    mongo["users"].insert_one(user)
    return user


@pytest.fixture
def admin_headers(admin):
    return bearer(admin["_id"])


@pytest.fixture
def customer_headers(customer):
    return bearer(customer["_id"])
