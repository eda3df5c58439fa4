import mongomock
import pytest
from fastapi.testclient import TestClient

import main
from auth import hash_password


@pytest.fixture
def mongo(monkeypatch):
    database = mongomock.MongoClient()["stockpilot_test"]
    monkeypatch.setattr(main, "db", database)
    return database


@pytest.fixture
def client(mongo):
    return TestClient(main.app)


@pytest.fixture
def login(client, mongo):
    """Log in as a user with the given role, creating the account on first use."""
    def _login(role="admin"):
        email = f"{role}@example.com"
        password = f"{role}123"
        if not mongo["user"].find_one({"email": email}):
            salt, pw_hash = hash_password(password)
            mongo["user"].insert_one({
                "name": f"{role.title()} User",
                "email": email,
                "role": role,
                "password_salt": salt,
                "password_hash": pw_hash,
            })
        resp = client.post("/api/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200
        return resp.json()["user"]
    return _login


@pytest.fixture
def admin(login):
    return login("admin")


@pytest.fixture
def product(client, admin):
    resp = client.post("/api/products", json={
        "name": "Wireless Mouse",
        "sku": "WM-001",
        "price": 25.0,
        "quantity": 45,
        "reorder_level": 20,
        "supplier": "TechSupply Co",
        "category": "Electronics",
    })
    assert resp.status_code == 200
    return resp.json()
