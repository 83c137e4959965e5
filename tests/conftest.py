from datetime import datetime

import mongomock
import pytest

from gomint.app import create_app


@pytest.fixture
def database():
    return mongomock.MongoClient()["gomint_test"]


@pytest.fixture
def app(database, monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("APP_ENV", "development")
    monkeypatch.delenv("SEED", raising=False)
    flask_app = create_app(database=database)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


def _auth_headers(client, username: str, role: str) -> dict:
    res = client.post("/api/auth/register", json={"username": username, "password": "pw-123456", "role": role})
    assert res.status_code == 201, res.get_json()
    res = client.post("/api/auth/login", json={"username": username, "password": "pw-123456"})
    assert res.status_code == 200, res.get_json()
    return {"Authorization": f"Bearer {res.get_json()['token']}"}


@pytest.fixture
def operator_headers(client):
    return _auth_headers(client, "operator@example.com", "operator")


@pytest.fixture
def vendor_headers(client):
    return _auth_headers(client, "vendor@example.com", "vendor")


@pytest.fixture
def customer_headers(client):
    return _auth_headers(client, "shopper@example.com", "customer")


@pytest.fixture
def marketplace(database):
    """A vendor with a location and offer, plus a customer with bank details on file."""
    now = datetime.utcnow()
    vendor_id = database["vendors"].insert_one(
        {"businessName": "Corner Cafe", "currency": "USD", "address": "1 Main St", "country": "USA", "createdAt": now}
    ).inserted_id
    location_id = database["locations"].insert_one(
        {"vendorId": vendor_id, "name": "Downtown", "city": "Springfield", "createdAt": now}
    ).inserted_id
    offer_id = database["offers"].insert_one(
        {
            "name": "Coffee 5%",
            "brand": "Corner",
            "category": "Food",
            "startDate": now,
            "endDate": now,
            "minAmount": 1.0,
            "maxAmount": 50.0,
            "cashbackPercent": 5.0,
            "businessId": vendor_id,
            "locationId": location_id,
            "createdAt": now,
        }
    ).inserted_id
    customer_id = database["customers"].insert_one(
        {
            "firstName": "Ada",
            "lastName": "Lovelace",
            "email": "ada@example.com",
            "mobile": "5550001",
            "bankDetails": {"acctHolder": "Ada Lovelace", "acctNumber": "1234567890", "ifsc": "BANK0001"},
            "createdAt": now,
        }
    ).inserted_id
    invoice_id = database["invoices"].insert_one(
        {
            "invoiceNumber": "INV-100",
            "vendorId": vendor_id,
            "invoiceDate": now,
            "totalAmount": 20.0,
            "paymentStatus": "pending",
            "cashbackList": [],
            "createdAt": now,
        }
    ).inserted_id
    return {
        "vendor_id": str(vendor_id),
        "location_id": str(location_id),
        "offer_id": str(offer_id),
        "customer_id": str(customer_id),
        "invoice_id": str(invoice_id),
    }
