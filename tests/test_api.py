from collections.abc import Generator

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

from smartbooks.core.security import create_access_token, get_current_user_id, get_password_hash
from smartbooks.db import dynamo
from smartbooks.main import app
from smartbooks.routers import receipts as receipts_router
from smartbooks.utils import receipts as receipts_utils
from smartbooks.utils.receipts import CannedReceiptExtractor, get_receipt_extractor

client = TestClient(app)

USER_ID = "user-123"

stored_transactions = [
    {"transaction_id": "t1", "type": "income", "category": "Services", "amount": 18500,
     "description": "Consulting", "transaction_date": "2025-10-18", "created_at": "2025-10-18T09:00:00"},
    {"transaction_id": "t2", "type": "income", "category": "Sales", "amount": 25000,
     "description": "Week 1", "transaction_date": "2025-10-15", "created_at": "2025-10-15T09:00:00"},
    {"transaction_id": "t3", "type": "expense", "category": "Utilities", "amount": 4500,
     "description": "Power", "transaction_date": "2025-10-12", "created_at": "2025-10-12T09:00:00"},
    {"transaction_id": "t4", "type": "expense", "category": "Supplies", "amount": 3200,
     "description": "Paper", "transaction_date": "2025-10-10", "created_at": "2025-10-10T09:00:00"},
    {"transaction_id": "t5", "type": "expense", "category": "Rent", "amount": 15000,
     "description": "Office rent", "transaction_date": "2025-10-01", "created_at": "2025-10-01T09:00:00"},
]


@pytest.fixture
def auth_user() -> Generator[str, None, None]:
    app.dependency_overrides[get_current_user_id] = lambda: USER_ID
    yield USER_ID
    app.dependency_overrides.pop(get_current_user_id, None)


@pytest.fixture
def canned_extractor() -> Generator[CannedReceiptExtractor, None, None]:
    extractor = CannedReceiptExtractor()
    app.dependency_overrides[get_receipt_extractor] = lambda: extractor
    yield extractor
    app.dependency_overrides.pop(get_receipt_extractor, None)


def test_root_and_health():
    assert client.get("/").json() == {"message": "Welcome to SmartBooks AI API"}
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_requires_token():
    response = client.get("/api/dashboard/")
    assert response.status_code == 401
    response = client.get("/api/dashboard/", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_register(monkeypatch: pytest.MonkeyPatch):
    saved = []
    monkeypatch.setattr(dynamo, "get_user_by_email", lambda email: None)
    monkeypatch.setattr(dynamo, "put_user", lambda item: saved.append(item) or True)

    response = client.post("/api/auth/register", json={
        "email": "owner@example.com",
        "password": "secret1",
        "full_name": "Jane Owner",
        "business_name": "Owner Supplies",
    })

    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "owner@example.com"
    assert body["business_name"] == "Owner Supplies"
    assert "password_hash" not in body
    assert saved[0]["password_hash"] != "secret1"


def test_register_existing_user(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(dynamo, "get_user_by_email", lambda email: {"user_id": "x"})
    response = client.post("/api/auth/register", json={
        "email": "owner@example.com", "password": "secret1", "full_name": "Jane Owner",
    })
    assert response.status_code == 400


def test_login_and_profile(monkeypatch: pytest.MonkeyPatch):
    user = {
        "user_id": USER_ID,
        "email": "owner@example.com",
        "password_hash": get_password_hash("secret1"),
        "full_name": "Jane Owner",
        "business_name": None,
        "created_at": "2025-10-01T00:00:00",
    }
    monkeypatch.setattr(dynamo, "get_user_by_email", lambda email: user)
    monkeypatch.setattr(dynamo, "get_user_by_id", lambda user_id: user if user_id == USER_ID else None)

    bad = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "wrong"})
    assert bad.status_code == 401

    response = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "secret1"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["full_name"] == "Jane Owner"


def test_update_profile(monkeypatch: pytest.MonkeyPatch, auth_user: str):
    user = {"user_id": USER_ID, "email": "owner@example.com", "full_name": "Jane Owner"}
    monkeypatch.setattr(dynamo, "get_user_by_id", lambda user_id: user)
    monkeypatch.setattr(dynamo, "update_user", lambda user_id, updates: {**user, **updates})

    response = client.put("/api/auth/me", json={"business_name": "Jane's Hardware"})

    assert response.status_code == 200
    assert response.json()["business_name"] == "Jane's Hardware"
    assert client.put("/api/auth/me", json={}).status_code == 400


def test_update_profile_keeps_full_name(monkeypatch: pytest.MonkeyPatch, auth_user: str):
    user = {"user_id": USER_ID, "email": "owner@example.com", "full_name": "Jane Owner", "business_name": "Shop"}
    writes = []
    monkeypatch.setattr(dynamo, "get_user_by_id", lambda user_id: user)
    monkeypatch.setattr(dynamo, "update_user", lambda user_id, updates: writes.append(updates) or {**user, **updates})

    assert client.put("/api/auth/me", json={"full_name": None}).status_code == 400
    assert writes == []

    response = client.put("/api/auth/me", json={"full_name": None, "business_name": None})

    assert response.status_code == 200
    assert response.json()["full_name"] == "Jane Owner"
    assert response.json()["business_name"] is None
    assert writes == [{"business_name": None}]


def test_real_token_is_accepted(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(dynamo, "get_transactions_for_user", lambda user_id, **kwargs: [])
    token = create_access_token({"sub": USER_ID})
    response = client.get("/api/dashboard/insights", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200


def test_create_transaction(monkeypatch: pytest.MonkeyPatch, auth_user: str):
    saved = []
    monkeypatch.setattr(dynamo, "put_transaction", lambda item: saved.append(item) or True)

    response = client.post("/api/transactions/", json={
        "amount": 2500,
        "type": "expense",
        "category": "Supplies",
        "description": "Payment to Supplies Store Ltd.",
        "transaction_date": "2025-10-20",
    })

    assert response.status_code == 201
    body = response.json()
    assert body["type"] == "expense"
    assert body["amount"] == 2500
    assert saved[0]["user_id"] == USER_ID
    assert saved[0]["transaction_date"] == "2025-10-20"
    assert saved[0]["transaction_id"] == body["transaction_id"]


@pytest.mark.parametrize("payload", [
    {"amount": 0, "type": "expense", "category": "Rent"},
    {"amount": -5, "type": "expense", "category": "Rent"},
    {"amount": 10, "type": "refund", "category": "Rent"},
    {"amount": 10, "type": "income", "category": ""},
])
def test_create_transaction_validation(payload, auth_user: str):
    assert client.post("/api/transactions/", json=payload).status_code == 422


def test_list_transactions_with_filters(monkeypatch: pytest.MonkeyPatch, auth_user: str):
    calls = []

    def fake_query(user_id, **kwargs):
        calls.append((user_id, kwargs))
        return [t for t in stored_transactions if t["type"] == "expense"]

    monkeypatch.setattr(dynamo, "get_transactions_for_user", fake_query)

    response = client.get("/api/transactions/", params={"type": "expense", "month": "2025-10"})

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 3
    assert body["summary"] == {"total_income": 0.0, "total_expenses": 22700.0, "balance": -22700.0}
    assert calls == [(USER_ID, {"month": "2025-10", "transaction_type": "expense", "category": None})]


def test_list_transactions_rejects_bad_month(auth_user: str):
    assert client.get("/api/transactions/", params={"month": "October"}).status_code == 422


def test_categories(auth_user: str):
    body = client.get("/api/transactions/categories").json()
    assert "Rent" in body["expense"]
    assert "Sales" in body["income"]


def test_get_update_delete_transaction(monkeypatch: pytest.MonkeyPatch, auth_user: str):
    monkeypatch.setattr(dynamo, "get_transaction", lambda user_id, tid: stored_transactions[0] if tid == "t1" else None)
    monkeypatch.setattr(
        dynamo, "update_transaction",
        lambda user_id, tid, updates: {**stored_transactions[0], **updates} if tid == "t1" else None,
    )
    monkeypatch.setattr(dynamo, "delete_transaction", lambda user_id, tid: tid == "t1")

    assert client.get("/api/transactions/t1").json()["category"] == "Services"
    assert client.get("/api/transactions/missing").status_code == 404

    updated = client.put("/api/transactions/t1", json={"amount": 19000})
    assert updated.status_code == 200
    assert updated.json()["amount"] == 19000
    assert client.put("/api/transactions/missing", json={"amount": 1}).status_code == 404
    assert client.put("/api/transactions/t1", json={}).status_code == 400

    assert client.delete("/api/transactions/t1").status_code == 204
    assert client.delete("/api/transactions/missing").status_code == 404


def test_demo_data(monkeypatch: pytest.MonkeyPatch, auth_user: str):
    saved = []
    monkeypatch.setattr(dynamo, "has_transactions", lambda user_id: False)
    monkeypatch.setattr(dynamo, "put_transactions", lambda items: saved.extend(items) or True)

    response = client.post("/api/transactions/demo")

    assert response.status_code == 201
    assert response.json()["count"] == 5
    assert {item["category"] for item in saved} == {"Sales", "Services", "Supplies", "Utilities", "Rent"}
    assert all(item["user_id"] == USER_ID for item in saved)

    monkeypatch.setattr(dynamo, "has_transactions", lambda user_id: True)
    assert client.post("/api/transactions/demo").status_code == 409


def test_dashboard(monkeypatch: pytest.MonkeyPatch, auth_user: str):
    monkeypatch.setattr(dynamo, "get_transactions_for_user", lambda user_id, **kwargs: list(stored_transactions))

    response = client.get("/api/dashboard/")

    assert response.status_code == 200
    body = response.json()
    assert body["summary"] == {"total_income": 43500.0, "total_expenses": 22700.0, "balance": 20800.0}
    assert [i["title"] for i in body["insights"]] == [
        "Category Spending Alert",
        "Strong Savings Rate",
        "Income Pattern Analysis",
    ]
    assert body["insights"][0]["type"] == "tip"
    assert "Rent represents 66%" in body["insights"][0]["message"]
    assert "KES 15,000.00" in body["insights"][0]["message"]
    assert body["insights"][2]["message"].startswith("Your average income per transaction is KES 21,750.00")
    assert len(body["recent_transactions"]) == 5
    assert body["charts"]["top_categories"][0] == {"category": "Rent", "amount": 15000}
    assert body["charts"]["monthly"] == [{"month": "Oct 2025", "income": 43500.0, "expenses": 22700.0}]


def test_dashboard_for_new_user(monkeypatch: pytest.MonkeyPatch, auth_user: str):
    monkeypatch.setattr(dynamo, "get_transactions_for_user", lambda user_id, **kwargs: [])

    body = client.get("/api/dashboard/insights").json()

    assert body["count"] == 1
    assert body["insights"][0]["title"] == "Welcome to SmartBooks AI"


def test_receipt_upload(monkeypatch: pytest.MonkeyPatch, auth_user: str, canned_extractor: CannedReceiptExtractor):
    saved = []
    monkeypatch.setattr(
        receipts_router, "upload_receipt_image",
        lambda user_id, receipt_id, filename, content, content_type: f"receipts/{user_id}/{receipt_id}/{filename}",
    )
    monkeypatch.setattr(dynamo, "put_receipt", lambda item: saved.append(item) or True)

    response = client.post(
        "/api/receipts/",
        files={"file": ("fuel.png", b"\x89PNG fake image", "image/png")},
    )

    assert response.status_code == 201
    body = response.json()
    expected = canned_extractor.extract("fuel.png", b"")
    assert body["extracted_amount"] == expected.amount
    assert body["vendor"] == expected.vendor
    assert body["prefill"] == expected.to_prefill()
    assert body["file_path"].startswith(f"receipts/{USER_ID}/")
    assert saved[0]["confidence_score"] == expected.confidence


def test_receipt_upload_rejects_wrong_type(auth_user: str, canned_extractor: CannedReceiptExtractor):
    response = client.post(
        "/api/receipts/",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )
    assert response.status_code == 415


def test_receipt_removed_from_s3_when_record_fails(
    monkeypatch: pytest.MonkeyPatch, auth_user: str, canned_extractor: CannedReceiptExtractor
):
    deleted = []
    monkeypatch.setattr(
        receipts_router, "upload_receipt_image",
        lambda user_id, receipt_id, filename, content, content_type: f"receipts/{user_id}/{receipt_id}/{filename}",
    )
    monkeypatch.setattr(receipts_router, "delete_receipt_image", lambda key: deleted.append(key) or True)
    monkeypatch.setattr(dynamo, "put_receipt", lambda item: False)

    response = client.post("/api/receipts/", files={"file": ("fuel.png", b"\x89PNG fake image", "image/png")})

    assert response.status_code == 500
    assert len(deleted) == 1
    assert deleted[0].startswith(f"receipts/{USER_ID}/") and deleted[0].endswith("/fuel.png")


class FakeTable:
    def __init__(self, name, error=None):
        self.name = name
        self.error = error

    def scan(self, Limit):
        if self.error:
            raise self.error


class FakeS3:
    def __init__(self, error=None):
        self.error = error

    def head_bucket(self, Bucket):
        if self.error:
            raise self.error


def test_status_reports_healthy_and_degraded(monkeypatch: pytest.MonkeyPatch):
    for attr in ("users_table", "transactions_table", "receipts_table"):
        monkeypatch.setattr(dynamo, attr, FakeTable(attr))
    monkeypatch.setattr(receipts_utils, "s3", FakeS3())

    body = client.get("/api/status").json()

    assert body["overall_status"] == "healthy"
    assert body["services"]["dynamodb"]["connected"] is True
    assert body["services"]["s3"]["status"] == "accessible"

    missing = ClientError({"Error": {"Code": "NoSuchBucket", "Message": "missing"}}, "HeadBucket")
    monkeypatch.setattr(receipts_utils, "s3", FakeS3(error=missing))

    body = client.get("/api/status").json()

    assert body["overall_status"] == "degraded"
    assert body["services"]["s3"]["connected"] is False
    assert body["services"]["s3"]["error"].startswith("NoSuchBucket")
    assert body["services"]["dynamodb"]["connected"] is True
