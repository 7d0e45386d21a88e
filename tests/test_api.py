import pytest
from fastapi.testclient import TestClient

from database import Database
from main import app, get_db
from periods import local_now, month_key


@pytest.fixture
def client(db: Database):
    def _get_db():
        session = db.session()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _signup(client: TestClient, email: str = "ada@example.com") -> dict:
    resp = client.post(
        "/api/auth/signup",
        json={"name": "Ada", "email": email, "password": "secret123"},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def test_health_needs_no_auth(client: TestClient):
    body = client.get("/api/health").json()
    assert body["status"] == "ok"
    assert body["environment"] == "development"


def test_protected_routes_require_token(client: TestClient):
    resp = client.get("/api/income")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "message": "Authentication required"}

    resp = client.get("/api/income/stats", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid or expired token"


def test_signup_login_me_logout(client: TestClient):
    user = _signup(client)
    assert user["email"] == "ada@example.com"
    assert "token" in client.cookies

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["data"] == user

    dup = client.post(
        "/api/auth/signup",
        json={"name": "Ada", "email": "ADA@example.com", "password": "secret123"},
    )
    assert dup.status_code == 409

    client.post("/api/auth/logout")
    client.cookies.clear()
    assert client.get("/api/auth/me").status_code == 401

    bad = client.post(
        "/api/auth/login", json={"email": "ada@example.com", "password": "wrong-one"}
    )
    assert bad.status_code == 401
    assert bad.json() == {"success": False, "message": "Invalid credentials"}

    good = client.post(
        "/api/auth/login", json={"email": "ada@example.com", "password": "secret123"}
    )
    assert good.status_code == 200
    assert client.get("/api/auth/me").json()["data"]["id"] == user["id"]


def test_signup_validation_errors_are_400(client: TestClient):
    resp = client.post(
        "/api/auth/signup", json={"name": "Ada", "email": "not-an-email", "password": "x"}
    )
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_income_endpoints(client: TestClient):
    _signup(client)

    created = client.post(
        "/api/income",
        json={"source": "Salary", "amount": 100, "frequency": "weekly"},
    )
    assert created.status_code == 201, created.text
    income = created.json()["data"]
    assert income["currency"] == "USD"
    assert income["amount"] == 100.0
    assert "createdAt" in income

    missing = client.post("/api/income", json={"source": "Salary", "amount": 10})
    assert missing.status_code == 400

    negative = client.post(
        "/api/income", json={"source": "X", "amount": -1, "frequency": "monthly"}
    )
    assert negative.status_code == 400

    stats = client.get("/api/income/stats").json()["data"]
    assert len(stats["series"]) == 6
    assert stats["series"][-1]["monthKey"] == month_key(local_now())
    assert stats["totalForCurrentMonth"] == 400.0

    now = local_now()
    events = client.get(
        f"/api/income/calendar?year={now.year}&month={now.month}"
    ).json()["data"]
    assert [e["id"] for e in events] == [str(income["id"])]
    assert events[0]["title"] == "Salary"
    assert events[0]["amount"] == 100.0

    assert client.get("/api/income/calendar?month=13").status_code == 400

    updated = client.put(
        f"/api/income/{income['id']}",
        json={"source": "Salary", "amount": 1200, "frequency": "annually", "currency": "EUR"},
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["currency"] == "EUR"
    assert client.get("/api/income/stats").json()["data"]["totalForCurrentMonth"] == 100.0

    assert client.get(f"/api/income/{income['id']}").status_code == 200
    assert client.delete(f"/api/income/{income['id']}").json()["success"] is True
    assert client.get(f"/api/income/{income['id']}").status_code == 404
    assert client.get("/api/income/not-an-id").status_code == 400


def test_expense_endpoints_are_owner_scoped(client: TestClient):
    _signup(client, "first@example.com")
    created = client.post(
        "/api/expenses",
        json={"category": "Groceries", "amount": "50.00", "notes": "market"},
    ).json()["data"]

    stats = client.get("/api/expenses/stats").json()["data"]
    assert stats["totalForCurrentMonth"] == 50.0
    assert [b["total"] for b in stats["series"][:-1]] == [0.0] * 5

    client.cookies.clear()
    _signup(client, "second@example.com")
    assert client.get("/api/expenses").json()["data"] == []
    assert client.get(f"/api/expenses/{created['id']}").status_code == 404
    assert client.delete(f"/api/expenses/{created['id']}").status_code == 404
    assert client.get("/api/expenses/stats").json()["data"]["totalForCurrentMonth"] == 0.0
