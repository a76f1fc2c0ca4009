from decimal import Decimal

from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)


def test_employees_create_list_get_and_cross_company_isolation(auth_headers):
    company_1 = 11001
    company_2 = 11002

    create = client.post(
        "/employees",
        headers=auth_headers(company_1),
        json={"name": "Alice", "user_id": "alice", "hourly_rate": "27.50"},
    )
    assert create.status_code == 200, create.text
    created = create.json()
    employee_id = created["id"]
    assert created["company_id"] == company_1
    assert created["name"] == "Alice"
    assert created["user_id"] == "alice"
    assert Decimal(created["hourly_rate"]) == Decimal("27.50")
    assert created["is_active"] is True

    listing = client.get("/employees", headers=auth_headers(company_1))
    assert listing.status_code == 200
    assert [row["id"] for row in listing.json()] == [employee_id]

    get_own = client.get(f"/employees/{employee_id}", headers=auth_headers(company_1))
    assert get_own.status_code == 200
    assert get_own.json()["id"] == employee_id

    get_other = client.get(f"/employees/{employee_id}", headers=auth_headers(company_2))
    assert get_other.status_code == 404
    assert get_other.json()["kind"] == "NotFound"

    assert client.get("/employees", headers=auth_headers(company_2)).json() == []


def test_employee_without_rate_is_allowed(auth_headers):
    r = client.post("/employees", headers=auth_headers(1), json={"name": "Bo"})
    assert r.status_code == 200
    assert r.json()["hourly_rate"] is None


def test_negative_rate_rejected(auth_headers):
    r = client.post("/employees", headers=auth_headers(1), json={"name": "Bo", "hourly_rate": "-1"})
    assert r.status_code == 422


def test_employee_role_cannot_manage_employees(auth_headers):
    r = client.get("/employees", headers=auth_headers(1, user_id="emp-1", role="EMPLOYEE"))
    assert r.status_code == 403
