from fastapi.testclient import TestClient
from app.main import app

client = TestClient(app)

def _mint_token(user_id="dev-user", company_id=1, **extra) -> str:
    r = client.post("/auth/token", json={"user_id": user_id, "company_id": company_id, **extra})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]

def _headers(token: str, company_id=1) -> dict:
    return {"Authorization": f"Bearer {token}", "X-Company-Id": str(company_id)}

def test_missing_authorization_header_401():
    r = client.get("/payroll/runs", headers={"X-Company-Id": "1"})
    assert r.status_code == 401

def test_wrong_scheme_401():
    token = _mint_token()
    r = client.get("/payroll/runs", headers={"Authorization": f"Basic {token}", "X-Company-Id": "1"})
    assert r.status_code == 401

def test_garbled_bearer_token_401():
    r = client.get("/payroll/runs", headers={"Authorization": "Bearer not-a-real-token", "X-Company-Id": "1"})
    assert r.status_code == 401

def test_missing_company_header_403():
    token = _mint_token()
    r = client.get("/payroll/runs", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 403
    assert "X-Company-Id" in r.text

def test_company_mismatch_403():
    token = _mint_token(company_id=1)
    r = client.get("/payroll/runs", headers=_headers(token, company_id=2))
    assert r.status_code == 403
    assert "Company mismatch" in r.text

def test_additional_company_claims_allow_switching():
    token = _mint_token(company_id=1, company_ids=[2])
    r = client.get("/payroll/runs", headers=_headers(token, company_id=2))
    assert r.status_code == 200, r.text
    r = client.get("/payroll/runs", headers=_headers(token, company_id=3))
    assert r.status_code == 403

def test_missing_role_claim_defaults_to_manager():
    token = _mint_token()
    r = client.get("/payroll/settings", headers=_headers(token))
    assert r.status_code == 200, r.text

def test_employee_role_cannot_manage_payroll():
    token = _mint_token(role="EMPLOYEE")
    r = client.get("/payroll/runs", headers=_headers(token))
    assert r.status_code == 403
    assert "Insufficient role" in r.text

def test_unknown_role_claim_403():
    token = _mint_token(role="CONTRACTOR")
    r = client.get("/payroll/runs", headers=_headers(token))
    assert r.status_code == 403

def test_token_endpoint_hidden_outside_dev(monkeypatch):
    monkeypatch.setenv("ENV", "production")
    r = client.post("/auth/token", json={"user_id": "x", "company_id": 1})
    assert r.status_code == 404

def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
