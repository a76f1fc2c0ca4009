import os
import tempfile
from pathlib import Path

_default_test_secret = "test-jwt-secret-for-pytest-only-0000000000000000"
if len(os.environ.get("JWT_SECRET", "")) < 32:
    os.environ["JWT_SECRET"] = _default_test_secret

os.environ.setdefault("ENV", "test")

_TEST_DIR = Path(tempfile.mkdtemp(prefix="field-payroll-tests-"))
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", f"sqlite:///{_TEST_DIR / 'payroll.db'}")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from app import database
from app import models  # noqa: F401
from app.database import Base, SessionLocal
from app.models.employee import Employee
from app.models.time_entry import TimeEntry


def _get_access_token(client, company_id: int, user_id: str = "test", role: str = "MANAGER") -> str:
    resp = client.post("/auth/token", json={"user_id": user_id, "company_id": company_id, "role": role})
    assert resp.status_code == 200, f"token request failed: {resp.status_code} {resp.text}"
    data = resp.json()
    assert isinstance(data, dict), f"token response not a JSON object: {data}"
    assert "access_token" in data, f"token response missing access_token: {data}"
    return data["access_token"]


@pytest.fixture
def auth_headers():
    from fastapi.testclient import TestClient

    from app.main import app

    client = TestClient(app)

    def _headers(company_id: int = 1, user_id: str = "manager-1", role: str = "MANAGER") -> dict:
        token = _get_access_token(client, company_id, user_id=user_id, role=role)
        return {"Authorization": f"Bearer {token}", "X-Company-Id": str(company_id)}

    return _headers


def _clear_tables() -> None:
    with database.engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="session", autouse=True)
def _prepare_test_database() -> None:
    database.configure_database()
    Base.metadata.create_all(database.engine)


@pytest.fixture(scope="function", autouse=True)
def _clear_tables_between_tests():
    _clear_tables()
    yield
    _clear_tables()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def employee_factory():
    def _create(company_id: int = 1, name: str = "Dana Field", user_id=None, hourly_rate="20.00") -> int:
        session = SessionLocal()
        try:
            row = Employee(
                company_id=company_id,
                user_id=user_id,
                name=name,
                hourly_rate=None if hourly_rate is None else Decimal(hourly_rate),
                is_active=True,
            )
            session.add(row)
            session.commit()
            return row.id
        finally:
            session.close()

    return _create


@pytest.fixture
def approved_entry_factory():
    """Insert an approved, unconsumed entry whose reported and approved times match."""

    def _create(company_id: int, employee_id: int, clock_in: datetime, clock_out: datetime) -> str:
        session = SessionLocal()
        try:
            entry = TimeEntry(
                time_entry_id=str(uuid4()),
                company_id=company_id,
                employee_id=employee_id,
                clock_in_reported_at=clock_in,
                clock_out_reported_at=clock_out,
                clock_in_approved_at=clock_in,
                clock_out_approved_at=clock_out,
                status="approved",
                approved_by="manager-1",
                approved_at=clock_out,
            )
            session.add(entry)
            session.commit()
            return entry.time_entry_id
        finally:
            session.close()

    return _create
