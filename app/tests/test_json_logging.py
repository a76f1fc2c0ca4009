import json
import logging

from app.core.logging import JsonFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("app.services.payroll_runs", logging.INFO, __file__, 1, "Payroll run generated", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_payload_carries_service_and_extra_fields(monkeypatch):
    monkeypatch.delenv("SERVICE_NAME", raising=False)

    payload = json.loads(JsonFormatter().format(_record(company_id=1, payroll_run_id="run-1")))

    assert payload["service"] == "field-payroll-engine"
    assert payload["level"] == "INFO"
    assert payload["message"] == "Payroll run generated"
    assert payload["extra"] == {"company_id": 1, "payroll_run_id": "run-1"}


def test_service_name_from_environment(monkeypatch):
    monkeypatch.setenv("SERVICE_NAME", "payroll-worker")

    payload = json.loads(JsonFormatter().format(_record()))

    assert payload["service"] == "payroll-worker"
    assert "extra" not in payload
