import json
import logging


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["trace_id"]
    assert response.headers["X-Trace-ID"] == payload["trace_id"]


def test_ready_checks_database(client):
    response = client.get("/ready")
    assert response.status_code == 200
    assert response.json()["status"] == "ready"


def test_caller_trace_id_is_echoed(client):
    response = client.get("/health", headers={"X-Trace-ID": "trace-abc"})
    assert response.headers["X-Trace-ID"] == "trace-abc"
    assert response.json()["trace_id"] == "trace-abc"


def test_request_log_carries_latency_and_db_time(client, caplog):
    caplog.set_level(logging.INFO, logger="cashdesk.request")
    client.get("/ready")

    payloads = [json.loads(record.getMessage()) for record in caplog.records if record.name == "cashdesk.request"]
    assert payloads
    assert payloads[-1]["event"] == "http_request"
    assert payloads[-1]["route"] == "/ready"
    assert payloads[-1]["status_code"] == 200
    assert payloads[-1]["db_time_ms"] is not None


def test_domain_events_are_logged(client, caplog):
    caplog.set_level(logging.INFO, logger="cashdesk.registers")
    client.post("/cash-registers/open", json={"opening_balance": "5.00", "opened_by": "op-1"})

    events = [json.loads(record.getMessage()) for record in caplog.records if record.name == "cashdesk.registers"]
    assert [event["event"] for event in events] == ["cash_register_opened"]
    assert events[0]["opening_balance"] == "5.00"


def test_routing_errors_use_the_error_envelope(client):
    missing = client.get("/no-such-route", headers={"X-Trace-ID": "trace-404"})
    assert missing.status_code == 404
    assert missing.json() == {"code": "NOT_FOUND", "message": "Not Found", "details": None, "trace_id": "trace-404"}

    wrong_method = client.delete("/health")
    assert wrong_method.status_code == 405
    assert wrong_method.json()["code"] == "METHOD_NOT_ALLOWED"
    assert wrong_method.json()["trace_id"] == wrong_method.headers["X-Trace-ID"]


def test_request_validation_errors_name_the_field(client):
    response = client.post("/cash-registers/open", json={"opened_by": "op-1"})
    assert response.status_code == 422
    errors = response.json()["details"]["errors"]
    assert errors[0]["field"] == "opening_balance"
    assert errors[0]["type"] == "missing"
