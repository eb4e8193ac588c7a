import uuid

from app.cashdesk.core.error_catalog import ErrorCatalog
from tests.cash_helpers import add_payment, balance_of, close_register, open_register


def _sale_and_expense(client, register_id: str) -> None:
    add_payment(client, register_id, type="sale", amount="50.00")
    add_payment(client, register_id, type="expense", amount="20.00")


def test_close_with_matching_count_has_no_discrepancy(client):
    register = open_register(client, "100.00")
    _sale_and_expense(client, register["id"])
    assert balance_of(client, register["id"]) == "130.00"

    response = close_register(client, register["id"], "130.00")
    assert response.status_code == 200
    payload = response.json()
    closed = payload["cash_register"]
    reconciliation = payload["reconciliation"]

    assert closed["status"] == "CLOSED"
    assert closed["closing_balance"] == "130.00"
    assert closed["current_balance"] == "130.00"
    assert closed["closed_by"] == "op-1"
    assert closed["closing_date"] is not None
    assert reconciliation["discrepancy"] == "0.00"
    assert reconciliation["discrepancy_type"] == "EVEN"
    assert reconciliation["summary"]["sales_total"] == "50.00"
    assert reconciliation["summary"]["expenses_total"] == "20.00"
    assert reconciliation["summary"]["expected_balance"] == "130.00"


def test_close_reports_shortage(client):
    register = open_register(client, "100.00")
    _sale_and_expense(client, register["id"])

    payload = close_register(client, register["id"], "125.00").json()
    assert payload["reconciliation"]["discrepancy"] == "-5.00"
    assert payload["reconciliation"]["discrepancy_type"] == "SHORTAGE"
    assert payload["cash_register"]["closing_discrepancy"] == "-5.00"
    assert "Cash difference: -5.00 (SHORTAGE)" in payload["cash_register"]["observations"]


def test_close_reports_surplus(client):
    register = open_register(client, "10.00")
    payload = close_register(client, register["id"], "12.50").json()
    assert payload["reconciliation"]["discrepancy"] == "2.50"
    assert payload["reconciliation"]["discrepancy_type"] == "SURPLUS"


def test_close_without_payments_expects_opening_balance(client):
    register = open_register(client, "75.00")

    payload = close_register(client, register["id"], "70.00").json()
    summary = payload["reconciliation"]["summary"]
    assert summary["expected_balance"] == "75.00"
    assert summary["sales_total"] == "0.00"
    assert summary["expenses_total"] == "0.00"
    assert summary["debt_payments_total"] == "0.00"
    assert summary["payment_count"] == 0
    assert payload["reconciliation"]["discrepancy"] == "-5.00"


def test_close_persists_snapshot(client):
    register = open_register(client, "100.00")
    _sale_and_expense(client, register["id"])
    add_payment(client, register["id"], type="debt_payment", amount="15.00", payment_method="pix")

    closed = close_register(client, register["id"], "145.00").json()["cash_register"]
    assert closed["closing_sales_total"] == "50.00"
    assert closed["closing_expenses_total"] == "20.00"
    assert closed["closing_debt_payments_total"] == "15.00"
    assert closed["closing_expected_balance"] == "145.00"
    assert closed["closing_discrepancy"] == "0.00"


def test_close_unknown_register_is_not_found(client):
    register = open_register(client, "100.00")

    response = close_register(client, str(uuid.uuid4()), "100.00")
    assert response.status_code == 404
    assert response.json()["code"] == ErrorCatalog.NOT_FOUND.code

    current = client.get("/cash-registers/current").json()
    assert current["id"] == register["id"]
    assert current["status"] == "OPEN"


def test_close_twice_is_invalid_state(client):
    register = open_register(client, "100.00")
    assert close_register(client, register["id"], "100.00").status_code == 200

    again = close_register(client, register["id"], "100.00")
    assert again.status_code == 409
    assert again.json()["code"] == ErrorCatalog.INVALID_STATE.code


def test_failed_close_leaves_register_open(client):
    register = open_register(client, "100.00")

    response = close_register(client, register["id"], "-1.00")
    assert response.status_code == 422

    current = client.get("/cash-registers/current").json()
    assert current["id"] == register["id"]
    assert current["status"] == "OPEN"


def test_close_allows_opening_a_new_register(client):
    first = open_register(client, "100.00")
    close_register(client, first["id"], "100.00")

    second = open_register(client, "40.00")
    assert second["id"] != first["id"]
    assert client.get("/cash-registers/current").json()["id"] == second["id"]


def test_close_idempotent_replay(client):
    register = open_register(client, "100.00")
    headers = {"Idempotency-Key": "close-1"}

    first = close_register(client, register["id"], "100.00", headers=headers)
    assert first.status_code == 200

    replay = close_register(client, register["id"], "100.00", headers=headers)
    assert replay.status_code == 200
    assert replay.json() == first.json()
    assert replay.headers.get("X-Idempotency-Result") == ErrorCatalog.IDEMPOTENCY_REPLAY.code
