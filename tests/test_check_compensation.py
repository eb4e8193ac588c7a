from app.cashdesk.core.error_catalog import ErrorCatalog
from tests.cash_helpers import add_payment, balance_of, cancel_payment, close_register, open_register, summary_of

CHECK = {"bank": "001", "number": "000123", "holder": "Maria Souza"}


def _compensate(client, payment_id: str, status: str, reason: str | None = None):
    payload = {"status": status, "updated_by": "finance-1"}
    if reason is not None:
        payload["rejection_reason"] = reason
    return client.post(f"/payments/{payment_id}/check-compensation", json=payload)


def test_check_payment_requires_check_data(client):
    register = open_register(client, "100.00")
    response = add_payment(client, register["id"], payment_method="check", expected_status=422)
    assert response["details"]["field"] == "check"


def test_check_data_rejected_on_other_methods(client):
    register = open_register(client, "100.00")
    response = add_payment(client, register["id"], payment_method="cash", check=CHECK, expected_status=422)
    assert response["details"]["field"] == "check"


def test_check_stays_out_of_balance_until_compensated(client):
    register = open_register(client, "100.00")
    check = add_payment(client, register["id"], amount="50.00", payment_method="check", check=CHECK)

    assert check["status"] == "pending"
    assert check["check_compensation_status"] == "pending"
    assert check["check_number"] == "000123"
    assert balance_of(client, register["id"]) == "100.00"
    assert summary_of(client, register["id"])["pending_count"] == 1

    response = _compensate(client, check["id"], "compensated")
    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert response.json()["check_compensation_status"] == "compensated"
    assert balance_of(client, register["id"]) == "150.00"


def test_rejected_check_requires_reason_and_cancels_payment(client):
    register = open_register(client, "100.00")
    check = add_payment(client, register["id"], amount="50.00", payment_method="check", check=CHECK)

    missing_reason = _compensate(client, check["id"], "rejected")
    assert missing_reason.status_code == 422
    assert missing_reason.json()["details"]["field"] == "rejection_reason"

    rejected = _compensate(client, check["id"], "rejected", reason="insufficient funds")
    assert rejected.status_code == 200
    body = rejected.json()
    assert body["status"] == "cancelled"
    assert body["check_compensation_status"] == "rejected"
    assert body["check_rejection_reason"] == "insufficient funds"
    assert balance_of(client, register["id"]) == "100.00"


def test_compensation_is_resolved_only_once(client):
    register = open_register(client, "100.00")
    check = add_payment(client, register["id"], amount="50.00", payment_method="check", check=CHECK)
    _compensate(client, check["id"], "compensated")

    again = _compensate(client, check["id"], "rejected", reason="late")
    assert again.status_code == 409
    assert again.json()["code"] == ErrorCatalog.INVALID_STATE.code


def test_compensation_only_applies_to_checks(client):
    register = open_register(client, "100.00")
    sale = add_payment(client, register["id"], amount="50.00", payment_method="pix")

    response = _compensate(client, sale["id"], "compensated")
    assert response.status_code == 422
    assert response.json()["code"] == ErrorCatalog.VALIDATION_ERROR.code


def test_cancelled_pending_check_cannot_be_compensated(client):
    register = open_register(client, "100.00")
    check = add_payment(client, register["id"], amount="50.00", payment_method="check", check=CHECK)

    cancelled = cancel_payment(client, check["id"])
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert balance_of(client, register["id"]) == "100.00"

    late = _compensate(client, check["id"], "compensated")
    assert late.status_code == 409
    assert late.json()["code"] == ErrorCatalog.INVALID_STATE.code
    assert balance_of(client, register["id"]) == "100.00"
    assert summary_of(client, register["id"])["cancelled_count"] == 1


def test_compensation_after_close_changes_summary_but_not_snapshot(client):
    register = open_register(client, "100.00")
    check = add_payment(client, register["id"], amount="50.00", payment_method="check", check=CHECK)
    assert close_register(client, register["id"], "100.00").status_code == 200

    response = _compensate(client, check["id"], "compensated")
    assert response.status_code == 200
    assert response.json()["status"] == "completed"

    summary = summary_of(client, register["id"])
    assert summary["sales_total"] == "50.00"
    assert summary["expected_balance"] == "150.00"

    frozen = client.get(f"/cash-registers/{register['id']}").json()["cash_register"]
    assert frozen["closing_sales_total"] == "0.00"
    assert frozen["closing_expected_balance"] == "100.00"
    assert frozen["current_balance"] == "100.00"
    assert balance_of(client, register["id"]) == "100.00"
