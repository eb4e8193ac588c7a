from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import OperationalError

from app.cashdesk.core.error_catalog import ErrorCatalog
from app.cashdesk.db.models import CashRegister
from app.cashdesk.repos.payments import PaymentRepository
from app.cashdesk.services.reconciliation import ReconciliationService
from app.cashdesk.services.register_views import RegisterViewService
from tests.cash_helpers import add_payment, close_register, open_register


def _opening_day(register: dict) -> str:
    return date.fromisoformat(register["opening_date"][:10]).isoformat()


def test_view_combines_register_summary_and_payments(client):
    register = open_register(client, "100.00")
    add_payment(client, register["id"], type="sale", amount="50.00")
    add_payment(client, register["id"], type="expense", amount="20.00")

    response = client.get(f"/cash-registers/{register['id']}")
    assert response.status_code == 200
    view = response.json()
    assert view["summary_available"] is True
    assert view["summary_error"] is None
    assert view["cash_register"]["id"] == register["id"]
    assert view["cash_register"]["current_balance"] == "130.00"
    assert view["summary"]["expected_balance"] == "130.00"
    assert len(view["payments"]) == 2


def test_view_and_summary_are_repeatable(client):
    register = open_register(client, "100.00")
    add_payment(client, register["id"], type="sale", amount="12.34")

    first_view = client.get(f"/cash-registers/{register['id']}").json()
    second_view = client.get(f"/cash-registers/{register['id']}").json()
    assert first_view == second_view

    first_summary = client.get(f"/cash-registers/{register['id']}/summary").json()
    second_summary = client.get(f"/cash-registers/{register['id']}/summary").json()
    assert first_summary == second_summary


def test_view_of_unknown_register_is_not_found(client):
    response = client.get("/cash-registers/6f1c2a52-8d0e-4a57-9a71-1f3c1d0a0b99")
    assert response.status_code == 404
    assert response.json()["code"] == ErrorCatalog.NOT_FOUND.code


def test_view_degrades_when_ledger_is_unavailable(client, monkeypatch):
    register = open_register(client, "100.00")
    add_payment(client, register["id"], type="sale", amount="50.00")

    def broken_ledger(self, cash_register_id):
        raise OperationalError("SELECT payments", {}, Exception("ledger unavailable"))

    monkeypatch.setattr(PaymentRepository, "find_by_register", broken_ledger)

    response = client.get(f"/cash-registers/{register['id']}")
    assert response.status_code == 200
    view = response.json()
    assert view["cash_register"]["id"] == register["id"]
    assert view["cash_register"]["status"] == "OPEN"
    assert view["summary"] is None
    assert view["summary_available"] is False
    assert view["summary_error"] == ErrorCatalog.SUMMARY_UNAVAILABLE.code
    assert view["payments"] == []


def test_degraded_view_rolls_back_the_failed_read(client, db_session, monkeypatch):
    register = open_register(client, "100.00")

    def broken_ledger(self, cash_register_id):
        raise OperationalError("SELECT payments", {}, Exception("ledger unavailable"))

    monkeypatch.setattr(PaymentRepository, "find_by_register", broken_ledger)
    rollbacks = []
    real_rollback = db_session.rollback

    def tracking_rollback():
        rollbacks.append(True)
        real_rollback()

    monkeypatch.setattr(db_session, "rollback", tracking_rollback)

    view = RegisterViewService(db_session).get_session_view(register["id"])
    assert rollbacks == [True]
    assert view.summary_available is False
    assert view.current_balance == Decimal("100.00")
    assert db_session.scalar(select(func.count()).select_from(CashRegister)) == 1


def test_summary_outside_the_view_surfaces_store_errors(client, db_session, monkeypatch):
    register = open_register(client, "100.00")

    def broken_ledger(self, cash_register_id):
        raise OperationalError("SELECT payments", {}, Exception("ledger unavailable"))

    monkeypatch.setattr(PaymentRepository, "find_by_register", broken_ledger)

    with pytest.raises(OperationalError):
        ReconciliationService(db_session).summarize(register["id"])


def test_list_registers_newest_first_with_filters(client):
    first = open_register(client, "10.00")
    close_register(client, first["id"], "10.00")
    second = open_register(client, "20.00")

    listing = client.get("/cash-registers").json()
    assert listing["total"] == 2
    assert [row["id"] for row in listing["rows"]] == [second["id"], first["id"]]

    closed = client.get("/cash-registers", params={"status": "CLOSED"}).json()
    assert closed["total"] == 1
    assert closed["rows"][0]["id"] == first["id"]

    page = client.get("/cash-registers", params={"limit": 1, "offset": 1}).json()
    assert page["total"] == 2
    assert [row["id"] for row in page["rows"]] == [first["id"]]

    invalid = client.get("/cash-registers", params={"status": "PAUSED"})
    assert invalid.status_code == 422


def test_daily_summary_aggregates_the_day(client, db_session):
    first = open_register(client, "100.00")
    add_payment(client, first["id"], type="sale", amount="50.00", payment_method="cash")
    add_payment(client, first["id"], type="expense", amount="10.00", category="supplies")
    close_register(client, first["id"], "140.00")

    second = open_register(client, "40.00")
    add_payment(client, second["id"], type="sale", amount="20.00", payment_method="pix")

    db_session.execute(update(CashRegister).values(opening_date=datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)))
    db_session.commit()

    response = client.get("/cash-registers/daily-summary", params={"day": "2026-03-10"})
    assert response.status_code == 200
    summary = response.json()
    assert summary["day"] == "2026-03-10"
    assert summary["register_count"] == 2
    assert summary["open_register_count"] == 1
    assert summary["opening_balance"] == "140.00"
    assert summary["sales_total"] == "70.00"
    assert summary["expenses_total"] == "10.00"
    assert summary["current_balance"] == "200.00"
    assert summary["sales_by_method"] == {"cash": "50.00", "pix": "20.00"}
    assert summary["expenses_by_category"] == {"supplies": "10.00"}
    assert summary["timezone"] == "UTC"


def test_daily_summary_without_registers_is_not_found(client):
    response = client.get("/cash-registers/daily-summary", params={"day": "2001-01-01"})
    assert response.status_code == 404


def test_daily_summary_rejects_unknown_timezone(client):
    register = open_register(client, "10.00")
    response = client.get(
        "/cash-registers/daily-summary",
        params={"day": _opening_day(register), "timezone": "Mars/Olympus"},
    )
    assert response.status_code == 422
