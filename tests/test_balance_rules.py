import itertools
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.cashdesk.core.error_catalog import ValidationError
from app.cashdesk.core.money import to_money
from app.cashdesk.db.models import Cents
from app.cashdesk.services.balance import balance_from, counts_toward_balance, signed_amount
from app.cashdesk.services.reconciliation import discrepancy_type


def _payment(type_: str, amount: str, status: str = "completed"):
    return SimpleNamespace(type=type_, amount=Decimal(amount), status=status, payment_method="cash", category=None)


def test_balance_does_not_depend_on_payment_order():
    payments = [
        _payment("sale", "19.99"),
        _payment("expense", "4.50"),
        _payment("debt_payment", "0.01"),
        _payment("sale", "7.00", status="cancelled"),
        _payment("sale", "3.00", status="pending"),
    ]
    balances = {balance_from(Decimal("10.00"), order) for order in itertools.permutations(payments)}
    assert balances == {Decimal("25.50")}


def test_only_completed_payments_count():
    assert counts_toward_balance(_payment("sale", "1.00"))
    assert not counts_toward_balance(_payment("sale", "1.00", status="pending"))
    assert not counts_toward_balance(_payment("sale", "1.00", status="cancelled"))


def test_signed_amount_by_type():
    assert signed_amount(_payment("sale", "2.00")) == Decimal("2.00")
    assert signed_amount(_payment("debt_payment", "2.00")) == Decimal("2.00")
    assert signed_amount(_payment("expense", "2.00")) == Decimal("-2.00")
    with pytest.raises(ValueError):
        signed_amount(_payment("refund", "2.00"))


def test_cents_are_exact():
    payments = [_payment("sale", "0.10") for _ in range(3)]
    assert balance_from(Decimal("0.00"), payments) == Decimal("0.30")


@pytest.mark.parametrize("value", [0.1, "1.005", "abc", None, "NaN", "1e30", "100000000000000000000.00"])
def test_to_money_rejects_imprecise_values(value):
    with pytest.raises(ValidationError):
        to_money(value, "amount")


def test_to_money_normalizes_to_two_places():
    assert to_money("1.5", "amount") == Decimal("1.50")
    assert to_money(3, "amount") == Decimal("3.00")


def test_discrepancy_type():
    assert discrepancy_type(Decimal("-0.01")) == "SHORTAGE"
    assert discrepancy_type(Decimal("0.00")) == "EVEN"
    assert discrepancy_type(Decimal("0.01")) == "SURPLUS"


def test_cents_column_type_stores_minor_units():
    column_type = Cents()
    assert column_type.process_bind_param(Decimal("12.34"), None) == 1234
    assert column_type.process_result_value(1234, None) == Decimal("12.34")
    with pytest.raises(ValueError):
        column_type.process_bind_param(Decimal("1.234"), None)
