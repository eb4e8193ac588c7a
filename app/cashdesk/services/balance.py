from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from app.cashdesk.core.error_catalog import NotFoundError
from app.cashdesk.core.money import money
from app.cashdesk.db.models import Payment, PaymentStatus, PaymentType
from app.cashdesk.repos.cash_registers import CashRegisterRepository
from app.cashdesk.repos.payments import PaymentRepository

INFLOW_TYPES = frozenset({PaymentType.SALE.value, PaymentType.DEBT_PAYMENT.value})
OUTFLOW_TYPES = frozenset({PaymentType.EXPENSE.value})


def counts_toward_balance(payment: Payment) -> bool:
    # Pending checks only count once compensation flips them to completed.
    return payment.status == PaymentStatus.COMPLETED.value


def signed_amount(payment: Payment) -> Decimal:
    amount = money(payment.amount)
    if payment.type in INFLOW_TYPES:
        return amount
    if payment.type in OUTFLOW_TYPES:
        return -amount
    raise ValueError(f"unknown payment type: {payment.type}")


def balance_from(opening_balance: Decimal, payments: Iterable[Payment]) -> Decimal:
    total = money(opening_balance)
    for payment in payments:
        if counts_toward_balance(payment):
            total += signed_amount(payment)
    return total


class BalanceService:
    def __init__(self, db):
        self.registers = CashRegisterRepository(db)
        self.payments = PaymentRepository(db)

    def compute_current_balance(self, register_id) -> Decimal:
        register = self.registers.get_by_id(register_id)
        if register is None:
            raise NotFoundError(details={"message": "cash register not found", "cash_register_id": str(register_id)})
        return balance_from(register.opening_balance, self.payments.find_by_register(register.id))


__all__ = [
    "INFLOW_TYPES",
    "OUTFLOW_TYPES",
    "BalanceService",
    "balance_from",
    "counts_toward_balance",
    "signed_amount",
]
