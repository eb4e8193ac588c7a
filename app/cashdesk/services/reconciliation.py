from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.cashdesk.core.config import settings
from app.cashdesk.core.error_catalog import NotFoundError, ValidationError
from app.cashdesk.core.money import ZERO, money, to_money
from app.cashdesk.db.models import CashRegister, Payment, PaymentStatus, PaymentType, RegisterStatus
from app.cashdesk.repos.cash_registers import CashRegisterRepository
from app.cashdesk.repos.payments import PaymentRepository
from app.cashdesk.services.balance import balance_from, counts_toward_balance

SHORTAGE = "SHORTAGE"
SURPLUS = "SURPLUS"
EVEN = "EVEN"


@dataclass(frozen=True)
class RegisterSummary:
    cash_register_id: str
    opening_balance: Decimal
    sales_total: Decimal
    expenses_total: Decimal
    debt_payments_total: Decimal
    expected_balance: Decimal
    sales_by_method: dict[str, Decimal] = field(default_factory=dict)
    debt_payments_by_method: dict[str, Decimal] = field(default_factory=dict)
    expenses_by_category: dict[str, Decimal] = field(default_factory=dict)
    payment_count: int = 0
    pending_count: int = 0
    cancelled_count: int = 0


@dataclass(frozen=True)
class ReconciliationResult:
    summary: RegisterSummary
    declared_closing_balance: Decimal
    discrepancy: Decimal
    discrepancy_type: str


@dataclass(frozen=True)
class DailySummary:
    day: date
    timezone: str
    register_count: int
    open_register_count: int
    opening_balance: Decimal
    current_balance: Decimal
    sales_total: Decimal
    expenses_total: Decimal
    debt_payments_total: Decimal
    sales_by_method: dict[str, Decimal]
    expenses_by_category: dict[str, Decimal]


def discrepancy_type(discrepancy: Decimal) -> str:
    if discrepancy < 0:
        return SHORTAGE
    if discrepancy > 0:
        return SURPLUS
    return EVEN


def summarize_payments(register: CashRegister, payments: Iterable[Payment]) -> RegisterSummary:
    """Group a register's payments by type.

    Only completed payments contribute to totals; pending and cancelled ones
    are counted so the caller can see they exist.
    """
    totals = {payment_type.value: ZERO for payment_type in PaymentType}
    sales_by_method: dict[str, Decimal] = defaultdict(lambda: ZERO)
    debts_by_method: dict[str, Decimal] = defaultdict(lambda: ZERO)
    expenses_by_category: dict[str, Decimal] = defaultdict(lambda: ZERO)
    payment_count = pending_count = cancelled_count = 0

    payments = list(payments)
    for payment in payments:
        payment_count += 1
        if payment.status == PaymentStatus.PENDING.value:
            pending_count += 1
        elif payment.status == PaymentStatus.CANCELLED.value:
            cancelled_count += 1
        if not counts_toward_balance(payment):
            continue
        amount = money(payment.amount)
        totals[payment.type] += amount
        if payment.type == PaymentType.SALE.value:
            sales_by_method[payment.payment_method] += amount
        elif payment.type == PaymentType.DEBT_PAYMENT.value:
            debts_by_method[payment.payment_method] += amount
        else:
            expenses_by_category[payment.category or "uncategorized"] += amount

    return RegisterSummary(
        cash_register_id=str(register.id),
        opening_balance=money(register.opening_balance),
        sales_total=totals[PaymentType.SALE.value],
        expenses_total=totals[PaymentType.EXPENSE.value],
        debt_payments_total=totals[PaymentType.DEBT_PAYMENT.value],
        expected_balance=balance_from(register.opening_balance, payments),
        sales_by_method=dict(sales_by_method),
        debt_payments_by_method=dict(debts_by_method),
        expenses_by_category=dict(expenses_by_category),
        payment_count=payment_count,
        pending_count=pending_count,
        cancelled_count=cancelled_count,
    )


def _resolve_timezone(timezone_name: str | None) -> ZoneInfo:
    try:
        return ZoneInfo(timezone_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(details={"message": "invalid timezone", "timezone": timezone_name}) from exc


class ReconciliationService:
    def __init__(self, db):
        self.registers = CashRegisterRepository(db)
        self.payments = PaymentRepository(db)

    def _get_register(self, register_id) -> CashRegister:
        register = self.registers.get_by_id(register_id)
        if register is None:
            raise NotFoundError(details={"message": "cash register not found", "cash_register_id": str(register_id)})
        return register

    def summarize(self, register_id) -> RegisterSummary:
        register = self._get_register(register_id)
        return summarize_payments(register, self.payments.find_by_register(register.id))

    def reconcile(self, register_id, declared_closing_balance) -> ReconciliationResult:
        declared = to_money(declared_closing_balance, "closing_balance")
        summary = self.summarize(register_id)
        discrepancy = declared - summary.expected_balance
        return ReconciliationResult(
            summary=summary,
            declared_closing_balance=declared,
            discrepancy=discrepancy,
            discrepancy_type=discrepancy_type(discrepancy),
        )

    def daily_summary(self, day: date, timezone_name: str | None = None) -> DailySummary:
        tz = _resolve_timezone(timezone_name or settings.DAILY_SUMMARY_TIMEZONE)
        start = datetime.combine(day, time.min, tzinfo=tz)
        end = start + timedelta(days=1)
        registers = self.registers.list_opened_between(start, end)
        if not registers:
            raise NotFoundError(details={"message": "no cash register found for this date", "day": day.isoformat()})

        payments_by_register: dict[str, list[Payment]] = defaultdict(list)
        for payment in self.payments.find_by_registers([register.id for register in registers]):
            payments_by_register[str(payment.cash_register_id)].append(payment)

        opening_balance = current_balance = ZERO
        sales_total = expenses_total = debt_payments_total = ZERO
        sales_by_method: dict[str, Decimal] = defaultdict(lambda: ZERO)
        expenses_by_category: dict[str, Decimal] = defaultdict(lambda: ZERO)
        open_count = 0
        for register in registers:
            summary = summarize_payments(register, payments_by_register[str(register.id)])
            if register.status == RegisterStatus.OPEN.value:
                open_count += 1
                current_balance += summary.expected_balance
            else:
                current_balance += money(register.current_balance)
            opening_balance += summary.opening_balance
            sales_total += summary.sales_total
            expenses_total += summary.expenses_total
            debt_payments_total += summary.debt_payments_total
            for method, amount in summary.sales_by_method.items():
                sales_by_method[method] += amount
            for category, amount in summary.expenses_by_category.items():
                expenses_by_category[category] += amount

        return DailySummary(
            day=day,
            timezone=str(tz),
            register_count=len(registers),
            open_register_count=open_count,
            opening_balance=opening_balance,
            current_balance=current_balance,
            sales_total=sales_total,
            expenses_total=expenses_total,
            debt_payments_total=debt_payments_total,
            sales_by_method=dict(sales_by_method),
            expenses_by_category=dict(expenses_by_category),
        )
