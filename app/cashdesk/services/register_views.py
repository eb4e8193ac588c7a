from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from app.cashdesk.core.error_catalog import ErrorCatalog, NotFoundError, ValidationError
from app.cashdesk.core.logging import log_json
from app.cashdesk.core.money import money
from app.cashdesk.db.models import CashRegister, Payment, RegisterStatus
from app.cashdesk.repos.cash_registers import CashRegisterQueryFilters, CashRegisterRepository
from app.cashdesk.repos.payments import PaymentRepository
from app.cashdesk.services.reconciliation import RegisterSummary, summarize_payments

logger = logging.getLogger("cashdesk.views")


@dataclass(frozen=True)
class SessionView:
    register: CashRegister
    current_balance: Decimal
    summary: RegisterSummary | None
    summary_available: bool
    summary_error: str | None = None
    payments: list[Payment] = field(default_factory=list)


class RegisterViewService:
    """Read-only projections combining a register with its ledger."""

    def __init__(self, db):
        self.registers = CashRegisterRepository(db)
        self.payments = PaymentRepository(db)

    def get_session_view(self, register_id) -> SessionView:
        register = self.registers.get_by_id(register_id)
        if register is None:
            raise NotFoundError(details={"message": "cash register not found", "cash_register_id": str(register_id)})

        try:
            payments = self.payments.find_by_register(register.id)
        except SQLAlchemyError as exc:
            self.registers.db.rollback()
            log_json(
                logger,
                {
                    "event": "register_summary_unavailable",
                    "cash_register_id": str(register.id),
                    "error": exc.__class__.__name__,
                },
            )
            return SessionView(
                register=register,
                current_balance=money(register.current_balance),
                summary=None,
                summary_available=False,
                summary_error=ErrorCatalog.SUMMARY_UNAVAILABLE.code,
            )

        summary = summarize_payments(register, payments)
        if register.status == RegisterStatus.OPEN.value:
            current_balance = summary.expected_balance
        else:
            current_balance = money(register.current_balance)
        return SessionView(
            register=register,
            current_balance=current_balance,
            summary=summary,
            summary_available=True,
            payments=list(payments),
        )

    def list_sessions(self, filters: CashRegisterQueryFilters) -> tuple[list[CashRegister], int]:
        if filters.status and filters.status not in {status.value for status in RegisterStatus}:
            raise ValidationError(details={"message": "invalid status", "field": "status"})
        if filters.opened_from and filters.opened_to and filters.opened_from > filters.opened_to:
            raise ValidationError(details={"message": "start_date must not be after end_date", "field": "start_date"})
        return self.registers.list_registers(filters)
