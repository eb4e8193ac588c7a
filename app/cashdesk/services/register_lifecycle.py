from __future__ import annotations

import logging

from app.cashdesk.core.error_catalog import ConflictError, InvalidStateError, NotFoundError, ValidationError
from app.cashdesk.core.logging import log_json
from app.cashdesk.core.metrics import metrics
from app.cashdesk.core.money import ensure_non_negative
from app.cashdesk.db.models import CashRegister, RegisterStatus, utcnow
from app.cashdesk.repos.cash_registers import CashRegisterRepository
from app.cashdesk.services.reconciliation import ReconciliationResult, ReconciliationService

logger = logging.getLogger("cashdesk.registers")


def _require_operator(operator_id: str | None, field: str) -> str:
    if not operator_id or not operator_id.strip():
        raise ValidationError(details={"message": f"{field} is required", "field": field})
    return operator_id.strip()


def _closing_observations(observations: str | None, result: ReconciliationResult, previous: str | None) -> str:
    lines = [line for line in (previous, observations) if line]
    lines.append(f"Cash difference: {result.discrepancy} ({result.discrepancy_type})")
    return "\n".join(lines)


class RegisterLifecycleService:
    """Owns the OPEN -> CLOSED state machine of cash registers.

    At most one register may be OPEN at a time. The check performed before the
    insert only gives callers a fast answer; the guarantee comes from the
    repository's conditional insert, which fails for the loser of a race.
    """

    def __init__(self, db):
        self.db = db
        self.registers = CashRegisterRepository(db)
        self.reconciliation = ReconciliationService(db)

    def get_current(self) -> CashRegister:
        register = self.registers.find_open()
        if register is None:
            raise NotFoundError(details={"message": "no cash register is open"})
        return register

    def open(self, opening_balance, operator_id: str | None, observations: str | None = None) -> CashRegister:
        balance = ensure_non_negative(opening_balance, "opening_balance")
        operator = _require_operator(operator_id, "opened_by")

        existing = self.registers.find_open()
        if existing is not None:
            metrics.increment_open_conflict()
            raise ConflictError(
                details={"message": "a cash register is already open", "cash_register_id": str(existing.id)}
            )

        register = CashRegister(
            status=RegisterStatus.OPEN.value,
            opening_date=utcnow(),
            opening_balance=balance,
            current_balance=balance,
            opened_by=operator,
            observations=observations,
        )
        try:
            register = self.registers.atomic_create_open(register)
        except ConflictError:
            metrics.increment_open_conflict()
            raise

        log_json(
            logger,
            {
                "event": "cash_register_opened",
                "cash_register_id": str(register.id),
                "opening_balance": str(balance),
                "opened_by": operator,
            },
        )
        return register

    def close(
        self,
        register_id,
        declared_closing_balance,
        operator_id: str | None,
        observations: str | None = None,
    ) -> ReconciliationResult:
        declared = ensure_non_negative(declared_closing_balance, "closing_balance")
        operator = _require_operator(operator_id, "closed_by")

        register = self.registers.get_by_id(register_id, for_update=True)
        if register is None:
            raise NotFoundError(details={"message": "cash register not found", "cash_register_id": str(register_id)})
        if register.status != RegisterStatus.OPEN.value:
            raise InvalidStateError(
                details={"message": "cash register is already closed", "cash_register_id": str(register.id)}
            )

        result = self.reconciliation.reconcile(register.id, declared)
        summary = result.summary
        closed = self.registers.update_on_close(
            register.id,
            {
                "closing_date": utcnow(),
                "closing_balance": declared,
                "closed_by": operator,
                "current_balance": summary.expected_balance,
                "observations": _closing_observations(observations, result, register.observations),
                "closing_sales_total": summary.sales_total,
                "closing_expenses_total": summary.expenses_total,
                "closing_debt_payments_total": summary.debt_payments_total,
                "closing_expected_balance": summary.expected_balance,
                "closing_discrepancy": result.discrepancy,
                "updated_at": utcnow(),
            },
        )
        if closed is None:
            raise InvalidStateError(
                details={"message": "cash register was closed concurrently", "cash_register_id": str(register_id)}
            )

        metrics.record_register_closed(result.discrepancy_type)
        log_json(
            logger,
            {
                "event": "cash_register_closed",
                "cash_register_id": str(closed.id),
                "expected_balance": str(summary.expected_balance),
                "closing_balance": str(declared),
                "discrepancy": str(result.discrepancy),
                "discrepancy_type": result.discrepancy_type,
                "closed_by": operator,
            },
        )
        return result
