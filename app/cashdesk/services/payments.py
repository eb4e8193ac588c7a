from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from app.cashdesk.core.error_catalog import InvalidStateError, NotFoundError, ValidationError
from app.cashdesk.core.logging import log_json
from app.cashdesk.core.metrics import metrics
from app.cashdesk.core.money import ensure_positive
from app.cashdesk.db.models import (
    CheckCompensationStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    RegisterStatus,
    utcnow,
)
from app.cashdesk.repos.cash_registers import CashRegisterRepository
from app.cashdesk.repos.payments import PaymentQueryFilters, PaymentRepository

logger = logging.getLogger("cashdesk.payments")


@dataclass(frozen=True)
class InstallmentsInput:
    current: int
    total: int
    value: Decimal


@dataclass(frozen=True)
class CheckInput:
    bank: str
    number: str
    holder: str | None = None


@dataclass(frozen=True)
class PaymentInput:
    cash_register_id: str
    type: str
    payment_method: str
    amount: Decimal
    created_by: str
    date: datetime | None = None
    category: str | None = None
    description: str | None = None
    installments: InstallmentsInput | None = None
    check: CheckInput | None = None


def _validate_choice(value: str, enum_cls, field: str) -> str:
    allowed = {member.value for member in enum_cls}
    if value not in allowed:
        raise ValidationError(details={"message": f"invalid {field}", "field": field, "allowed": sorted(allowed)})
    return value


def _validate_installments(installments: InstallmentsInput) -> Decimal:
    if installments.total < 1:
        raise ValidationError(details={"message": "installments total must be at least 1", "field": "installments.total"})
    if installments.current < 1 or installments.current > installments.total:
        raise ValidationError(
            details={"message": "installments current must be between 1 and total", "field": "installments.current"}
        )
    return ensure_positive(installments.value, "installments.value")


class PaymentService:
    """Creates and transitions ledger entries.

    The register must be OPEN when a payment is created. Cancellation and
    check compensation are accepted on closed registers too.
    """

    def __init__(self, db):
        self.db = db
        self.registers = CashRegisterRepository(db)
        self.payments = PaymentRepository(db)

    def get_payment(self, payment_id) -> Payment:
        payment = self.payments.get_by_id(payment_id)
        if payment is None:
            raise NotFoundError(details={"message": "payment not found", "payment_id": str(payment_id)})
        return payment

    def list_payments(self, filters: PaymentQueryFilters) -> tuple[list[Payment], int]:
        if filters.type:
            _validate_choice(filters.type, PaymentType, "type")
        if filters.status:
            _validate_choice(filters.status, PaymentStatus, "status")
        if filters.payment_method:
            _validate_choice(filters.payment_method, PaymentMethod, "payment_method")
        return self.payments.list_payments(filters)

    def create_payment(self, data: PaymentInput) -> Payment:
        payment_type = _validate_choice(data.type, PaymentType, "type")
        method = _validate_choice(data.payment_method, PaymentMethod, "payment_method")
        amount = ensure_positive(data.amount, "amount")
        if not data.created_by or not data.created_by.strip():
            raise ValidationError(details={"message": "created_by is required", "field": "created_by"})
        if data.category and payment_type != PaymentType.EXPENSE.value:
            raise ValidationError(details={"message": "category only applies to expenses", "field": "category"})

        is_check = method == PaymentMethod.CHECK.value
        if is_check and data.check is None:
            raise ValidationError(details={"message": "check data is required for check payments", "field": "check"})
        if not is_check and data.check is not None:
            raise ValidationError(details={"message": "check data only applies to check payments", "field": "check"})
        installments_value = _validate_installments(data.installments) if data.installments else None

        register = self.registers.get_by_id(data.cash_register_id, for_update=True)
        if register is None:
            raise NotFoundError(
                details={"message": "cash register not found", "cash_register_id": str(data.cash_register_id)}
            )
        if register.status != RegisterStatus.OPEN.value:
            raise InvalidStateError(
                details={"message": "cash register is closed", "cash_register_id": str(register.id)}
            )

        now = utcnow()
        payment = Payment(
            cash_register_id=register.id,
            type=payment_type,
            payment_method=method,
            amount=amount,
            # Checks stay out of the balance until compensation is confirmed.
            status=PaymentStatus.PENDING.value if is_check else PaymentStatus.COMPLETED.value,
            date=data.date or now,
            category=data.category,
            description=data.description,
            created_by=data.created_by.strip(),
            installments_current=data.installments.current if data.installments else None,
            installments_total=data.installments.total if data.installments else None,
            installments_value=installments_value,
            check_bank=data.check.bank if data.check else None,
            check_number=data.check.number if data.check else None,
            check_holder=data.check.holder if data.check else None,
            check_compensation_status=CheckCompensationStatus.PENDING.value if is_check else None,
            created_at=now,
            updated_at=now,
        )
        payment = self.payments.create(payment)
        log_json(
            logger,
            {
                "event": "payment_created",
                "payment_id": str(payment.id),
                "cash_register_id": str(register.id),
                "type": payment.type,
                "payment_method": payment.payment_method,
                "amount": str(payment.amount),
                "status": payment.status,
            },
        )
        return payment

    def cancel_payment(self, payment_id, operator_id: str | None, reason: str | None = None) -> Payment:
        if not operator_id or not operator_id.strip():
            raise ValidationError(details={"message": "cancelled_by is required", "field": "cancelled_by"})
        payment = self.get_payment(payment_id)
        if payment.status == PaymentStatus.CANCELLED.value:
            raise InvalidStateError(details={"message": "payment is already cancelled", "payment_id": str(payment.id)})

        register = self.registers.get_by_id(payment.cash_register_id)
        register_status = register.status if register is not None else "UNKNOWN"

        now = utcnow()
        payment.status = PaymentStatus.CANCELLED.value
        payment.cancelled_at = now
        payment.cancelled_by = operator_id.strip()
        payment.cancellation_reason = reason
        payment.updated_at = now
        payment = self.payments.update(payment)

        metrics.record_payment_cancelled(register_status)
        log_json(
            logger,
            {
                "event": "payment_cancelled",
                "payment_id": str(payment.id),
                "cash_register_id": str(payment.cash_register_id),
                "register_status": register_status,
                "amount": str(payment.amount),
                "cancelled_by": payment.cancelled_by,
            },
        )
        return payment

    def update_check_compensation(
        self,
        payment_id,
        compensation_status: str,
        operator_id: str | None,
        rejection_reason: str | None = None,
    ) -> Payment:
        compensation_status = _validate_choice(compensation_status, CheckCompensationStatus, "compensation_status")
        if compensation_status == CheckCompensationStatus.PENDING.value:
            raise ValidationError(
                details={"message": "compensation status must be compensated or rejected", "field": "compensation_status"}
            )
        if compensation_status == CheckCompensationStatus.REJECTED.value and not rejection_reason:
            raise ValidationError(
                details={"message": "rejection_reason is required for rejected checks", "field": "rejection_reason"}
            )
        if not operator_id or not operator_id.strip():
            raise ValidationError(details={"message": "updated_by is required", "field": "updated_by"})

        payment = self.get_payment(payment_id)
        if payment.payment_method != PaymentMethod.CHECK.value:
            raise ValidationError(details={"message": "payment is not a check", "payment_id": str(payment.id)})
        if payment.check_compensation_status != CheckCompensationStatus.PENDING.value:
            raise InvalidStateError(
                details={
                    "message": "check compensation already resolved",
                    "payment_id": str(payment.id),
                    "compensation_status": payment.check_compensation_status,
                }
            )
        if payment.status != PaymentStatus.PENDING.value:
            raise InvalidStateError(
                details={"message": "payment is no longer pending", "payment_id": str(payment.id), "status": payment.status}
            )

        now = utcnow()
        payment.check_compensation_status = compensation_status
        if compensation_status == CheckCompensationStatus.COMPENSATED.value:
            payment.status = PaymentStatus.COMPLETED.value
        else:
            payment.status = PaymentStatus.CANCELLED.value
            payment.check_rejection_reason = rejection_reason
            payment.cancelled_at = now
            payment.cancelled_by = operator_id.strip()
            payment.cancellation_reason = rejection_reason
        payment.updated_at = now
        payment = self.payments.update(payment)
        log_json(
            logger,
            {
                "event": "check_compensation_updated",
                "payment_id": str(payment.id),
                "compensation_status": compensation_status,
                "status": payment.status,
            },
        )
        return payment
