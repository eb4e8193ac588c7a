from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from app.cashdesk.core.config import settings
from app.cashdesk.db.models import Payment
from app.cashdesk.db.session import get_db
from app.cashdesk.repos.payments import PaymentQueryFilters
from app.cashdesk.schemas.errors import ERROR_RESPONSES
from app.cashdesk.schemas.payments import (
    CheckCompensationRequest,
    PaymentCancelRequest,
    PaymentCreateRequest,
    PaymentListResponse,
    PaymentResponse,
)
from app.cashdesk.services.audit import AuditEventPayload, AuditService
from app.cashdesk.services.payments import CheckInput, InstallmentsInput, PaymentInput, PaymentService


router = APIRouter()


def payment_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        id=str(payment.id),
        cash_register_id=str(payment.cash_register_id),
        type=payment.type,
        payment_method=payment.payment_method,
        amount=payment.amount,
        status=payment.status,
        date=payment.date,
        category=payment.category,
        description=payment.description,
        created_by=payment.created_by,
        installments_current=payment.installments_current,
        installments_total=payment.installments_total,
        installments_value=payment.installments_value,
        check_bank=payment.check_bank,
        check_number=payment.check_number,
        check_holder=payment.check_holder,
        check_compensation_status=payment.check_compensation_status,
        check_rejection_reason=payment.check_rejection_reason,
        cancelled_at=payment.cancelled_at,
        cancelled_by=payment.cancelled_by,
        cancellation_reason=payment.cancellation_reason,
        created_at=payment.created_at,
        updated_at=payment.updated_at,
    )


def _audit(request: Request, db, *, actor: str, action: str, payment: Payment, before: dict | None, metadata=None):
    AuditService(db).record_event(
        AuditEventPayload(
            actor=actor,
            action=action,
            entity_type="payment",
            entity_id=str(payment.id),
            trace_id=getattr(request.state, "trace_id", None),
            before=before,
            after={"status": payment.status, "amount": str(payment.amount), "type": payment.type},
            metadata={"cash_register_id": str(payment.cash_register_id), **(metadata or {})},
        )
    )


@router.post("/payments", response_model=PaymentResponse, status_code=201, responses=ERROR_RESPONSES)
def create_payment(request: Request, payload: PaymentCreateRequest, db=Depends(get_db)):
    data = PaymentInput(
        cash_register_id=str(payload.cash_register_id),
        type=payload.type,
        payment_method=payload.payment_method,
        amount=payload.amount,
        created_by=payload.created_by,
        date=payload.date,
        category=payload.category,
        description=payload.description,
        installments=InstallmentsInput(
            current=payload.installments.current,
            total=payload.installments.total,
            value=payload.installments.value,
        )
        if payload.installments
        else None,
        check=CheckInput(bank=payload.check.bank, number=payload.check.number, holder=payload.check.holder)
        if payload.check
        else None,
    )
    payment = PaymentService(db).create_payment(data)
    _audit(request, db, actor=payment.created_by, action="payment.create", payment=payment, before=None)
    return payment_response(payment)


@router.get("/payments", response_model=PaymentListResponse, responses=ERROR_RESPONSES)
def list_payments(
    cash_register_id: UUID | None = None,
    type: str | None = None,
    status: str | None = None,
    payment_method: str | None = None,
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    db=Depends(get_db),
):
    limit = min(limit, settings.LIST_MAX_PAGE_SIZE)
    rows, total = PaymentService(db).list_payments(
        PaymentQueryFilters(
            cash_register_id=str(cash_register_id) if cash_register_id else None,
            type=type,
            status=status,
            payment_method=payment_method,
            limit=limit,
            offset=offset,
        )
    )
    return PaymentListResponse(rows=[payment_response(row) for row in rows], total=total, limit=limit, offset=offset)


@router.get("/payments/{payment_id}", response_model=PaymentResponse, responses=ERROR_RESPONSES)
def get_payment(payment_id: UUID, db=Depends(get_db)):
    return payment_response(PaymentService(db).get_payment(payment_id))


@router.post("/payments/{payment_id}/cancel", response_model=PaymentResponse, responses=ERROR_RESPONSES)
def cancel_payment(request: Request, payment_id: UUID, payload: PaymentCancelRequest, db=Depends(get_db)):
    payment = PaymentService(db).cancel_payment(payment_id, payload.cancelled_by, payload.reason)
    _audit(
        request,
        db,
        actor=payment.cancelled_by,
        action="payment.cancel",
        payment=payment,
        before=None,
        metadata={"reason": payload.reason},
    )
    return payment_response(payment)


@router.post(
    "/payments/{payment_id}/check-compensation",
    response_model=PaymentResponse,
    responses=ERROR_RESPONSES,
)
def update_check_compensation(
    request: Request,
    payment_id: UUID,
    payload: CheckCompensationRequest,
    db=Depends(get_db),
):
    payment = PaymentService(db).update_check_compensation(
        payment_id,
        payload.status,
        payload.updated_by,
        rejection_reason=payload.rejection_reason,
    )
    _audit(
        request,
        db,
        actor=payload.updated_by,
        action="payment.check_compensation",
        payment=payment,
        before={"check_compensation_status": "pending"},
        metadata={"compensation_status": payload.status, "rejection_reason": payload.rejection_reason},
    )
    return payment_response(payment)
