from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from app.cashdesk.core.config import settings
from app.cashdesk.core.error_catalog import ErrorCatalog, NotFoundError
from app.cashdesk.core.metrics import metrics
from app.cashdesk.db.models import CashRegister, RegisterStatus
from app.cashdesk.db.session import get_db
from app.cashdesk.repos.cash_registers import CashRegisterQueryFilters, CashRegisterRepository
from app.cashdesk.routers.payments import payment_response
from app.cashdesk.schemas.cash_registers import (
    CashRegisterBalanceResponse,
    CashRegisterCloseRequest,
    CashRegisterCloseResponse,
    CashRegisterListResponse,
    CashRegisterOpenRequest,
    CashRegisterResponse,
    CashRegisterViewResponse,
    DailySummaryResponse,
    ReconciliationResponse,
    RegisterSummaryResponse,
)
from app.cashdesk.schemas.errors import ERROR_RESPONSES
from app.cashdesk.services.audit import AuditEventPayload, AuditService
from app.cashdesk.services.balance import BalanceService
from app.cashdesk.services.idempotency import IdempotencyService, extract_idempotency_key
from app.cashdesk.services.reconciliation import ReconciliationResult, ReconciliationService, RegisterSummary
from app.cashdesk.services.register_lifecycle import RegisterLifecycleService
from app.cashdesk.services.register_views import RegisterViewService


router = APIRouter()


def register_response(register: CashRegister, current_balance=None) -> CashRegisterResponse:
    return CashRegisterResponse(
        id=str(register.id),
        status=register.status,
        opening_date=register.opening_date,
        closing_date=register.closing_date,
        opening_balance=register.opening_balance,
        current_balance=current_balance if current_balance is not None else register.current_balance,
        closing_balance=register.closing_balance,
        opened_by=register.opened_by,
        closed_by=register.closed_by,
        observations=register.observations,
        closing_sales_total=register.closing_sales_total,
        closing_expenses_total=register.closing_expenses_total,
        closing_debt_payments_total=register.closing_debt_payments_total,
        closing_expected_balance=register.closing_expected_balance,
        closing_discrepancy=register.closing_discrepancy,
        created_at=register.created_at,
        updated_at=register.updated_at,
    )


def _summary_response(summary: RegisterSummary) -> RegisterSummaryResponse:
    return RegisterSummaryResponse(
        cash_register_id=summary.cash_register_id,
        opening_balance=summary.opening_balance,
        sales_total=summary.sales_total,
        expenses_total=summary.expenses_total,
        debt_payments_total=summary.debt_payments_total,
        expected_balance=summary.expected_balance,
        sales_by_method=summary.sales_by_method,
        debt_payments_by_method=summary.debt_payments_by_method,
        expenses_by_category=summary.expenses_by_category,
        payment_count=summary.payment_count,
        pending_count=summary.pending_count,
        cancelled_count=summary.cancelled_count,
    )


def _reconciliation_response(result: ReconciliationResult) -> ReconciliationResponse:
    return ReconciliationResponse(
        summary=_summary_response(result.summary),
        declared_closing_balance=result.declared_closing_balance,
        discrepancy=result.discrepancy,
        discrepancy_type=result.discrepancy_type,
    )


def _begin_idempotent(request: Request, db, payload: dict) -> JSONResponse | None:
    """Start idempotency tracking when the caller sent a key.

    Returns the stored response for a replayed key, otherwise None.
    """
    idempotency_key = extract_idempotency_key(request.headers)
    if idempotency_key is None:
        return None
    context, replay = IdempotencyService(db).start(
        endpoint=str(request.url.path),
        method=request.method,
        idempotency_key=idempotency_key,
        request_hash=IdempotencyService.fingerprint(payload),
    )
    if replay:
        metrics.increment_idempotency_replay()
        return JSONResponse(
            status_code=replay.status_code,
            content=replay.response_body,
            headers={"X-Idempotency-Result": ErrorCatalog.IDEMPOTENCY_REPLAY.code},
        )
    request.state.idempotency = context
    return None


def _record_idempotent_success(request: Request, status_code: int, body: dict) -> None:
    context = getattr(request.state, "idempotency", None)
    if context is not None:
        context.record_success(status_code=status_code, response_body=body)


@router.post(
    "/cash-registers/open",
    response_model=CashRegisterResponse,
    status_code=201,
    responses=ERROR_RESPONSES,
)
def open_cash_register(request: Request, payload: CashRegisterOpenRequest, db=Depends(get_db)):
    replay = _begin_idempotent(request, db, payload.model_dump(mode="json"))
    if replay is not None:
        return replay

    register = RegisterLifecycleService(db).open(
        payload.opening_balance,
        payload.opened_by,
        observations=payload.observations,
    )
    response = register_response(register)
    _record_idempotent_success(request, 201, response.model_dump(mode="json"))
    AuditService(db).record_event(
        AuditEventPayload(
            actor=register.opened_by,
            action="cash_register.open",
            entity_type="cash_register",
            entity_id=str(register.id),
            trace_id=getattr(request.state, "trace_id", None),
            before=None,
            after={"status": register.status, "opening_balance": str(register.opening_balance)},
            metadata={"observations": payload.observations},
        )
    )
    return response


@router.post(
    "/cash-registers/{register_id}/close",
    response_model=CashRegisterCloseResponse,
    responses=ERROR_RESPONSES,
)
def close_cash_register(
    request: Request,
    register_id: UUID,
    payload: CashRegisterCloseRequest,
    db=Depends(get_db),
):
    replay = _begin_idempotent(request, db, payload.model_dump(mode="json"))
    if replay is not None:
        return replay

    result = RegisterLifecycleService(db).close(
        register_id,
        payload.closing_balance,
        payload.closed_by,
        observations=payload.observations,
    )
    register = CashRegisterRepository(db).get_by_id(register_id)
    response = CashRegisterCloseResponse(
        cash_register=register_response(register),
        reconciliation=_reconciliation_response(result),
    )
    _record_idempotent_success(request, 200, response.model_dump(mode="json"))
    AuditService(db).record_event(
        AuditEventPayload(
            actor=register.closed_by,
            action="cash_register.close",
            entity_type="cash_register",
            entity_id=str(register.id),
            trace_id=getattr(request.state, "trace_id", None),
            before={"status": "OPEN"},
            after={
                "status": register.status,
                "closing_balance": str(register.closing_balance),
                "expected_balance": str(result.summary.expected_balance),
                "discrepancy": str(result.discrepancy),
            },
            metadata={"discrepancy_type": result.discrepancy_type},
        )
    )
    return response


@router.get("/cash-registers/current", response_model=CashRegisterResponse, responses=ERROR_RESPONSES)
def get_current_cash_register(db=Depends(get_db)):
    register = RegisterLifecycleService(db).get_current()
    balance = BalanceService(db).compute_current_balance(register.id)
    return register_response(register, current_balance=balance)


@router.get("/cash-registers", response_model=CashRegisterListResponse, responses=ERROR_RESPONSES)
def list_cash_registers(
    status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    db=Depends(get_db),
):
    limit = min(limit, settings.LIST_MAX_PAGE_SIZE)
    rows, total = RegisterViewService(db).list_sessions(
        CashRegisterQueryFilters(
            status=status,
            opened_from=start_date,
            opened_to=end_date,
            limit=limit,
            offset=offset,
        )
    )
    return CashRegisterListResponse(
        rows=[register_response(row) for row in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/cash-registers/daily-summary", response_model=DailySummaryResponse, responses=ERROR_RESPONSES)
def get_daily_summary(day: date, timezone: str | None = None, db=Depends(get_db)):
    summary = ReconciliationService(db).daily_summary(day, timezone)
    return DailySummaryResponse(
        day=summary.day,
        timezone=summary.timezone,
        register_count=summary.register_count,
        open_register_count=summary.open_register_count,
        opening_balance=summary.opening_balance,
        current_balance=summary.current_balance,
        sales_total=summary.sales_total,
        expenses_total=summary.expenses_total,
        debt_payments_total=summary.debt_payments_total,
        sales_by_method=summary.sales_by_method,
        expenses_by_category=summary.expenses_by_category,
    )


@router.get("/cash-registers/{register_id}", response_model=CashRegisterViewResponse, responses=ERROR_RESPONSES)
def get_cash_register(register_id: UUID, db=Depends(get_db)):
    view = RegisterViewService(db).get_session_view(register_id)
    return CashRegisterViewResponse(
        cash_register=register_response(view.register, current_balance=view.current_balance),
        summary=_summary_response(view.summary) if view.summary is not None else None,
        summary_available=view.summary_available,
        summary_error=view.summary_error,
        payments=[payment_response(payment) for payment in view.payments],
    )


@router.get(
    "/cash-registers/{register_id}/summary",
    response_model=RegisterSummaryResponse,
    responses=ERROR_RESPONSES,
)
def get_cash_register_summary(register_id: UUID, db=Depends(get_db)):
    return _summary_response(ReconciliationService(db).summarize(register_id))


@router.get(
    "/cash-registers/{register_id}/balance",
    response_model=CashRegisterBalanceResponse,
    responses=ERROR_RESPONSES,
)
def get_cash_register_balance(register_id: UUID, db=Depends(get_db)):
    register = CashRegisterRepository(db).get_by_id(register_id)
    if register is None:
        raise NotFoundError(details={"message": "cash register not found", "cash_register_id": str(register_id)})
    if register.status == RegisterStatus.OPEN.value:
        balance = BalanceService(db).compute_current_balance(register.id)
    else:
        # Frozen at the expected balance when the register was closed.
        balance = register.current_balance
    return CashRegisterBalanceResponse(
        cash_register_id=str(register.id),
        status=register.status,
        current_balance=balance,
    )
