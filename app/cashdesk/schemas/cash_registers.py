from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.cashdesk.schemas.payments import PaymentResponse


class CashRegisterOpenRequest(BaseModel):
    opening_balance: Decimal
    opened_by: str = Field(min_length=1)
    observations: str | None = None


class CashRegisterCloseRequest(BaseModel):
    closing_balance: Decimal
    closed_by: str = Field(min_length=1)
    observations: str | None = None


class CashRegisterResponse(BaseModel):
    id: str
    status: str
    opening_date: datetime
    closing_date: datetime | None
    opening_balance: Decimal
    current_balance: Decimal
    closing_balance: Decimal | None
    opened_by: str
    closed_by: str | None
    observations: str | None
    closing_sales_total: Decimal | None
    closing_expenses_total: Decimal | None
    closing_debt_payments_total: Decimal | None
    closing_expected_balance: Decimal | None
    closing_discrepancy: Decimal | None
    created_at: datetime
    updated_at: datetime


class CashRegisterListResponse(BaseModel):
    rows: list[CashRegisterResponse]
    total: int
    limit: int
    offset: int


class RegisterSummaryResponse(BaseModel):
    cash_register_id: str
    opening_balance: Decimal
    sales_total: Decimal
    expenses_total: Decimal
    debt_payments_total: Decimal
    expected_balance: Decimal
    sales_by_method: dict[str, Decimal]
    debt_payments_by_method: dict[str, Decimal]
    expenses_by_category: dict[str, Decimal]
    payment_count: int
    pending_count: int
    cancelled_count: int


class ReconciliationResponse(BaseModel):
    summary: RegisterSummaryResponse
    declared_closing_balance: Decimal
    discrepancy: Decimal
    discrepancy_type: str


class CashRegisterCloseResponse(BaseModel):
    cash_register: CashRegisterResponse
    reconciliation: ReconciliationResponse


class CashRegisterBalanceResponse(BaseModel):
    cash_register_id: str
    status: str
    current_balance: Decimal


class CashRegisterViewResponse(BaseModel):
    cash_register: CashRegisterResponse
    summary: RegisterSummaryResponse | None
    summary_available: bool
    summary_error: str | None = None
    payments: list[PaymentResponse]


class DailySummaryResponse(BaseModel):
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
