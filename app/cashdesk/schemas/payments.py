from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class InstallmentsPayload(BaseModel):
    current: int
    total: int
    value: Decimal


class CheckPayload(BaseModel):
    bank: str = Field(min_length=1)
    number: str = Field(min_length=1)
    holder: str | None = None


class PaymentCreateRequest(BaseModel):
    cash_register_id: UUID
    type: Literal["sale", "expense", "debt_payment"]
    payment_method: Literal[
        "cash",
        "credit",
        "debit",
        "pix",
        "bank_slip",
        "check",
        "promissory_note",
        "mercado_pago",
    ]
    amount: Decimal
    created_by: str = Field(min_length=1)
    date: datetime | None = None
    category: str | None = None
    description: str | None = None
    installments: InstallmentsPayload | None = None
    check: CheckPayload | None = None


class PaymentCancelRequest(BaseModel):
    cancelled_by: str = Field(min_length=1)
    reason: str | None = None


class CheckCompensationRequest(BaseModel):
    status: Literal["compensated", "rejected"]
    updated_by: str = Field(min_length=1)
    rejection_reason: str | None = None


class PaymentResponse(BaseModel):
    id: str
    cash_register_id: UUID
    type: str
    payment_method: str
    amount: Decimal
    status: str
    date: datetime
    category: str | None
    description: str | None
    created_by: str
    installments_current: int | None
    installments_total: int | None
    installments_value: Decimal | None
    check_bank: str | None
    check_number: str | None
    check_holder: str | None
    check_compensation_status: str | None
    check_rejection_reason: str | None
    cancelled_at: datetime | None
    cancelled_by: str | None
    cancellation_reason: str | None
    created_at: datetime
    updated_at: datetime


class PaymentListResponse(BaseModel):
    rows: list[PaymentResponse]
    total: int
    limit: int
    offset: int
