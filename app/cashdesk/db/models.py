import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Integer, JSON, String, Text, UniqueConstraint, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator, CHAR


class GUID(TypeDecorator):
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return str(value)
        return str(uuid.UUID(str(value)))

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp, stored as UTC even on backends without tz support."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Cents(TypeDecorator):
    """Decimal amount with 2 places, stored as integer minor units."""

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        cents = (Decimal(str(value)) * 100).to_integral_value()
        if cents != Decimal(str(value)) * 100:
            raise ValueError(f"amount {value} has more than 2 decimal places")
        return int(cents)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return (Decimal(int(value)) / 100).quantize(Decimal("0.01"))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RegisterStatus(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class PaymentType(str, enum.Enum):
    SALE = "sale"
    EXPENSE = "expense"
    DEBT_PAYMENT = "debt_payment"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CREDIT = "credit"
    DEBIT = "debit"
    PIX = "pix"
    BANK_SLIP = "bank_slip"
    CHECK = "check"
    PROMISSORY_NOTE = "promissory_note"
    MERCADO_PAGO = "mercado_pago"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CheckCompensationStatus(str, enum.Enum):
    PENDING = "pending"
    COMPENSATED = "compensated"
    REJECTED = "rejected"


class Base(DeclarativeBase):
    pass


class CashRegister(Base):
    __tablename__ = "cash_registers"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    opening_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    closing_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    opening_balance: Mapped[Decimal] = mapped_column("opening_balance_cents", Cents(), nullable=False)
    current_balance: Mapped[Decimal] = mapped_column("current_balance_cents", Cents(), nullable=False)
    closing_balance: Mapped[Decimal | None] = mapped_column("closing_balance_cents", Cents(), nullable=True)
    opened_by: Mapped[str] = mapped_column(String(64), nullable=False)
    closed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    observations: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Frozen at close; live summaries are always recomputed from payments.
    closing_sales_total: Mapped[Decimal | None] = mapped_column("closing_sales_total_cents", Cents(), nullable=True)
    closing_expenses_total: Mapped[Decimal | None] = mapped_column("closing_expenses_total_cents", Cents(), nullable=True)
    closing_debt_payments_total: Mapped[Decimal | None] = mapped_column("closing_debt_payments_total_cents", Cents(), nullable=True)
    closing_expected_balance: Mapped[Decimal | None] = mapped_column("closing_expected_balance_cents", Cents(), nullable=True)
    closing_discrepancy: Mapped[Decimal | None] = mapped_column("closing_discrepancy_cents", Cents(), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False)

    payments = relationship("Payment", back_populates="cash_register")

    __table_args__ = (
        Index(
            "uq_cash_registers_single_open",
            "status",
            unique=True,
            sqlite_where=text("status = 'OPEN'"),
            postgresql_where=text("status = 'OPEN'"),
        ),
    )


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    cash_register_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("cash_registers.id"), index=True, nullable=False
    )
    type: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[Decimal] = mapped_column("amount_cents", Cents(), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)

    installments_current: Mapped[int | None] = mapped_column(Integer, nullable=True)
    installments_total: Mapped[int | None] = mapped_column(Integer, nullable=True)
    installments_value: Mapped[Decimal | None] = mapped_column("installments_value_cents", Cents(), nullable=True)

    check_bank: Mapped[str | None] = mapped_column(String(100), nullable=True)
    check_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    check_holder: Mapped[str | None] = mapped_column(String(150), nullable=True)
    check_compensation_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    check_rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    cancelled_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False)

    cash_register = relationship("CashRegister", back_populates="payments")


class IdempotencyRecord(Base):
    __tablename__ = "idempotency_records"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    endpoint: Mapped[str] = mapped_column(String(255), nullable=False)
    method: Mapped[str] = mapped_column(String(10), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(255), nullable=False)
    request_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    state: Mapped[str] = mapped_column(String(16), nullable=False)
    status_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    response_body: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("endpoint", "method", "idempotency_key", name="uq_idempotency"),
    )


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    actor: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    trace_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    before_payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    after_payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    event_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    result: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)


Index("ix_payments_register_status", Payment.cash_register_id, Payment.status)
