"""cash registers and payments

Revision ID: 0001_cash_registers
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_cash_registers"
down_revision = None
branch_labels = None
depends_on = None


class GUID(sa.TypeDecorator):
    impl = sa.CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(sa.CHAR(36))


def upgrade() -> None:
    op.create_table(
        "cash_registers",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("opening_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closing_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("opening_balance_cents", sa.BigInteger(), nullable=False),
        sa.Column("current_balance_cents", sa.BigInteger(), nullable=False),
        sa.Column("closing_balance_cents", sa.BigInteger(), nullable=True),
        sa.Column("opened_by", sa.String(length=64), nullable=False),
        sa.Column("closed_by", sa.String(length=64), nullable=True),
        sa.Column("observations", sa.Text(), nullable=True),
        sa.Column("closing_sales_total_cents", sa.BigInteger(), nullable=True),
        sa.Column("closing_expenses_total_cents", sa.BigInteger(), nullable=True),
        sa.Column("closing_debt_payments_total_cents", sa.BigInteger(), nullable=True),
        sa.Column("closing_expected_balance_cents", sa.BigInteger(), nullable=True),
        sa.Column("closing_discrepancy_cents", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_cash_registers_status", "cash_registers", ["status"], unique=False)
    op.create_index("ix_cash_registers_opening_date", "cash_registers", ["opening_date"], unique=False)
    op.create_index(
        "uq_cash_registers_single_open",
        "cash_registers",
        ["status"],
        unique=True,
        sqlite_where=sa.text("status = 'OPEN'"),
        postgresql_where=sa.text("status = 'OPEN'"),
    )

    op.create_table(
        "payments",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("cash_register_id", GUID(), sa.ForeignKey("cash_registers.id"), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("payment_method", sa.String(length=32), nullable=False),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("installments_current", sa.Integer(), nullable=True),
        sa.Column("installments_total", sa.Integer(), nullable=True),
        sa.Column("installments_value_cents", sa.BigInteger(), nullable=True),
        sa.Column("check_bank", sa.String(length=100), nullable=True),
        sa.Column("check_number", sa.String(length=50), nullable=True),
        sa.Column("check_holder", sa.String(length=150), nullable=True),
        sa.Column("check_compensation_status", sa.String(length=16), nullable=True),
        sa.Column("check_rejection_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.String(length=64), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_payments_cash_register_id", "payments", ["cash_register_id"], unique=False)
    op.create_index("ix_payments_type", "payments", ["type"], unique=False)
    op.create_index("ix_payments_status", "payments", ["status"], unique=False)
    op.create_index("ix_payments_register_status", "payments", ["cash_register_id", "status"], unique=False)

    op.create_table(
        "idempotency_records",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("endpoint", sa.String(length=255), nullable=False),
        sa.Column("method", sa.String(length=10), nullable=False),
        sa.Column("idempotency_key", sa.String(length=255), nullable=False),
        sa.Column("request_hash", sa.String(length=64), nullable=False),
        sa.Column("state", sa.String(length=16), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("response_body", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("endpoint", "method", "idempotency_key", name="uq_idempotency"),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("actor", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("trace_id", sa.String(length=64), nullable=True),
        sa.Column("before_payload", sa.JSON(), nullable=True),
        sa.Column("after_payload", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("result", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_events_action", "audit_events", ["action"], unique=False)
    op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_events_entity_id", table_name="audit_events")
    op.drop_index("ix_audit_events_action", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_table("idempotency_records")
    op.drop_index("ix_payments_register_status", table_name="payments")
    op.drop_index("ix_payments_status", table_name="payments")
    op.drop_index("ix_payments_type", table_name="payments")
    op.drop_index("ix_payments_cash_register_id", table_name="payments")
    op.drop_table("payments")
    op.drop_index("uq_cash_registers_single_open", table_name="cash_registers")
    op.drop_index("ix_cash_registers_opening_date", table_name="cash_registers")
    op.drop_index("ix_cash_registers_status", table_name="cash_registers")
    op.drop_table("cash_registers")
