from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, select

from app.cashdesk.db.models import Payment


@dataclass(frozen=True)
class PaymentQueryFilters:
    cash_register_id: str | None = None
    type: str | None = None
    status: str | None = None
    payment_method: str | None = None
    limit: int | None = None
    offset: int | None = None


class PaymentRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, payment_id) -> Payment | None:
        return self.db.execute(select(Payment).where(Payment.id == payment_id)).scalars().first()

    def find_by_register(self, cash_register_id) -> list[Payment]:
        return (
            self.db.execute(
                select(Payment)
                .where(Payment.cash_register_id == cash_register_id)
                .order_by(Payment.date, Payment.created_at)
            )
            .scalars()
            .all()
        )

    def find_by_registers(self, cash_register_ids: list) -> list[Payment]:
        if not cash_register_ids:
            return []
        return (
            self.db.execute(select(Payment).where(Payment.cash_register_id.in_(cash_register_ids)))
            .scalars()
            .all()
        )

    def create(self, payment: Payment) -> Payment:
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def update(self, payment: Payment) -> Payment:
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def list_payments(self, filters: PaymentQueryFilters) -> tuple[list[Payment], int]:
        stmt = select(Payment)
        count_stmt = select(func.count()).select_from(Payment)
        conditions = []
        if filters.cash_register_id:
            conditions.append(Payment.cash_register_id == filters.cash_register_id)
        if filters.type:
            conditions.append(Payment.type == filters.type)
        if filters.status:
            conditions.append(Payment.status == filters.status)
        if filters.payment_method:
            conditions.append(Payment.payment_method == filters.payment_method)
        if conditions:
            stmt = stmt.where(*conditions)
            count_stmt = count_stmt.where(*conditions)

        stmt = stmt.order_by(Payment.date.desc(), Payment.created_at.desc())
        if filters.offset:
            stmt = stmt.offset(filters.offset)
        if filters.limit:
            stmt = stmt.limit(filters.limit)

        rows = self.db.execute(stmt).scalars().all()
        total = self.db.execute(count_stmt).scalar_one()
        return rows, total
