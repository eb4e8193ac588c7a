from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from app.cashdesk.core.error_catalog import ConflictError
from app.cashdesk.db.models import CashRegister, RegisterStatus


@dataclass(frozen=True)
class CashRegisterQueryFilters:
    status: str | None = None
    opened_from: datetime | None = None
    opened_to: datetime | None = None
    limit: int | None = None
    offset: int | None = None


class CashRegisterRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, register_id, *, for_update: bool = False) -> CashRegister | None:
        stmt = select(CashRegister).where(CashRegister.id == register_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalars().first()

    def find_open(self) -> CashRegister | None:
        stmt = select(CashRegister).where(CashRegister.status == RegisterStatus.OPEN.value)
        return self.db.execute(stmt).scalars().first()

    def atomic_create_open(self, register: CashRegister) -> CashRegister:
        """Insert an OPEN register, relying on the single-open unique index.

        A concurrent writer that already inserted an OPEN row makes this insert
        fail at commit; the failure is surfaced as ConflictError.
        """
        self.db.add(register)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError(details={"message": "a cash register is already open"}) from exc
        self.db.refresh(register)
        return register

    def update_on_close(self, register_id, closing_fields: dict) -> CashRegister | None:
        """Apply closing fields only if the register is still OPEN.

        Returns None when no OPEN row matched, leaving the transaction untouched.
        """
        stmt = (
            update(CashRegister)
            .where(
                CashRegister.id == register_id,
                CashRegister.status == RegisterStatus.OPEN.value,
            )
            .values(status=RegisterStatus.CLOSED.value, **closing_fields)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        if result.rowcount != 1:
            self.db.rollback()
            return None
        self.db.commit()
        register = self.db.get(CashRegister, register_id)
        self.db.refresh(register)
        return register

    def list_registers(self, filters: CashRegisterQueryFilters) -> tuple[list[CashRegister], int]:
        stmt = select(CashRegister)
        count_stmt = select(func.count()).select_from(CashRegister)
        if filters.status:
            stmt = stmt.where(CashRegister.status == filters.status)
            count_stmt = count_stmt.where(CashRegister.status == filters.status)
        if filters.opened_from:
            stmt = stmt.where(CashRegister.opening_date >= filters.opened_from)
            count_stmt = count_stmt.where(CashRegister.opening_date >= filters.opened_from)
        if filters.opened_to:
            stmt = stmt.where(CashRegister.opening_date <= filters.opened_to)
            count_stmt = count_stmt.where(CashRegister.opening_date <= filters.opened_to)

        stmt = stmt.order_by(CashRegister.opening_date.desc())
        if filters.offset:
            stmt = stmt.offset(filters.offset)
        if filters.limit:
            stmt = stmt.limit(filters.limit)

        rows = self.db.execute(stmt).scalars().all()
        total = self.db.execute(count_stmt).scalar_one()
        return rows, total

    def list_opened_between(self, start: datetime, end: datetime) -> list[CashRegister]:
        stmt = (
            select(CashRegister)
            .where(CashRegister.opening_date >= start, CashRegister.opening_date < end)
            .order_by(CashRegister.opening_date)
        )
        return self.db.execute(stmt).scalars().all()
