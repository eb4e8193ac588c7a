import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

from app.cashdesk.core.error_catalog import ConflictError
from app.cashdesk.db.models import CashRegister, RegisterStatus
from app.cashdesk.services.register_lifecycle import RegisterLifecycleService


def test_concurrent_opens_yield_exactly_one_register(client, db_session):
    from app.cashdesk.db.session import SessionLocal

    workers = 6
    barrier = threading.Barrier(workers)

    def attempt(index: int) -> str:
        db = SessionLocal()
        try:
            barrier.wait()
            try:
                RegisterLifecycleService(db).open(Decimal("10.00"), f"op-{index}")
            except ConflictError:
                return "conflict"
            return "opened"
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(attempt, range(workers)))

    assert results.count("opened") == 1
    assert results.count("conflict") == workers - 1

    open_rows = db_session.query(CashRegister).filter(CashRegister.status == RegisterStatus.OPEN.value).all()
    assert len(open_rows) == 1


def test_close_guard_rejects_second_transition(client, db_session):
    from app.cashdesk.repos.cash_registers import CashRegisterRepository

    register = RegisterLifecycleService(db_session).open(Decimal("5.00"), "op-1")
    repo = CashRegisterRepository(db_session)

    assert repo.update_on_close(register.id, {"closed_by": "op-1"}) is not None
    assert repo.update_on_close(register.id, {"closed_by": "op-2"}) is None

    refreshed = repo.get_by_id(register.id)
    assert refreshed.status == RegisterStatus.CLOSED.value
    assert refreshed.closed_by == "op-1"
