from fastapi import APIRouter

from app.cashdesk.core.config import settings
from app.cashdesk.routers.cash_registers import router as cash_registers_router
from app.cashdesk.routers.health import router as health_router
from app.cashdesk.routers.metrics import router as metrics_router
from app.cashdesk.routers.payments import router as payments_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(cash_registers_router, tags=["cash-registers"])
api_router.include_router(payments_router, tags=["payments"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
