from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.cashdesk.core.config import settings
from app.cashdesk.core.error_catalog import ErrorCatalog
from app.cashdesk.core.errors import error_response
from app.cashdesk.db.session import get_db

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    return {"status": "ok", "app": settings.APP_NAME, "trace_id": getattr(request.state, "trace_id", "")}


@router.get("/ready")
def ready(request: Request, db=Depends(get_db)):
    trace_id = getattr(request.state, "trace_id", "")
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        return error_response(ErrorCatalog.DB_UNAVAILABLE, {"type": exc.__class__.__name__}, trace_id)
    return {"status": "ready", "trace_id": trace_id}
