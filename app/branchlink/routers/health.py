from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.branchlink.core.error_catalog import ErrorCatalog
from app.branchlink.core.errors import error_response
from app.branchlink.db.session import get_db

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    trace_id = getattr(request.state, "trace_id", "")
    return {"status": "ok", "trace_id": trace_id}


@router.get("/ready")
def ready(request: Request, db=Depends(get_db)):
    trace_id = getattr(request.state, "trace_id", "")
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        return error_response(
            code=ErrorCatalog.STORE_UNAVAILABLE.code,
            message=ErrorCatalog.STORE_UNAVAILABLE.message,
            details={"type": exc.__class__.__name__},
            trace_id=trace_id,
            status_code=ErrorCatalog.STORE_UNAVAILABLE.status_code,
        )
    scheduler = getattr(request.app.state, "scheduler_status", None)
    return {"status": "ready", "scheduler": scheduler() if scheduler else None, "trace_id": trace_id}
