from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from .. import __version__
from ..db import get_db
from ..utils.log import get_logger

router = APIRouter(tags=["meta"])
logger = get_logger(__name__)


@router.get("/")
def service_info():
    """Service identity (liveness)"""
    return {"ok": True, "service": "affiliate-tracker", "version": __version__}


@router.get("/health")
def health(db: Session = Depends(get_db)):
    """Readiness: the database answers a trivial query"""
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check database probe failed: {e}")
        return JSONResponse(status_code=503, content={"ok": False, "database": "unavailable"})
    return {"ok": True, "database": "ok"}
