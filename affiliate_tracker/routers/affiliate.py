"""
Affiliate self-service API Router

Affiliates identify themselves by their code.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..db import get_db
from ..schemas.affiliate import PayoutRequest, PayoutResponse
from ..services import reporting
from ..services.ledger import LedgerService

router = APIRouter(prefix="/api/v1/affiliate", tags=["affiliate"])


@router.get("/dashboard")
def dashboard(code: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    return reporting.affiliate_stats(db, code)


@router.get("/conversions")
def conversions(
    code: str = Query(..., min_length=1),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=reporting.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    return reporting.list_affiliate_conversions(db, code, page=page, limit=limit)


@router.post("/payouts", response_model=PayoutResponse)
def request_payout(
    payload: PayoutRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    payout = LedgerService.request_payout(
        db, payload.code, payload.amount, minimum_payout=settings.MINIMUM_PAYOUT
    )
    return PayoutResponse(payout_id=payout.id, amount=payout.amount, status=payout.status)
