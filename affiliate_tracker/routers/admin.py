"""
Admin API Router

Conversion review, payout settlement, reporting and catalog management.
Every route requires the X-Admin-Key header.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..db import get_db
from ..dependencies.auth import require_admin
from ..models.enums import ConversionStatus, PayoutStatus
from ..schemas.admin import (
    AffiliateCreateRequest,
    AffiliateStatusRequest,
    BalanceResponse,
    DecisionRequest,
    DecisionResponse,
    ProductCreateRequest,
    ProductUpdateRequest,
    SettleResponse,
    TenantRequest,
    TenantResponse,
)
from ..services import catalog, reporting
from ..services.conversions import ConversionService
from ..services.ledger import LedgerService

router = APIRouter(prefix="/api/v1/admin", tags=["admin"], dependencies=[Depends(require_admin)])

PAGE_LIMIT = Query(20, ge=1, le=reporting.MAX_PAGE_SIZE)


@router.get("/overview")
def overview(db: Session = Depends(get_db)):
    return reporting.overview_stats(db)


# Conversions

@router.get("/conversions")
def list_conversions(
    status_filter: Optional[ConversionStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = PAGE_LIMIT,
    db: Session = Depends(get_db),
):
    return reporting.list_conversions(
        db, status_filter.value if status_filter else None, page=page, limit=limit
    )


@router.put("/conversions/{conversion_id}", response_model=DecisionResponse)
def decide_conversion(conversion_id: str, payload: DecisionRequest, db: Session = Depends(get_db)):
    conversion = ConversionService.decide(db, conversion_id, payload.action)
    return DecisionResponse(
        conversion_id=conversion.id,
        status=conversion.status,
        decided_at=conversion.decided_at,
    )


# Payouts

@router.get("/payouts")
def list_payouts(
    status_filter: Optional[PayoutStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = PAGE_LIMIT,
    db: Session = Depends(get_db),
):
    return reporting.list_payouts(
        db, status_filter.value if status_filter else None, page=page, limit=limit
    )


@router.put("/payouts/{payout_id}", response_model=SettleResponse)
def settle_payout(payout_id: str, db: Session = Depends(get_db)):
    payout = LedgerService.settle_payout(db, payout_id)
    return SettleResponse(payout_id=payout.id, status=payout.status, processed_at=payout.processed_at)


# Affiliates

@router.get("/affiliates")
def list_affiliates(
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = PAGE_LIMIT,
    db: Session = Depends(get_db),
):
    return reporting.list_affiliates(db, search=search, page=page, limit=limit)


@router.post("/affiliates", status_code=status.HTTP_201_CREATED)
def create_affiliate(payload: AffiliateCreateRequest, db: Session = Depends(get_db)):
    affiliate = catalog.create_affiliate(db, payload.email, payload.code, tenant_id=payload.tenant_id)
    return {"success": True, "affiliate": catalog.serialize_affiliate(affiliate)}


@router.patch("/affiliates/{affiliate_id}/status")
def set_affiliate_status(affiliate_id: str, payload: AffiliateStatusRequest, db: Session = Depends(get_db)):
    affiliate = catalog.set_affiliate_status(db, affiliate_id, payload.status)
    return {"success": True, "id": affiliate.id, "status": affiliate.status}


@router.get("/affiliates/{affiliate_id}/balance", response_model=BalanceResponse)
def affiliate_balance(affiliate_id: str, db: Session = Depends(get_db)):
    reconciliation = LedgerService.reconcile_balance(db, affiliate_id)
    return BalanceResponse(
        affiliate_id=reconciliation.affiliate_id,
        balance=reconciliation.balance,
        approved_commission=reconciliation.approved_commission,
        payouts_debited=reconciliation.payouts_debited,
        expected_balance=reconciliation.expected_balance,
        consistent=reconciliation.consistent,
    )


# Products

@router.get("/products")
def list_products(db: Session = Depends(get_db)):
    return {"data": catalog.list_products(db)}


@router.post("/products", status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreateRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    product = catalog.create_product(
        db,
        name=payload.name,
        slug=payload.slug,
        domain=payload.domain,
        commission_type=payload.commission_type,
        commission_value=payload.commission_value,
        cookie_duration=payload.cookie_duration or settings.DEFAULT_COOKIE_DURATION_DAYS,
        tenant_id=payload.tenant_id,
    )
    # The full key is shown once here; listings mask it
    return {"success": True, "product": catalog.serialize_product(product, reveal_key=True)}


@router.patch("/products/{product_id}")
def update_product(product_id: str, payload: ProductUpdateRequest, db: Session = Depends(get_db)):
    product = catalog.update_product(db, product_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "product": catalog.serialize_product(product)}


@router.get("/products/{product_id}/apikey")
def reveal_api_key(product_id: str, db: Session = Depends(get_db)):
    return catalog.reveal_api_key(db, product_id)


# Tenants

@router.post("/tenants", status_code=status.HTTP_201_CREATED, response_model=TenantResponse)
def create_tenant(payload: TenantRequest, db: Session = Depends(get_db)):
    return catalog.create_tenant(db, payload.name)


@router.patch("/tenants/{tenant_id}", response_model=TenantResponse)
def rename_tenant(tenant_id: str, payload: TenantRequest, db: Session = Depends(get_db)):
    return catalog.rename_tenant(db, tenant_id, payload.name)
