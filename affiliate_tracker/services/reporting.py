"""
Reporting Aggregator

Read-only views over clicks, conversions and payouts. Each stats snapshot is
one SELECT made of scalar subqueries so its numbers come from the same
database snapshot.
"""
import math
from typing import Any, Dict, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..core.errors import InvalidInputError, NotFoundError
from ..models import (
    Affiliate,
    AffiliateStatus,
    Click,
    Conversion,
    ConversionStatus,
    PayoutStatus,
    Payout,
    Product,
)
from .attribution import get_affiliate_by_code, normalize_code

MAX_PAGE_SIZE = 100


def conversion_rate(conversions: int, clicks: int) -> float:
    """conversions / clicks, 0 when there are no clicks"""
    if clicks <= 0:
        return 0.0
    return round(conversions / clicks, 4)


def _pagination(total: int, page: int, limit: int) -> Dict[str, int]:
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


def _check_page(page: int, limit: int):
    if page < 1:
        raise InvalidInputError("page must be >= 1", {"page": page})
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise InvalidInputError(f"limit must be between 1 and {MAX_PAGE_SIZE}", {"limit": limit})


def _sum(column):
    return func.coalesce(func.sum(column), 0)


def affiliate_stats(db: Session, affiliate_code: str) -> Dict[str, Any]:
    """
    Dashboard numbers for one affiliate.

    Args:
        db: Database session
        affiliate_code: Affiliate code (case-insensitive)

    Returns:
        Dict with the affiliate profile, click/conversion stats and
        pending/approved/paid commission totals
    """
    pending = ConversionStatus.PENDING.value
    approved = ConversionStatus.APPROVED.value

    owned = Conversion.affiliate_id == Affiliate.id

    total_clicks = select(func.count(Click.id)).where(Click.affiliate_id == Affiliate.id).scalar_subquery()
    total_conversions = select(func.count(Conversion.id)).where(owned).scalar_subquery()
    pending_count = (
        select(func.count(Conversion.id))
        .where(owned, Conversion.status == pending)
        .scalar_subquery()
    )
    pending_amount = (
        select(_sum(Conversion.commission_amount))
        .where(owned, Conversion.status == pending)
        .scalar_subquery()
    )
    approved_count = (
        select(func.count(Conversion.id))
        .where(owned, Conversion.status == approved)
        .scalar_subquery()
    )
    approved_amount = (
        select(_sum(Conversion.commission_amount))
        .where(owned, Conversion.status == approved)
        .scalar_subquery()
    )
    total_paid = (
        select(_sum(Payout.amount))
        .where(Payout.affiliate_id == Affiliate.id, Payout.status == PayoutStatus.PAID.value)
        .scalar_subquery()
    )
    # First active product of the tenant, used to build the /go/ link
    product_slug = (
        select(Product.slug)
        .where(Product.tenant_id == Affiliate.tenant_id, Product.is_active.is_(True))
        .order_by(Product.created_at.asc())
        .limit(1)
        .scalar_subquery()
    )

    row = db.execute(
        select(
            Affiliate.id,
            Affiliate.code,
            Affiliate.email,
            Affiliate.balance,
            Affiliate.status,
            total_clicks.label("total_clicks"),
            total_conversions.label("total_conversions"),
            pending_count.label("pending_count"),
            pending_amount.label("pending_amount"),
            approved_count.label("approved_count"),
            approved_amount.label("approved_amount"),
            total_paid.label("total_paid"),
            product_slug.label("product_slug"),
        ).where(Affiliate.code == normalize_code(affiliate_code))
    ).first()

    if row is None:
        raise NotFoundError(f"Affiliate {affiliate_code} not found", {"affiliate_code": affiliate_code})

    return {
        "affiliate": {
            "id": row.id,
            "code": row.code,
            "email": row.email,
            "balance": int(row.balance),
            "status": row.status,
            "product_slug": row.product_slug,
        },
        "stats": {
            "total_clicks": int(row.total_clicks),
            "total_conversions": int(row.total_conversions),
            "conversion_rate": conversion_rate(int(row.total_conversions), int(row.total_clicks)),
        },
        "commissions": {
            "pending": {"count": int(row.pending_count), "amount": int(row.pending_amount)},
            "approved": {"count": int(row.approved_count), "amount": int(row.approved_amount)},
            "total_paid": int(row.total_paid),
        },
    }


def overview_stats(db: Session) -> Dict[str, Any]:
    """System-wide totals for the admin overview."""
    approved = Conversion.status == ConversionStatus.APPROVED.value
    requested = Payout.status == PayoutStatus.REQUESTED.value

    row = db.execute(
        select(
            select(func.count(Affiliate.id))
            .where(Affiliate.status == AffiliateStatus.ACTIVE.value)
            .scalar_subquery()
            .label("total_affiliates"),
            select(func.count(Click.id)).scalar_subquery().label("total_clicks"),
            select(func.count(Conversion.id)).scalar_subquery().label("total_conversions"),
            select(func.count(Payout.id)).where(requested).scalar_subquery().label("pending_payout_count"),
            select(_sum(Payout.amount)).where(requested).scalar_subquery().label("pending_payout_amount"),
            select(_sum(Conversion.order_amount)).where(approved).scalar_subquery().label("approved_order_amount"),
            select(_sum(Conversion.commission_amount))
            .where(approved)
            .scalar_subquery()
            .label("approved_commission_amount"),
        )
    ).one()

    return {
        "total_affiliates": int(row.total_affiliates),
        "total_clicks": int(row.total_clicks),
        "total_conversions": int(row.total_conversions),
        "conversion_rate": conversion_rate(int(row.total_conversions), int(row.total_clicks)),
        "pending_payouts": {
            "count": int(row.pending_payout_count),
            "total_amount": int(row.pending_payout_amount),
        },
        "revenue": {
            "total_order_amount": int(row.approved_order_amount),
            "total_commission_approved": int(row.approved_commission_amount),
        },
    }


def list_affiliates(
    db: Session,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict[str, Any]:
    """Affiliates newest first, with click/conversion counts and commission sums."""
    _check_page(page, limit)

    filters = []
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        filters.append(or_(Affiliate.email.ilike(pattern), Affiliate.code.ilike(pattern)))

    total = db.execute(select(func.count(Affiliate.id)).where(*filters)).scalar() or 0

    clicks = select(func.count(Click.id)).where(Click.affiliate_id == Affiliate.id).scalar_subquery()
    conversions = (
        select(func.count(Conversion.id)).where(Conversion.affiliate_id == Affiliate.id).scalar_subquery()
    )
    total_commission = (
        select(_sum(Conversion.commission_amount))
        .where(Conversion.affiliate_id == Affiliate.id)
        .scalar_subquery()
    )
    approved_commission = (
        select(_sum(Conversion.commission_amount))
        .where(
            Conversion.affiliate_id == Affiliate.id,
            Conversion.status == ConversionStatus.APPROVED.value,
        )
        .scalar_subquery()
    )

    rows = db.execute(
        select(
            Affiliate,
            clicks.label("total_clicks"),
            conversions.label("total_conversions"),
            total_commission.label("total_commission"),
            approved_commission.label("approved_commission"),
        )
        .where(*filters)
        .order_by(Affiliate.created_at.desc(), Affiliate.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    data = [
        {
            "id": row.Affiliate.id,
            "tenant_id": row.Affiliate.tenant_id,
            "email": row.Affiliate.email,
            "code": row.Affiliate.code,
            "status": row.Affiliate.status,
            "balance": int(row.Affiliate.balance),
            "total_clicks": int(row.total_clicks),
            "total_conversions": int(row.total_conversions),
            "total_commission": int(row.total_commission),
            "approved_commission": int(row.approved_commission),
            "created_at": row.Affiliate.created_at,
        }
        for row in rows
    ]
    return {"data": data, "pagination": _pagination(total, page, limit)}


def serialize_conversion(conversion: Conversion) -> Dict[str, Any]:
    return {
        "id": conversion.id,
        "product_id": conversion.product_id,
        "affiliate_id": conversion.affiliate_id,
        "order_id": conversion.order_id,
        "order_amount": int(conversion.order_amount),
        "commission_amount": int(conversion.commission_amount),
        "status": conversion.status,
        "created_at": conversion.created_at,
        "decided_at": conversion.decided_at,
    }


def list_conversions(
    db: Session,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict[str, Any]:
    """Conversions newest first for the admin review queue, optionally by status."""
    _check_page(page, limit)

    filters = []
    if status:
        try:
            filters.append(Conversion.status == ConversionStatus(status).value)
        except ValueError:
            raise InvalidInputError("Unknown conversion status", {"status": status})

    total = db.execute(select(func.count(Conversion.id)).where(*filters)).scalar() or 0

    rows = db.execute(
        select(Conversion, Affiliate.email, Affiliate.code, Product.name, Product.slug)
        .join(Affiliate, Conversion.affiliate_id == Affiliate.id)
        .join(Product, Conversion.product_id == Product.id)
        .where(*filters)
        .order_by(Conversion.created_at.desc(), Conversion.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    data = []
    for conversion, email, code, product_name, product_slug in rows:
        item = serialize_conversion(conversion)
        item["affiliate"] = {"email": email, "code": code}
        item["product"] = {"name": product_name, "slug": product_slug}
        data.append(item)
    return {"data": data, "pagination": _pagination(total, page, limit)}


def list_affiliate_conversions(
    db: Session,
    affiliate_code: str,
    page: int = 1,
    limit: int = 10,
) -> Dict[str, Any]:
    """One affiliate's conversions, newest first."""
    _check_page(page, limit)
    affiliate = get_affiliate_by_code(db, affiliate_code)

    total = db.execute(
        select(func.count(Conversion.id)).where(Conversion.affiliate_id == affiliate.id)
    ).scalar() or 0

    conversions = db.execute(
        select(Conversion)
        .where(Conversion.affiliate_id == affiliate.id)
        .order_by(Conversion.created_at.desc(), Conversion.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()

    return {
        "data": [serialize_conversion(c) for c in conversions],
        "pagination": _pagination(total, page, limit),
    }


def serialize_payout(payout: Payout) -> Dict[str, Any]:
    return {
        "id": payout.id,
        "affiliate_id": payout.affiliate_id,
        "amount": int(payout.amount),
        "status": payout.status,
        "requested_at": payout.requested_at,
        "processed_at": payout.processed_at,
    }


def list_payouts(
    db: Session,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict[str, Any]:
    """Payout requests newest first, optionally by status."""
    _check_page(page, limit)

    filters = []
    if status:
        try:
            filters.append(Payout.status == PayoutStatus(status).value)
        except ValueError:
            raise InvalidInputError("Unknown payout status", {"status": status})

    total = db.execute(select(func.count(Payout.id)).where(*filters)).scalar() or 0

    rows = db.execute(
        select(Payout, Affiliate.email, Affiliate.code)
        .join(Affiliate, Payout.affiliate_id == Affiliate.id)
        .where(*filters)
        .order_by(Payout.requested_at.desc(), Payout.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    data = []
    for payout, email, code in rows:
        item = serialize_payout(payout)
        item["affiliate"] = {"email": email, "code": code}
        data.append(item)
    return {"data": data, "pagination": _pagination(total, page, limit)}
