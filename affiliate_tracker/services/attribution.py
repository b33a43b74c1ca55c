"""
Attribution Engine

Records referral clicks and resolves which (product, affiliate) pair a
reported conversion is credited to. Clicks are immutable facts and are never
deduplicated: each visit is a new row.
"""
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import urlencode, urlsplit, urlunsplit, parse_qsl

from sqlalchemy.orm import Session

from ..core.errors import (
    AffiliateError,
    CrossTenantViolation,
    InactiveError,
    InvalidInputError,
    NotFoundError,
    SuspendedError,
)
from ..models import Affiliate, AffiliateStatus, Click, Product
from ..utils.log import get_logger

logger = get_logger(__name__)


@dataclass
class ClickMetadata:
    """Origin of a referral visit, as seen by the HTTP boundary"""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None


@dataclass
class Redirect:
    url: str
    product: Optional[Product] = None
    affiliate: Optional[Affiliate] = None
    click: Optional[Click] = None


def normalize_code(code: Optional[str]) -> str:
    """Affiliate codes are stored upper-case; lookups are case-insensitive."""
    return (code or "").strip().upper()


def get_product_by_slug(db: Session, slug: str) -> Product:
    product = db.query(Product).filter(Product.slug == (slug or "").strip().lower()).first()
    if not product:
        raise NotFoundError(f"Product {slug} not found", {"product_slug": slug})
    return product


def get_product_by_api_key(db: Session, api_key: str) -> Optional[Product]:
    if not api_key:
        return None
    return db.query(Product).filter(Product.api_key == api_key).first()


def get_affiliate_by_code(db: Session, code: str) -> Affiliate:
    affiliate = db.query(Affiliate).filter(Affiliate.code == normalize_code(code)).first()
    if not affiliate:
        raise NotFoundError(f"Affiliate {code} not found", {"affiliate_code": code})
    return affiliate


def _require_active_product(product: Product):
    if not product.is_active:
        raise InactiveError(
            f"Product {product.slug} is inactive",
            {"product_id": product.id, "product_slug": product.slug},
        )


def _require_active_affiliate(affiliate: Affiliate):
    if affiliate.status != AffiliateStatus.ACTIVE.value:
        raise SuspendedError(
            f"Affiliate {affiliate.code} is not active",
            {"affiliate_id": affiliate.id, "status": affiliate.status},
        )


def _require_same_tenant(product: Product, affiliate: Affiliate):
    if affiliate.tenant_id != product.tenant_id:
        raise CrossTenantViolation(
            "Affiliate and product belong to different tenants",
            {"product_id": product.id, "affiliate_id": affiliate.id},
        )


def record_click(
    db: Session,
    product_slug: str,
    affiliate_code: str,
    metadata: Optional[ClickMetadata] = None,
) -> Click:
    """
    Append one Click for a referral visit.

    Raises:
        NotFoundError: unknown product slug or affiliate code
        InactiveError: product disabled
        SuspendedError: affiliate not active
        CrossTenantViolation: affiliate and product in different tenants
    """
    product = get_product_by_slug(db, product_slug)
    _require_active_product(product)

    affiliate = get_affiliate_by_code(db, affiliate_code)
    _require_active_affiliate(affiliate)
    _require_same_tenant(product, affiliate)

    metadata = metadata or ClickMetadata()
    click = Click(
        product_id=product.id,
        affiliate_id=affiliate.id,
        ip_address=metadata.ip_address,
        user_agent=(metadata.user_agent or "unknown")[:512],
        referrer=metadata.referrer[:1024] if metadata.referrer else None,
    )
    db.add(click)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(click)

    logger.info(f"Click tracked: {affiliate.code} -> {product.slug} (click {click.id})")
    return click


def resolve_conversion_target(
    db: Session,
    product_api_key: str,
    order_id: str,
    affiliate_id: str,
) -> Tuple[Product, Affiliate]:
    """
    Resolve the product authenticated by its secret key and the explicitly
    supplied affiliate, enforcing the tenant boundary and active status.

    Raises:
        InvalidInputError: blank order id or affiliate id
        NotFoundError: unknown product key or affiliate id
        InactiveError: product disabled
        CrossTenantViolation: affiliate of another tenant
        SuspendedError: affiliate not active
    """
    if not order_id or not str(order_id).strip():
        raise InvalidInputError("order_id is required", {"order_id": order_id})
    if not affiliate_id or not str(affiliate_id).strip():
        raise InvalidInputError("affiliate_id is required", {"order_id": order_id})

    product = get_product_by_api_key(db, product_api_key)
    if not product:
        raise NotFoundError("Product not found for API key", {"order_id": order_id})
    _require_active_product(product)

    affiliate = db.query(Affiliate).filter(Affiliate.id == affiliate_id).first()
    if not affiliate:
        raise NotFoundError(
            f"Affiliate {affiliate_id} not found",
            {"affiliate_id": affiliate_id, "order_id": order_id},
        )
    _require_same_tenant(product, affiliate)
    _require_active_affiliate(affiliate)

    return product, affiliate


def build_destination_url(domain: str, ref_code: Optional[str] = None) -> str:
    """Product domain as an absolute URL, with ?ref= kept as a cookie fallback."""
    base = domain if urlsplit(domain).scheme in ("http", "https") else f"https://{domain}"
    if not ref_code:
        return base
    parts = urlsplit(base)
    # Existing params keep their order, repeats and blanks; any old ref is replaced
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "ref"]
    query.append(("ref", ref_code))
    return urlunsplit((parts.scheme, parts.netloc, parts.path or "/", urlencode(query), parts.fragment))


def resolve_redirect(
    db: Session,
    product_slug: str,
    ref_code: Optional[str],
    metadata: Optional[ClickMetadata] = None,
    *,
    fallback_url: str,
) -> Redirect:
    """
    Server-side referral redirect: record the click (when the ref is valid)
    and return where the visitor should land.

    An unknown or inactive product sends the visitor to ``fallback_url``.
    An invalid ref still redirects to the product, without a click.
    """
    product = db.query(Product).filter(
        Product.slug == (product_slug or "").strip().lower(),
        Product.is_active.is_(True),
    ).first()
    if not product:
        logger.warning(f"[/go] Product not found: {product_slug}")
        return Redirect(url=fallback_url)

    redirect = Redirect(url=build_destination_url(product.domain, ref_code), product=product)
    if not ref_code:
        return redirect

    try:
        click = record_click(db, product.slug, ref_code, metadata)
    except AffiliateError as e:
        logger.warning(f"[/go] Invalid ref \"{ref_code}\" for product \"{product.slug}\": {e.code}")
        return redirect

    redirect.click = click
    redirect.affiliate = click.affiliate
    return redirect
