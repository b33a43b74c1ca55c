"""
Catalog administration: tenants, products and affiliates.
"""
import re
import secrets
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.errors import ConflictError, InvalidInputError, NotFoundError
from ..models import Affiliate, AffiliateStatus, Product, Tenant
from ..utils.log import get_logger
from .attribution import normalize_code
from .commission import CommissionRule

logger = get_logger(__name__)

API_KEY_VISIBLE_PREFIX = 14
API_KEY_MASK = "••••••••"

PRODUCT_FIELDS = ("name", "slug", "domain", "commission_type", "commission_value", "cookie_duration", "is_active")


def _commit(db: Session, conflict_message: str, context: Dict[str, Any]):
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError(conflict_message, context) from e
    except Exception:
        db.rollback()
        raise


def _required(value: Optional[str], field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise InvalidInputError(f"{field} is required", {field: value})
    return value


def _cookie_duration(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidInputError("cookie_duration must be a positive number of days", {"cookie_duration": value})
    return value


def generate_api_key(slug: str) -> str:
    """sk_<slug alphanumerics>_<40 hex chars>"""
    return f"sk_{re.sub(r'[^a-z0-9]', '', slug.lower())}_{secrets.token_hex(20)}"


def mask_api_key(api_key: Optional[str]) -> Optional[str]:
    if not api_key:
        return None
    return api_key[:API_KEY_VISIBLE_PREFIX] + API_KEY_MASK


# Tenants

def create_tenant(db: Session, name: str) -> Tenant:
    tenant = Tenant(name=_required(name, "name"))
    db.add(tenant)
    _commit(db, "Tenant could not be created", {"name": name})
    db.refresh(tenant)
    logger.info(f"Tenant {tenant.id} created ({tenant.name})")
    return tenant


def rename_tenant(db: Session, tenant_id: str, name: str) -> Tenant:
    """Name is the only mutable tenant field."""
    tenant = get_tenant(db, tenant_id)
    tenant.name = _required(name, "name")
    _commit(db, "Tenant could not be renamed", {"tenant_id": tenant_id})
    db.refresh(tenant)
    return tenant


def get_tenant(db: Session, tenant_id: str) -> Tenant:
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    if not tenant:
        raise NotFoundError(f"Tenant {tenant_id} not found", {"tenant_id": tenant_id})
    return tenant


def default_tenant(db: Session) -> Tenant:
    """Oldest tenant; used when an admin request names none."""
    tenant = db.query(Tenant).order_by(Tenant.created_at.asc(), Tenant.id).first()
    if not tenant:
        raise NotFoundError("No tenant found. Create a tenant first.")
    return tenant


def _resolve_tenant(db: Session, tenant_id: Optional[str]) -> Tenant:
    return get_tenant(db, tenant_id) if tenant_id else default_tenant(db)


# Products

def serialize_product(product: Product, reveal_key: bool = False) -> Dict[str, Any]:
    return {
        "id": product.id,
        "tenant_id": product.tenant_id,
        "name": product.name,
        "slug": product.slug,
        "domain": product.domain,
        "api_key": product.api_key if reveal_key else mask_api_key(product.api_key),
        "commission_type": product.commission_type,
        "commission_value": float(product.commission_value),
        "cookie_duration": product.cookie_duration,
        "is_active": product.is_active,
        "created_at": product.created_at,
        "updated_at": product.updated_at,
    }


def get_product(db: Session, product_id: str) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError(f"Product {product_id} not found", {"product_id": product_id})
    return product


def create_product(
    db: Session,
    name: str,
    slug: str,
    domain: str,
    commission_type: str,
    commission_value,
    cookie_duration: Optional[int] = None,
    tenant_id: Optional[str] = None,
) -> Product:
    """
    Create a product with a freshly generated secret key.
    Without a cookie_duration the configured DEFAULT_COOKIE_DURATION_DAYS applies.

    The full key is only returned here and by ``reveal_api_key``; listings
    mask it.
    """
    rule = CommissionRule(commission_type, commission_value)
    if cookie_duration is None:
        cookie_duration = get_settings().DEFAULT_COOKIE_DURATION_DAYS
    slug = _required(slug, "slug").lower()
    tenant = _resolve_tenant(db, tenant_id)

    product = Product(
        tenant_id=tenant.id,
        name=_required(name, "name"),
        slug=slug,
        domain=_required(domain, "domain"),
        api_key=generate_api_key(slug),
        commission_type=rule.type.value,
        commission_value=rule.value,
        cookie_duration=_cookie_duration(cookie_duration),
        is_active=True,
    )
    db.add(product)
    _commit(db, "Slug or API key already exists", {"slug": slug})
    db.refresh(product)
    logger.info(f"Product {product.slug} created for tenant {tenant.id}")
    return product


def update_product(db: Session, product_id: str, changes: Dict[str, Any]) -> Product:
    """
    Partial update. The commission rule is validated as a whole, so changing
    only the type re-checks the existing value against it.
    """
    changes = {k: v for k, v in changes.items() if k in PRODUCT_FIELDS and v is not None}
    if not changes:
        raise InvalidInputError("No fields to update", {"product_id": product_id})

    product = get_product(db, product_id)

    rule = CommissionRule(
        changes.get("commission_type", product.commission_type),
        changes.get("commission_value", product.commission_value),
    )

    if "name" in changes:
        product.name = _required(changes["name"], "name")
    if "slug" in changes:
        product.slug = _required(changes["slug"], "slug").lower()
    if "domain" in changes:
        product.domain = _required(changes["domain"], "domain")
    if "cookie_duration" in changes:
        product.cookie_duration = _cookie_duration(changes["cookie_duration"])
    if "is_active" in changes:
        product.is_active = bool(changes["is_active"])
    product.commission_type = rule.type.value
    product.commission_value = rule.value

    _commit(db, "Slug already exists", {"product_id": product_id, "slug": product.slug})
    db.refresh(product)
    logger.info(f"Product {product.slug} updated: {sorted(changes)}")
    return product


def list_products(db: Session) -> List[Dict[str, Any]]:
    products = db.query(Product).order_by(Product.created_at.desc(), Product.id).all()
    return [serialize_product(p) for p in products]


def reveal_api_key(db: Session, product_id: str) -> Dict[str, str]:
    product = get_product(db, product_id)
    logger.info(f"API key revealed for product {product.slug}")
    return {"api_key": product.api_key, "slug": product.slug, "name": product.name}


# Affiliates

def serialize_affiliate(affiliate: Affiliate) -> Dict[str, Any]:
    return {
        "id": affiliate.id,
        "tenant_id": affiliate.tenant_id,
        "email": affiliate.email,
        "code": affiliate.code,
        "status": affiliate.status,
        "balance": int(affiliate.balance),
        "created_at": affiliate.created_at,
    }


def create_affiliate(db: Session, email: str, code: str, tenant_id: Optional[str] = None) -> Affiliate:
    email = _required(email, "email")
    code = normalize_code(_required(code, "code"))
    tenant = _resolve_tenant(db, tenant_id)

    affiliate = Affiliate(
        tenant_id=tenant.id,
        email=email,
        code=code,
        status=AffiliateStatus.ACTIVE.value,
        balance=0,
    )
    db.add(affiliate)
    _commit(db, "Affiliate code or email already exists", {"code": code, "email": email})
    db.refresh(affiliate)
    logger.info(f"Affiliate {affiliate.code} created for tenant {tenant.id}")
    return affiliate


def set_affiliate_status(db: Session, affiliate_id: str, status: str) -> Affiliate:
    try:
        status = AffiliateStatus(status)
    except ValueError:
        raise InvalidInputError("Status must be active or suspended", {"status": str(status)})

    affiliate = db.query(Affiliate).filter(Affiliate.id == affiliate_id).first()
    if not affiliate:
        raise NotFoundError(f"Affiliate {affiliate_id} not found", {"affiliate_id": affiliate_id})

    affiliate.status = status.value
    _commit(db, "Affiliate could not be updated", {"affiliate_id": affiliate_id})
    db.refresh(affiliate)
    logger.info(f"Affiliate {affiliate.code} is now {affiliate.status}")
    return affiliate
