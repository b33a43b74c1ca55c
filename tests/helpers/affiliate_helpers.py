"""
Test helpers for affiliate flows.

Provides utilities for creating tenants, products and affiliates and for
moving money through the real services, so balances always agree with the
ledger.
"""
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from affiliate_tracker.models import Affiliate, Conversion, Product, Tenant
from affiliate_tracker.services.conversions import ConversionService

ADMIN_KEY = "test-admin-key"
FALLBACK_URL = "https://fallback.example.com"


def create_test_tenant(db: Session, name: str = "Test Tenant") -> Tenant:
    tenant = Tenant(name=name)
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant


def create_test_product(
    db: Session,
    tenant: Tenant,
    slug: Optional[str] = None,
    commission_type: str = "percentage",
    commission_value="0.2",
    cookie_duration: int = 30,
    is_active: bool = True,
    domain: str = "app.example.com",
) -> Product:
    slug = slug or f"product-{uuid.uuid4().hex[:8]}"
    product = Product(
        tenant_id=tenant.id,
        name=slug.title(),
        slug=slug,
        domain=domain,
        api_key=f"sk_{slug.replace('-', '')}_{uuid.uuid4().hex}",
        commission_type=commission_type,
        commission_value=Decimal(str(commission_value)),
        cookie_duration=cookie_duration,
        is_active=is_active,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def create_test_affiliate(
    db: Session,
    tenant: Tenant,
    code: Optional[str] = None,
    email: Optional[str] = None,
    status: str = "active",
) -> Affiliate:
    code = (code or f"AFF{uuid.uuid4().hex[:6]}").upper()
    affiliate = Affiliate(
        tenant_id=tenant.id,
        email=email or f"{code.lower()}@example.com",
        code=code,
        status=status,
        balance=0,
    )
    db.add(affiliate)
    db.commit()
    db.refresh(affiliate)
    return affiliate


def report_order(
    db: Session,
    product: Product,
    affiliate: Affiliate,
    order_amount: int,
    order_id: Optional[str] = None,
) -> Conversion:
    return ConversionService.report_conversion(
        db, product, affiliate, order_id or f"ORD-{uuid.uuid4().hex[:10]}", order_amount
    )


def earn_commission(
    db: Session,
    product: Product,
    affiliate: Affiliate,
    order_amount: int,
    order_id: Optional[str] = None,
) -> Conversion:
    """Report an order and approve it, crediting the affiliate."""
    conversion = report_order(db, product, affiliate, order_amount, order_id)
    return ConversionService.decide(db, conversion.id, "approve")


def current_balance(db: Session, affiliate_id: str) -> int:
    db.expire_all()
    return db.query(Affiliate).filter(Affiliate.id == affiliate_id).one().balance
