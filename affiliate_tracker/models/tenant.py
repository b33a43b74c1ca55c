"""Tenant, Product and Affiliate models"""
from datetime import datetime
import uuid
from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..db import Base


def generate_uuid():
    return str(uuid.uuid4())


class Tenant(Base):
    """Isolation boundary grouping the products and affiliates of one business"""
    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    products = relationship("Product", back_populates="tenant")
    affiliates = relationship("Affiliate", back_populates="tenant")


class Product(Base):
    """A trackable merchant app/offer with its own commission rule and secret key"""
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    domain = Column(String(255), nullable=False)
    api_key = Column(String(128), nullable=False, unique=True, index=True)
    commission_type = Column(String(20), nullable=False)  # percentage, fixed
    commission_value = Column(Numeric(18, 6), nullable=False, default=0)
    cookie_duration = Column(Integer, nullable=False, default=30)  # days
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.utcnow)

    tenant = relationship("Tenant", back_populates="products")

    __table_args__ = (
        CheckConstraint("commission_type IN ('percentage', 'fixed')", name="ck_products_commission_type"),
        CheckConstraint("commission_value >= 0", name="ck_products_commission_value_non_negative"),
        CheckConstraint("cookie_duration > 0", name="ck_products_cookie_duration_positive"),
    )

    @property
    def commission_rule(self):
        from ..services.commission import CommissionRule

        return CommissionRule(self.commission_type, self.commission_value)


class Affiliate(Base):
    """Referral partner; balance is only ever changed by the ledger service"""
    __tablename__ = "affiliates"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    code = Column(String(64), nullable=False, unique=True, index=True)
    status = Column(String(20), nullable=False, default="active")  # active, suspended
    balance = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.utcnow)

    tenant = relationship("Tenant", back_populates="affiliates")
    clicks = relationship("Click", back_populates="affiliate")
    conversions = relationship("Conversion", back_populates="affiliate")
    payouts = relationship("Payout", back_populates="affiliate")

    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_affiliates_tenant_email"),
        CheckConstraint("balance >= 0", name="ck_affiliates_balance_non_negative"),
    )
