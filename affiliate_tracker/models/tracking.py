"""Click, Conversion and Payout models"""
from datetime import datetime
from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..db import Base
from .tenant import generate_uuid


class Click(Base):
    """Immutable record of one referral visit"""
    __tablename__ = "clicks"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    affiliate_id = Column(String(36), ForeignKey("affiliates.id"), nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    referrer = Column(String(1024), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    affiliate = relationship("Affiliate", back_populates="clicks")
    product = relationship("Product")

    __table_args__ = (
        Index("ix_clicks_affiliate_product", "affiliate_id", "product_id"),
    )


class Conversion(Base):
    """One reported order; at most one per (order_id, product_id)"""
    __tablename__ = "conversions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    affiliate_id = Column(String(36), ForeignKey("affiliates.id"), nullable=False, index=True)
    order_id = Column(String(255), nullable=False)
    order_amount = Column(BigInteger, nullable=False)
    commission_amount = Column(BigInteger, nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending, approved, rejected
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    decided_at = Column(DateTime, nullable=True)

    affiliate = relationship("Affiliate", back_populates="conversions")
    product = relationship("Product")

    __table_args__ = (
        UniqueConstraint("order_id", "product_id", name="uq_conversions_order_product"),
        CheckConstraint("order_amount >= 0", name="ck_conversions_order_amount_non_negative"),
        CheckConstraint("commission_amount >= 0", name="ck_conversions_commission_non_negative"),
        Index("ix_conversions_status", "status"),
    )


class Payout(Base):
    """Withdrawal request against an affiliate balance"""
    __tablename__ = "payouts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    affiliate_id = Column(String(36), ForeignKey("affiliates.id"), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    status = Column(String(20), nullable=False, default="requested")  # requested, paid
    requested_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    processed_at = Column(DateTime, nullable=True)

    affiliate = relationship("Affiliate", back_populates="payouts")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payouts_amount_positive"),
        Index("ix_payouts_status", "status"),
    )
