from .enums import (
    AffiliateStatus,
    CommissionType,
    ConversionStatus,
    DecisionAction,
    PayoutStatus,
)
from .tenant import Affiliate, Product, Tenant, generate_uuid
from .tracking import Click, Conversion, Payout

__all__ = [
    "Affiliate",
    "AffiliateStatus",
    "Click",
    "CommissionType",
    "Conversion",
    "ConversionStatus",
    "DecisionAction",
    "Payout",
    "PayoutStatus",
    "Product",
    "Tenant",
    "generate_uuid",
]
