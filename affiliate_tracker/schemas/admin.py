"""
Schemas for the admin API
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from ..models.enums import AffiliateStatus, CommissionType, DecisionAction


class DecisionRequest(BaseModel):
    action: DecisionAction


class DecisionResponse(BaseModel):
    success: bool = True
    conversion_id: str
    status: str
    decided_at: Optional[datetime] = None


class SettleResponse(BaseModel):
    success: bool = True
    payout_id: str
    status: str  # "paid"
    processed_at: Optional[datetime] = None


class TenantRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class TenantResponse(BaseModel):
    id: str
    name: str
    created_at: datetime

    class Config:
        from_attributes = True


class AffiliateCreateRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    code: str = Field(..., min_length=1, max_length=64)
    tenant_id: Optional[str] = None


class AffiliateStatusRequest(BaseModel):
    status: AffiliateStatus


class BalanceResponse(BaseModel):
    affiliate_id: str
    balance: int
    approved_commission: int
    payouts_debited: int
    expected_balance: int
    consistent: bool


class ProductCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=100)
    domain: str = Field(..., min_length=1, max_length=255)
    commission_type: CommissionType
    commission_value: Decimal = Field(..., ge=0)
    cookie_duration: Optional[int] = Field(
        None, gt=0, description="Attribution cookie lifetime in days; DEFAULT_COOKIE_DURATION_DAYS when omitted"
    )
    tenant_id: Optional[str] = None


class ProductUpdateRequest(BaseModel):
    """Partial update; omitted fields are left unchanged"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, min_length=1, max_length=100)
    domain: Optional[str] = Field(None, min_length=1, max_length=255)
    commission_type: Optional[CommissionType] = None
    commission_value: Optional[Decimal] = Field(None, ge=0)
    cookie_duration: Optional[int] = Field(None, gt=0)
    is_active: Optional[bool] = None
