"""
Schemas for the public tracking API
"""
from typing import Optional

from pydantic import BaseModel, Field


class ClickRequest(BaseModel):
    product_slug: str = Field(..., min_length=1, alias="productSlug")
    ref_code: str = Field(..., min_length=1, alias="refCode")

    class Config:
        populate_by_name = True


class ClickResponse(BaseModel):
    success: bool = True
    click_id: str
    affiliate_id: str
    product_id: str
    cookie_duration: int  # days


class ConversionRequest(BaseModel):
    """Product reported order. affiliate_id falls back to the attribution cookie."""
    order_id: str = Field(..., min_length=1, max_length=255, alias="orderId")
    order_amount: int = Field(..., ge=0, alias="orderAmount")
    affiliate_id: Optional[str] = Field(None, alias="affiliateId")

    class Config:
        populate_by_name = True


class ConversionResponse(BaseModel):
    success: bool = True
    conversion_id: str
    product_slug: str
    commission_amount: int
    status: str  # "pending"
