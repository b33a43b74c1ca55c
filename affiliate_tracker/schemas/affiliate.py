"""
Schemas for the affiliate self-service API
"""
from pydantic import BaseModel, Field


class PayoutRequest(BaseModel):
    code: str = Field(..., min_length=1, description="Affiliate code")
    amount: int = Field(..., gt=0, description="Amount to withdraw")


class PayoutResponse(BaseModel):
    success: bool = True
    payout_id: str
    amount: int
    status: str  # "requested"
