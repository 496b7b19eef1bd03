"""
Pydantic schemas for gift card operations
"""

from pydantic import BaseModel, Field, EmailStr, validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from orderledger.models.gift_card import GiftCardStatus


class GiftCardCreate(BaseModel):
    """Manual issuance by an administrator"""
    initial_balance: Decimal = Field(..., ge=Decimal("0.01"), le=Decimal("10000"), description="Starting balance")
    recipient_email: Optional[EmailStr] = Field(None, description="Who the card is for")
    purchased_by_user_id: Optional[str] = Field(None, max_length=36)

    @validator('recipient_email')
    def normalize_email(cls, v):
        return v.lower() if v else v


class GiftCardUpdate(BaseModel):
    """Administrative override of status and/or balance"""
    status: Optional[GiftCardStatus] = None
    balance: Optional[Decimal] = Field(None, ge=0)

    @validator('status')
    def validate_status(cls, v):
        if v == GiftCardStatus.USED:
            raise ValueError('Status used is derived from the balance; set balance to 0 instead')
        return v


class GiftCardDeduct(BaseModel):
    amount: Decimal = Field(..., description="Amount to redeem")


class GiftCardValidate(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)

    @validator('code')
    def validate_code(cls, v):
        if not v.strip():
            raise ValueError('Code is required')
        return v


class GiftCardResponse(BaseModel):
    """Schema for gift card responses"""
    id: str
    code: str
    initial_balance: float
    balance: float
    status: str
    purchased_by_user_id: Optional[str]
    order_id: Optional[str]
    recipient_email: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class GiftCardListResponse(BaseModel):
    """Schema for paginated gift card list responses"""
    gift_cards: list[GiftCardResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class GiftCardValidation(BaseModel):
    valid: bool
    gift_card_id: str
    code: str
    balance: float


class BalanceResponse(BaseModel):
    gift_card_id: str
    balance: float
