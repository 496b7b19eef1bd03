"""
Pydantic schemas for the payment-succeeded event and its settlement results
"""

from pydantic import BaseModel, Field, validator
from pydantic.alias_generators import to_camel
from typing import Any, Optional, List, Dict
from decimal import Decimal


class OrderItem(BaseModel):
    """A storefront line item; price is the line total"""
    id: str = Field("", description="Product id, gift card products start with gift-card-")
    name: str = Field("", max_length=200)
    category: Optional[str] = Field(None, max_length=100)
    price: Decimal = Field(Decimal("0"), ge=0)
    quantity: int = Field(1, ge=1)

    @validator('id', pre=True)
    def coerce_id(cls, v):
        return "" if v is None else str(v)


class RestaurantGroup(BaseModel):
    items: List[OrderItem] = Field(default_factory=list)


class AppliedGiftCard(BaseModel):
    """Gift card redeemed at checkout; a reference without an id is ignored"""
    gift_card_id: Optional[str] = None
    amount_applied: Decimal = Field(Decimal("0"))
    code: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class PaidOrder(BaseModel):
    """An order whose payment has been captured"""
    id: str
    user_id: Optional[str] = None
    restaurant_groups: Dict[str, RestaurantGroup] = Field(default_factory=dict)
    applied_gift_card: Optional[AppliedGiftCard] = None

    class Config:
        # the storefront sends camelCase keys (userId, restaurantGroups, appliedGiftCard)
        alias_generator = to_camel
        populate_by_name = True

    def line_items(self) -> List[OrderItem]:
        return [item for group in self.restaurant_groups.values() for item in group.items]


class PaymentSucceededEvent(BaseModel):
    """Orders are validated one by one during settlement so a malformed order cannot block the rest"""
    orders: List[Dict[str, Any]] = Field(..., min_length=1)


class IssuedCard(BaseModel):
    id: str
    code: str
    balance: float


class SettlementResult(BaseModel):
    order_id: str
    gift_card_deducted: bool = False
    remaining_balance: Optional[float] = None
    issued_cards: List[IssuedCard] = Field(default_factory=list)


class SettlementResponse(BaseModel):
    results: List[SettlementResult]
