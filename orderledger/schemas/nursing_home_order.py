"""
Pydantic schemas for nursing home weekly orders
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
import re

from orderledger.config import MEAL_DAYS, MAX_ITEMS_PER_MEAL


class MealType(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"


class LineItem(BaseModel):
    """A menu item chosen within a meal"""
    id: str = Field(..., min_length=1, max_length=64, description="Menu item id")
    name: Optional[str] = Field(None, max_length=200)
    quantity: int = Field(1, ge=1, le=20)


class Meal(BaseModel):
    """One day/meal-type slot for a resident"""
    day: str = Field(..., description="Day of week")
    meal_type: MealType
    items: List[LineItem] = Field(..., min_length=1, max_length=MAX_ITEMS_PER_MEAL)
    bagel_type: Optional[str] = Field(None, max_length=50)

    @validator('day')
    def validate_day(cls, v):
        day = v.strip().title()
        if day not in MEAL_DAYS:
            raise ValueError(f'Day must be one of: {", ".join(MEAL_DAYS)}')
        return day


class ResidentMeals(BaseModel):
    """A resident's meal selections for the week"""
    resident_id: str = Field(..., min_length=1, max_length=64)
    resident_name: str = Field(..., min_length=1, max_length=200)
    room_number: Optional[str] = Field(None, max_length=20)
    meals: List[Meal] = Field(default_factory=list, max_length=len(MEAL_DAYS) * len(MealType))


class DeliveryAddress(BaseModel):
    street: str = Field(..., min_length=1, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=2, max_length=2)
    zip_code: str = Field(...)

    @validator('zip_code')
    def validate_zip_code(cls, v):
        if not re.match(r'^\d{5}$', v.strip()):
            raise ValueError('ZIP code must be 5 digits')
        return v.strip()

    @validator('state')
    def validate_state(cls, v):
        return v.upper()


class OrderCreate(BaseModel):
    """Schema for creating a weekly order"""
    facility_id: str = Field(..., min_length=1, max_length=36)
    week_start_date: date = Field(..., description="Monday the service week starts")
    week_end_date: date
    resident_meals: List[ResidentMeals]
    delivery_address: DeliveryAddress

    @validator('week_start_date')
    def validate_week_start(cls, v):
        if v.weekday() != 0:
            raise ValueError('Week must start on a Monday')
        return v

    @validator('week_end_date')
    def validate_week_end(cls, v, values, **kwargs):
        start = values.get('week_start_date')
        if start is not None and v < start:
            raise ValueError('Week end date must not be before week start date')
        return v


class OrderUpdate(BaseModel):
    """Schema for patching a weekly order; only payload fields are editable"""
    resident_meals: Optional[List[ResidentMeals]] = None
    delivery_address: Optional[DeliveryAddress] = None


class OrderTotals(BaseModel):
    total_meals: int
    subtotal: Decimal
    tax: Decimal
    total: Decimal


class OrderResponse(BaseModel):
    """Schema for order responses"""
    id: str
    facility_id: str
    created_by_user_id: str
    order_number: str
    week_start_date: date
    week_end_date: date
    resident_meals: List[ResidentMeals]
    delivery_address: DeliveryAddress
    status: str
    total_meals: int
    subtotal: float
    tax: float
    total: float
    deadline: datetime
    submitted_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class OrderListResponse(BaseModel):
    """Schema for paginated order list responses"""
    orders: list[OrderResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
