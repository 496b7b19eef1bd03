"""
Nursing home facility and weekly bulk order models
"""

from enum import Enum
import uuid

from sqlalchemy import Column, Integer, String, DateTime, Date, Numeric, Boolean, JSON, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from orderledger.database import Base


class OrderStatus(str, Enum):
    """Nursing home order states"""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    CANCELLED = "cancelled"


class NursingHomeFacility(Base):
    """Facility that owns staff accounts and places bulk meal orders"""
    __tablename__ = "nursing_home_facilities"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    address = Column(JSON, nullable=True)
    contact_email = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    orders = relationship("NursingHomeOrder", back_populates="facility")

    def __repr__(self):
        return f"<NursingHomeFacility(id={self.id}, name='{self.name}')>"


class NursingHomeOrder(Base):
    """Weekly meal order covering every resident of a facility"""
    __tablename__ = "nursing_home_orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    facility_id = Column(String(36), ForeignKey("nursing_home_facilities.id"), nullable=False, index=True)
    created_by_user_id = Column(String(36), nullable=False, index=True)
    order_number = Column(String(50), unique=True, index=True, nullable=False)
    week_start_date = Column(Date, nullable=False)  # Monday of the week
    week_end_date = Column(Date, nullable=False)
    resident_meals = Column(JSON, nullable=False)
    delivery_address = Column(JSON, nullable=False)
    status = Column(String(20), default=OrderStatus.DRAFT.value, nullable=False, index=True)
    total_meals = Column(Integer, default=0, nullable=False)
    subtotal = Column(Numeric(10, 2), default=0, nullable=False)
    tax = Column(Numeric(10, 2), default=0, nullable=False)
    total = Column(Numeric(10, 2), default=0, nullable=False)
    # Wall-clock time in ORDER_TIMEZONE
    deadline = Column(DateTime, nullable=False)
    submitted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    facility = relationship("NursingHomeFacility", back_populates="orders")

    def __repr__(self):
        return f"<NursingHomeOrder(id={self.id}, order_number='{self.order_number}', status='{self.status}')>"
