"""
Gift card model for the balance ledger
"""

from enum import Enum
import uuid

from sqlalchemy import Column, Integer, String, DateTime, Numeric, CheckConstraint
from sqlalchemy.sql import func

from orderledger.database import Base


class GiftCardStatus(str, Enum):
    """Gift card lifecycle states"""
    ACTIVE = "active"
    USED = "used"
    VOID = "void"


class GiftCard(Base):
    """Gift card entity; never deleted, voided instead"""
    __tablename__ = "gift_cards"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_gift_cards_balance_non_negative"),
        CheckConstraint("balance <= initial_balance", name="ck_gift_cards_balance_within_initial"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code = Column(String(32), unique=True, index=True, nullable=False)
    initial_balance = Column(Numeric(10, 2), nullable=False)
    balance = Column(Numeric(10, 2), nullable=False)
    status = Column(String(10), default=GiftCardStatus.ACTIVE.value, nullable=False, index=True)
    purchased_by_user_id = Column(String(36), nullable=True, index=True)
    order_id = Column(String(36), nullable=True, index=True)
    recipient_email = Column(String(255), nullable=True)
    # Bumped on every write; guards compare-and-swap updates
    version = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<GiftCard(id={self.id}, code='{self.code}', balance={self.balance}, status='{self.status}')>"
