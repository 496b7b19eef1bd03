"""
Admin notification model for back-office alerts
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, JSON
from sqlalchemy.sql import func

from orderledger.database import Base


class AdminNotification(Base):
    """Notification shown in the admin back office"""
    __tablename__ = "admin_notifications"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(50), nullable=False, index=True)  # e.g. gift_card.created, nh.order.submitted
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    ref = Column(JSON, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<AdminNotification(id={self.id}, type='{self.type}', title='{self.title}')>"
