"""
ORM models; importing this package registers every table on Base.metadata
"""

from orderledger.models.gift_card import GiftCard, GiftCardStatus
from orderledger.models.nursing_home import NursingHomeFacility, NursingHomeOrder, OrderStatus
from orderledger.models.admin_notification import AdminNotification

__all__ = [
    "GiftCard",
    "GiftCardStatus",
    "NursingHomeFacility",
    "NursingHomeOrder",
    "OrderStatus",
    "AdminNotification",
]
