"""
Runtime configuration and business constants
Values come from the environment (a .env file is loaded by main.py)
"""

from decimal import Decimal
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Infrastructure
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./orderledger.db")
SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key-change-in-production")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
RATE_LIMIT_ENABLED = _env_bool("RATE_LIMIT_ENABLED", True)

# Gift cards
GIFT_CARD_CODE_PREFIX = os.getenv("GIFT_CARD_CODE_PREFIX", "MKD")
GIFT_CARD_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
GIFT_CARD_CODE_LENGTH = 8
GIFT_CARD_CODE_MAX_ATTEMPTS = 20
LEDGER_MAX_RETRIES = int(os.getenv("LEDGER_MAX_RETRIES", "5"))

GIFT_CARD_ITEM_ID_PREFIX = "gift-card-"
GIFT_CARD_CATEGORY = "gift card"

# Nursing home orders
ORDER_TIMEZONE = os.getenv("ORDER_TIMEZONE", "America/New_York")
ORDER_NUMBER_PREFIX = "NH"

DEADLINE_HOUR = 12
DEADLINE_MINUTE = 0

MEAL_DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
MEAL_PRICES = {
    "breakfast": Decimal("15.00"),
    "lunch": Decimal("21.00"),
    "dinner": Decimal("23.00"),
}
MAX_ITEMS_PER_MEAL = 10
TAX_RATE = Decimal("0.08875")
