"""
Gift card redemption code generation
"""

import logging
import secrets
from typing import Callable, Optional

from sqlalchemy.orm import Session

from orderledger.config import (
    GIFT_CARD_CODE_PREFIX,
    GIFT_CARD_CODE_ALPHABET,
    GIFT_CARD_CODE_LENGTH,
    GIFT_CARD_CODE_MAX_ATTEMPTS,
)
from orderledger.models.gift_card import GiftCard
from orderledger.utils.error_handler import CodeSpaceExhaustedError

logger = logging.getLogger(__name__)


class CodeGenerator:
    """
    Produces codes like MKD-7KQ2XH9P from an alphabet without look-alike
    characters (no 0/O, no 1/I).

    The existence check in ensure_unique is a fast path only; the unique
    constraint on gift_cards.code decides, and the ledger retries on a clash.
    """

    def __init__(
        self,
        db: Session,
        prefix: str = GIFT_CARD_CODE_PREFIX,
        alphabet: str = GIFT_CARD_CODE_ALPHABET,
        length: int = GIFT_CARD_CODE_LENGTH,
        exists: Optional[Callable[[str], bool]] = None,
    ):
        self.db = db
        self.prefix = prefix
        self.alphabet = alphabet
        self.length = length
        self._exists = exists or self._code_exists

    def generate(self) -> str:
        part = "".join(secrets.choice(self.alphabet) for _ in range(self.length))
        return f"{self.prefix}-{part}"

    def ensure_unique(self, max_attempts: int = GIFT_CARD_CODE_MAX_ATTEMPTS) -> str:
        """Return the first generated code not already in the store"""
        for attempt in range(1, max_attempts + 1):
            code = self.generate()
            if not self._exists(code):
                return code
            logger.warning(f"Gift card code collision on attempt {attempt}")

        logger.critical(
            "Could not generate a unique gift card code",
            extra={"max_attempts": max_attempts, "prefix": self.prefix}
        )
        raise CodeSpaceExhaustedError(
            "Could not generate unique gift card code",
            max_attempts=max_attempts
        )

    def _code_exists(self, code: str) -> bool:
        return self.db.query(GiftCard.id).filter(GiftCard.code == code).first() is not None

    @staticmethod
    def normalize(code: str) -> str:
        """Canonical form of a code typed by a customer"""
        return "".join(code.split()).upper()
