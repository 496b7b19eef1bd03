"""
Gift card ledger: the system of record for gift card balances

Every write is a compare-and-swap on GiftCard.version, so two concurrent
redemptions of the same card can never both apply against the same balance.
"""

import logging
from decimal import Decimal
from typing import Callable, Optional, Tuple, List

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderledger.config import LEDGER_MAX_RETRIES, GIFT_CARD_CODE_MAX_ATTEMPTS
from orderledger.models.gift_card import GiftCard, GiftCardStatus
from orderledger.services.code_generator import CodeGenerator
from orderledger.utils.error_handler import (
    NotFoundError,
    NotActiveError,
    InsufficientBalanceError,
    ConcurrentUpdateError,
    CodeSpaceExhaustedError,
    ValidationFailedError,
)
from orderledger.utils.money import to_money

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _status_for_balance(balance: Decimal) -> str:
    return GiftCardStatus.USED.value if balance == ZERO else GiftCardStatus.ACTIVE.value


class GiftCardLedger:
    """Issuance, redemption and administrative overrides for gift cards"""

    def __init__(
        self,
        db: Session,
        code_generator: Optional[CodeGenerator] = None,
        max_retries: int = LEDGER_MAX_RETRIES,
    ):
        self.db = db
        self.code_generator = code_generator or CodeGenerator(db)
        self.max_retries = max_retries

    # Issuance

    def issue(
        self,
        initial_balance,
        purchased_by_user_id: Optional[str] = None,
        order_id: Optional[str] = None,
        recipient_email: Optional[str] = None,
        max_attempts: int = GIFT_CARD_CODE_MAX_ATTEMPTS,
    ) -> GiftCard:
        """Create an active card holding initial_balance"""
        balance = self._money(initial_balance)
        if balance <= ZERO:
            raise ValidationFailedError(
                "Gift card balance must be positive",
                initial_balance=str(initial_balance)
            )

        for attempt in range(1, max_attempts + 1):
            code = self.code_generator.ensure_unique(max_attempts)
            card = GiftCard(
                code=code,
                initial_balance=balance,
                balance=balance,
                purchased_by_user_id=purchased_by_user_id,
                order_id=order_id,
                recipient_email=recipient_email,
                status=GiftCardStatus.ACTIVE.value,
                version=0
            )
            self.db.add(card)
            try:
                self.db.commit()
            except IntegrityError:
                # Lost the race for this code between the check and the insert
                self.db.rollback()
                logger.warning(f"Gift card code {code} taken at insert time, retrying (attempt {attempt})")
                continue

            self.db.refresh(card)
            logger.info(
                f"Issued gift card {card.id}",
                extra={"gift_card_id": card.id, "amount": str(balance), "order_id": order_id}
            )
            return card

        logger.critical("Gift card codes kept clashing at insert time", extra={"max_attempts": max_attempts})
        raise CodeSpaceExhaustedError("Could not generate unique gift card code", max_attempts=max_attempts)

    # Redemption

    def deduct(self, card_id: str, amount) -> Decimal:
        """Take amount off the card and return the new balance"""
        amount = self._money(amount)

        def change(card: GiftCard):
            if card.status != GiftCardStatus.ACTIVE:
                raise NotActiveError("Gift card is not active", gift_card_id=card.id, status=card.status)
            if amount <= ZERO:
                return None
            balance = to_money(card.balance)
            if amount > balance:
                raise InsufficientBalanceError(
                    "Insufficient gift card balance",
                    gift_card_id=card.id,
                    balance=str(balance),
                    requested=str(amount)
                )
            new_balance = to_money(balance - amount)
            return {"balance": new_balance, "status": _status_for_balance(new_balance)}

        card = self._apply(card_id, change, "deduct")
        return to_money(card.balance)

    def lookup_redeemable(self, code: str) -> GiftCard:
        """Find an active card with money left on it by customer-typed code"""
        normalized = CodeGenerator.normalize(code)
        card = (
            self.db.query(GiftCard)
            .filter(
                func.upper(GiftCard.code) == normalized,
                GiftCard.status == GiftCardStatus.ACTIVE.value
            )
            .first()
        )
        if not card:
            raise NotFoundError("Invalid or inactive gift card code")
        if to_money(card.balance) <= ZERO:
            raise InsufficientBalanceError("Gift card has no remaining balance", gift_card_id=card.id)
        return card

    # Administrative overrides

    def void(self, card_id: str) -> GiftCard:
        def change(card: GiftCard):
            if card.status == GiftCardStatus.VOID:
                return None
            return {"status": GiftCardStatus.VOID.value}

        return self._apply(card_id, change, "void")

    def reinstate(self, card_id: str) -> GiftCard:
        """Undo a void; the status follows the remaining balance"""
        def change(card: GiftCard):
            if card.status != GiftCardStatus.VOID:
                return None
            return {"status": _status_for_balance(to_money(card.balance))}

        return self._apply(card_id, change, "reinstate")

    def set_balance(self, card_id: str, value) -> GiftCard:
        """
        Overwrite the balance. Voided cards stay void; otherwise the status
        is recomputed so that used always means an empty card.
        """
        new_balance = self._money(value)

        def change(card: GiftCard):
            initial = to_money(card.initial_balance)
            if new_balance < ZERO or new_balance > initial:
                raise ValidationFailedError(
                    f"Balance must be between 0.00 and {initial}",
                    gift_card_id=card.id,
                    requested=str(new_balance)
                )
            values = {"balance": new_balance}
            if card.status != GiftCardStatus.VOID:
                values["status"] = _status_for_balance(new_balance)
            return values

        return self._apply(card_id, change, "set_balance")

    # Queries

    def get(self, card_id: str) -> GiftCard:
        return self._load_card(card_id)

    def list_cards(self, status: Optional[str] = None, page: int = 1, page_size: int = 50) -> Tuple[List[GiftCard], int]:
        query = self.db.query(GiftCard)
        if status:
            query = query.filter(GiftCard.status == status)
        total = query.count()
        offset = (page - 1) * page_size
        cards = query.order_by(GiftCard.created_at.desc()).offset(offset).limit(page_size).all()
        return cards, total

    def cards_for_user(self, user_id: str) -> List[GiftCard]:
        return (
            self.db.query(GiftCard)
            .filter(GiftCard.purchased_by_user_id == user_id)
            .order_by(GiftCard.created_at.desc())
            .all()
        )

    # Internals

    def _money(self, value) -> Decimal:
        try:
            return to_money(value)
        except ValueError as e:
            raise ValidationFailedError(str(e))

    def _load_card(self, card_id: str) -> GiftCard:
        card = self.db.execute(
            select(GiftCard)
            .where(GiftCard.id == card_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if card is None:
            raise NotFoundError("Gift card not found", gift_card_id=card_id)
        return card

    def _apply(self, card_id: str, change: Callable[[GiftCard], Optional[dict]], action: str) -> GiftCard:
        """Read, compute the new values, and write them only if nobody else wrote in between"""
        for attempt in range(1, self.max_retries + 1):
            card = self._load_card(card_id)
            values = change(card)
            if values is None:
                return card

            if self._compare_and_swap(card, values):
                logger.info(
                    f"Gift card {card_id} {action}",
                    extra={"gift_card_id": card_id, "action": action, "version": card.version + 1}
                )
                return self._load_card(card_id)

            logger.warning(f"Concurrent update on gift card {card_id} during {action}, retrying (attempt {attempt})")

        raise ConcurrentUpdateError(
            "Gift card was modified concurrently, please retry",
            gift_card_id=card_id,
            attempts=self.max_retries
        )

    def _compare_and_swap(self, card: GiftCard, values: dict) -> bool:
        expected_version = card.version
        result = self.db.execute(
            update(GiftCard)
            .where(GiftCard.id == card.id, GiftCard.version == expected_version)
            .values(version=expected_version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            return False
        self.db.commit()
        return True


def issue_gift_card(
    db: Session,
    initial_balance,
    purchased_by_user_id: Optional[str] = None,
    recipient_email: Optional[str] = None,
    order_id: Optional[str] = None,
) -> GiftCard:
    return GiftCardLedger(db).issue(
        initial_balance,
        purchased_by_user_id=purchased_by_user_id,
        order_id=order_id,
        recipient_email=recipient_email
    )


def deduct_gift_card_balance(db: Session, card_id: str, amount) -> Decimal:
    return GiftCardLedger(db).deduct(card_id, amount)
